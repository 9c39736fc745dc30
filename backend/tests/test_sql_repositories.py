"""
SQL repository tests against in-memory SQLite.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from barpos.extensions import db
from barpos.models import InventoryItem, TabItem
from barpos.repositories import SaleRecord, TabRow
from barpos.repositories.sql import sql_repositories
from barpos.services import cart_service, sale_service, tab_service
from barpos.services.cart_service import Cart
from barpos.services.void_service import VoidWorkflow
from barpos.validation import ConflictError, NetworkError, NotFoundError, ValidationError


@pytest.fixture
def repos(db_session):
    return sql_repositories()


def _cart_with(repos, *item_ids):
    cart = Cart()
    for item_id in item_ids:
        cart_service.add_item(cart, repos.catalog.get(item_id), [])
    return cart


class TestSqlCatalog:

    def test_deduct_floors_at_zero_and_flips_availability(self, repos, seed):
        with repos.unit_of_work():
            repos.catalog.deduct({seed["claw"]: 3, seed["bud"]: 2, seed["vodka"]: 5})

        claw = repos.catalog.get(seed["claw"])
        assert claw.stock_count == 0
        assert claw.is_available is False
        assert repos.catalog.get(seed["bud"]).stock_count == 46
        assert repos.catalog.get(seed["vodka"]).stock_count is None

    def test_restore(self, repos, seed):
        with repos.unit_of_work():
            repos.catalog.deduct({seed["claw"]: 1})
            repos.catalog.restore(seed["claw"], 2)
        claw = repos.catalog.get(seed["claw"])
        assert claw.stock_count == 2
        assert claw.is_available is True

    def test_restore_keeps_manual_unavailable_flag(self, repos, seed):
        item = db.session.get(InventoryItem, seed["bud"])
        item.is_available = False
        db.session.commit()

        with repos.unit_of_work():
            repos.catalog.restore(seed["bud"], 1)

        bud = repos.catalog.get(seed["bud"])
        assert bud.stock_count == 49
        assert bud.is_available is False

    def test_add_and_list(self, repos, db_session):
        with repos.unit_of_work():
            item = repos.catalog.add(name="Guinness", price=Decimal("6.50"), category="beer", stock_count=0)
        assert item.is_available is False
        assert [i.name for i in repos.catalog.list()] == ["Guinness"]

    def test_delete_blocked_by_open_tab(self, repos, seed):
        cart = _cart_with(repos, seed["bud"])
        tab = tab_service.save_tab(repos, cart, "Dana")

        with pytest.raises(ConflictError):
            with repos.unit_of_work():
                repos.catalog.delete(seed["bud"])
        assert repos.catalog.get(seed["bud"]) is not None

        sale_service.finalize_sale(repos, tab_service.load_tab(repos, tab.id), "cash")
        with repos.unit_of_work():
            repos.catalog.delete(seed["bud"])

        assert repos.catalog.get(seed["bud"]) is None
        row = db.session.query(TabItem).filter_by(tab_id=tab.id).one()
        assert row.inventory_id is None
        assert row.name == "Bud Light"

    def test_delete_unknown(self, repos, db_session):
        with pytest.raises(NotFoundError):
            repos.catalog.delete(12345)


class TestSqlTabsAndSales:

    def test_save_load_round_trip(self, repos, seed):
        cart = _cart_with(repos, seed["bud"], seed["bud"], seed["vodka"])
        tab = tab_service.save_tab(repos, cart, "Dana")

        loaded = tab_service.load_tab(repos, tab.id)
        assert [(line.name, line.quantity) for line in loaded.lines] == [("Bud Light", 2), ("Well Vodka", 1)]
        assert loaded.lines[0].db_ids == cart.lines[0].db_ids
        assert repos.catalog.get(seed["bud"]).stock_count == 46

    def test_void_persists_row_status_and_audit_sale(self, repos, seed):
        cart = _cart_with(repos, seed["bud"], seed["bud"])
        tab_service.save_tab(repos, cart, "Dana")
        row_id = cart.lines[0].db_ids[-1]

        flow = VoidWorkflow(repos, cart.lines[0].unique_id)
        flow.select_reason(cart, "waste")
        flow.submit_pin(cart, "2222")

        row = db.session.get(TabItem, row_id)
        assert row.status == "voided"
        assert row.void_reason == "waste"
        assert row.voided_at is not None
        sales = repos.sales.list()
        assert [s.payment_method for s in sales] == ["waste"]
        assert sales[0].items[0]["row_id"] == row_id

        with pytest.raises(ConflictError):
            repos.tabs.mark_voided(row_id, "waste")

    def test_paid_tab_rows_cannot_be_voided(self, repos, seed):
        cart = _cart_with(repos, seed["bud"])
        tab = tab_service.save_tab(repos, cart, "Dana")
        row_id = cart.lines[0].db_ids[0]
        tab_service.close_tab(repos, tab.id)

        with pytest.raises(ConflictError):
            with repos.unit_of_work():
                repos.tabs.mark_voided(row_id, "entry_error")
        assert db.session.get(TabItem, row_id).status == "active"
        with pytest.raises(ConflictError):
            tab_service.load_tab(repos, tab.id)

    def test_unit_of_work_rolls_back(self, repos, seed):
        with pytest.raises(RuntimeError):
            with repos.unit_of_work():
                repos.sales.record(SaleRecord(items=[], total=Decimal("1.00"), payment_method="cash"))
                raise RuntimeError("boom")
        assert repos.sales.list() == []

    def test_nested_unit_of_work_commits_once(self, repos, seed):
        with repos.unit_of_work():
            tab = repos.tabs.create("Dana")
            with repos.unit_of_work():
                repos.tabs.insert_item_rows([
                    TabRow(tab_id=tab.id, inventory_id=seed["bud"], name="Bud Light", price=Decimal("4.00")),
                    TabRow(tab_id=tab.id, inventory_id=seed["bud"], name="Bud Light", price=Decimal("4.00")),
                ])
        rows = repos.tabs.fetch_active_rows(tab.id)
        assert len(rows) == 2
        assert rows[0].id < rows[1].id

    def test_update_rejects_unknown_fields(self, repos, seed):
        tab = repos.tabs.create("Dana")
        with pytest.raises(ValidationError):
            repos.tabs.update(tab.id, status="paid")


class TestErrorTranslation:

    def test_operational_error_is_transient(self, repos, db_session):
        exc = repos._translate(OperationalError("SELECT 1", {}, Exception("database is locked")))
        assert isinstance(exc, NetworkError)
        assert exc.details["transient"] is True

    def test_integrity_error_is_conflict(self, repos, db_session):
        exc = repos._translate(IntegrityError("INSERT", {}, Exception("constraint failed")))
        assert isinstance(exc, ConflictError)

    def test_check_constraint_surfaces_as_conflict(self, repos, seed):
        with pytest.raises(ConflictError):
            with repos.unit_of_work():
                item = db.session.get(InventoryItem, seed["bud"])
                item.stock_count = -1
