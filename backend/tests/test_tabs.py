"""
Tab repository tests: save, reload, note sync and lifecycle.
"""

from datetime import datetime

import pytest

from barpos.services import cart_service, tab_service
from barpos.services.cart_service import Cart
from barpos.services.concurrency import CancellationToken
from barpos.validation import ConflictError, NotFoundError, OperationCancelledError, ValidationError

NOON = datetime(2026, 10, 16, 12, 0)


def _cart_with(repos, *item_ids):
    cart = Cart()
    rules = repos.happy_hours.list()
    for item_id in item_ids:
        cart_service.add_item(cart, repos.catalog.get(item_id), rules, now=NOON)
    return cart


class TestSaveTab:

    def test_one_row_per_unit(self, repos):
        cart = _cart_with(repos, 1, 1, 1, 3)
        tab = tab_service.save_tab(repos, cart, "Dana")

        rows = repos.tabs.fetch_active_rows(tab.id)
        assert len(rows) == 4
        assert all(r.quantity == 1 for r in rows)
        bud = cart.lines[0]
        assert bud.tab_id == tab.id
        assert bud.db_ids == [r.id for r in rows if r.inventory_id == 1]
        assert cart.tab_id == tab.id
        assert cart.customer_name == "Dana"

    def test_stock_deducted_once(self, repos):
        cart = _cart_with(repos, 1, 1)
        tab = tab_service.save_tab(repos, cart, "Dana")
        assert repos.catalog.get(1).stock_count == 46

        tab_service.save_tab(repos, cart, "Dana", tab.id)
        assert repos.catalog.get(1).stock_count == 46
        assert len(repos.tabs.fetch_active_rows(tab.id)) == 2

    def test_new_lines_appended_to_existing_tab(self, repos):
        cart = _cart_with(repos, 1)
        tab = tab_service.save_tab(repos, cart, "Dana")

        cart = tab_service.load_tab(repos, tab.id)
        cart_service.add_item(cart, repos.catalog.get(1), [], now=NOON)
        tab_service.save_tab(repos, cart, "Dana B.")

        assert repos.tabs.get(tab.id).customer_name == "Dana B."
        assert len(repos.tabs.fetch_active_rows(tab.id)) == 2
        assert repos.catalog.get(1).stock_count == 46

    def test_note_pushed_to_saved_rows(self, repos):
        cart = _cart_with(repos, 1, 1)
        tab = tab_service.save_tab(repos, cart, "Dana")
        cart_service.attach_note(cart, cart.lines[0].unique_id, "no lime")
        tab_service.save_tab(repos, cart, "Dana")

        assert {r.note for r in repos.tabs.fetch_active_rows(tab.id)} == {"no lime"}

    def test_blank_customer_name_rejected(self, repos):
        cart = _cart_with(repos, 1)
        with pytest.raises(ValidationError):
            tab_service.save_tab(repos, cart, "   ")
        assert repos.tabs.list_open() == []
        assert cart.lines[0].tab_id is None

    def test_paid_tab_cannot_be_saved(self, repos):
        cart = _cart_with(repos, 1)
        tab = tab_service.save_tab(repos, cart, "Dana")
        tab_service.close_tab(repos, tab.id)

        with pytest.raises(ConflictError):
            tab_service.save_tab(repos, _cart_with(repos, 1), "Dana", tab.id)

    def test_cancelled_save_writes_nothing(self, repos):
        cart = _cart_with(repos, 1, 1)
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            tab_service.save_tab(repos, cart, "Dana", token=token)
        assert repos.tabs.list_open() == []
        assert repos.catalog.get(1).stock_count == 48
        assert cart.lines[0].db_ids == []

    def test_failed_insert_rolls_back_stock(self, repos, monkeypatch):
        from barpos.validation import NetworkError

        def boom(rows):
            raise NetworkError("insert failed")

        monkeypatch.setattr(repos.tabs, "insert_item_rows", boom)
        cart = _cart_with(repos, 1, 1)
        with pytest.raises(NetworkError):
            tab_service.save_tab(repos, cart, "Dana")
        assert repos.catalog.get(1).stock_count == 48
        assert repos.tabs.tabs == {}


class TestLoadTab:

    def test_rows_grouped_by_item_price_and_note(self, repos):
        cart = _cart_with(repos, 1, 1, 1, 3)
        noted = cart_service.add_item(cart, repos.catalog.get(1), [], now=NOON)
        cart_service.add_custom_item(cart, "Snacks", "2.00")
        cart_service.attach_note(cart, cart.lines[1].unique_id, "double")
        tab = tab_service.save_tab(repos, cart, "Dana")
        assert noted is cart.lines[0]

        loaded = tab_service.load_tab(repos, tab.id)
        summary = [(line.name, line.quantity, line.note) for line in loaded.lines]
        assert summary == [("Bud Light", 4, None), ("Well Vodka", 1, "double"), ("Snacks", 1, None)]
        assert loaded.lines[0].db_ids == sorted(loaded.lines[0].db_ids)
        assert loaded.lines[2].is_custom is True

    def test_load_is_idempotent(self, repos):
        cart = _cart_with(repos, 1, 1, 3)
        tab = tab_service.save_tab(repos, cart, "Dana")
        first = tab_service.load_tab(repos, tab.id)
        second = tab_service.load_tab(repos, tab.id)
        assert first.to_dict() == second.to_dict()

    def test_loaded_lines_do_not_count_against_stock(self, repos):
        from barpos.services.stock_service import effective_stock

        cart = _cart_with(repos, 1, 1)
        tab = tab_service.save_tab(repos, cart, "Dana")
        loaded = tab_service.load_tab(repos, tab.id)
        assert effective_stock(repos.catalog.get(1), loaded) == 46

    def test_unknown_tab(self, repos):
        with pytest.raises(NotFoundError):
            tab_service.load_tab(repos, 999)


class TestTabLifecycle:

    def test_open_tabs_exclude_paid(self, repos):
        a = tab_service.save_tab(repos, _cart_with(repos, 1), "A")
        b = tab_service.save_tab(repos, _cart_with(repos, 3), "B")
        tab_service.close_tab(repos, a.id)
        assert [t.id for t in tab_service.list_open_tabs(repos)] == [b.id]

    def test_close_twice_is_conflict(self, repos):
        tab = tab_service.save_tab(repos, _cart_with(repos, 1), "A")
        tab_service.close_tab(repos, tab.id)
        with pytest.raises(ConflictError):
            tab_service.close_tab(repos, tab.id)

    def test_paid_tab_cannot_be_reloaded(self, repos):
        tab = tab_service.save_tab(repos, _cart_with(repos, 1, 3), "A")
        tab_service.close_tab(repos, tab.id)
        with pytest.raises(ConflictError):
            tab_service.load_tab(repos, tab.id)
