# Overview: Flask-SQLAlchemy implementations of the collaborator repositories.

from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Optional, Sequence

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import HappyHourRule, InventoryItem, Sale, Tab, TabItem, User
from ..models.tabs import ROW_STATUS_ACTIVE, ROW_STATUS_VOIDED, TAB_STATUS_OPEN, TAB_STATUS_PAID
from ..time_utils import utcnow
from ..validation import ConflictError, NetworkError, NotFoundError, ValidationError
from .base import (
    CatalogItem,
    HappyHour,
    Repositories,
    SaleRecord,
    TabRecord,
    TabRow,
    UserRecord,
)

TAB_UPDATABLE_FIELDS = frozenset({"customer_name"})


def _item_record(item: InventoryItem) -> CatalogItem:
    return CatalogItem(
        id=item.id,
        name=item.name,
        price=Decimal(item.price),
        category=item.category,
        tier=item.tier,
        stock_count=item.stock_count,
        is_available=bool(item.is_available),
    )


def _tab_record(tab: Tab) -> TabRecord:
    return TabRecord(id=tab.id, customer_name=tab.customer_name, status=tab.status)


def _row_record(row: TabItem) -> TabRow:
    return TabRow(
        id=row.id,
        tab_id=row.tab_id,
        inventory_id=row.inventory_id,
        name=row.name,
        price=Decimal(row.price),
        category=row.category,
        is_happy_hour=bool(row.is_happy_hour),
        note=row.note,
        status=row.status,
        quantity=row.quantity,
        void_reason=row.void_reason,
    )


def _sale_record(sale: Sale) -> SaleRecord:
    return SaleRecord(
        id=sale.id,
        items=list(sale.items or []),
        total=Decimal(sale.total),
        tip=Decimal(sale.tip),
        discount=Decimal(sale.discount),
        payment_method=sale.payment_method,
        employee_name=sale.employee_name,
        tab_id=sale.tab_id,
        date=sale.date,
    )


class SqlInventoryCatalog:
    """
    Catalog backed by the inventory_items table.

    CONCURRENCY: deduct/restore are single conditional UPDATE statements,
    so two terminals selling the same bottle cannot lose an update the way
    a read-modify-write would. Reads use populate_existing because those
    UPDATEs bypass the session's identity map.
    """

    def list(self) -> list[CatalogItem]:
        items = (
            db.session.query(InventoryItem)
            .order_by(InventoryItem.id)
            .populate_existing()
            .all()
        )
        return [_item_record(i) for i in items]

    def get(self, item_id: int) -> Optional[CatalogItem]:
        item = db.session.get(InventoryItem, item_id, populate_existing=True)
        return _item_record(item) if item else None

    def add(self, *, name, price, category, tier=None, stock_count=None) -> CatalogItem:
        if stock_count is not None and stock_count < 0:
            raise ValidationError("stock_count must be >= 0")
        item = InventoryItem(
            name=name,
            price=price,
            category=category,
            tier=tier,
            stock_count=stock_count,
            is_available=stock_count is None or stock_count > 0,
        )
        db.session.add(item)
        db.session.flush()
        return _item_record(item)

    def delete(self, item_id: int) -> None:
        item = db.session.get(InventoryItem, item_id)
        if item is None:
            raise NotFoundError(f"Item {item_id} not found")

        referenced = (
            db.session.query(TabItem.id)
            .join(Tab, Tab.id == TabItem.tab_id)
            .filter(
                TabItem.inventory_id == item_id,
                TabItem.status == ROW_STATUS_ACTIVE,
                Tab.status == TAB_STATUS_OPEN,
            )
            .first()
        )
        if referenced:
            raise ConflictError(
                "Item is on an open tab and cannot be deleted",
                details={"item_id": item_id},
            )

        # Rows on paid tabs keep their name/price snapshot
        db.session.query(TabItem).filter(TabItem.inventory_id == item_id).update(
            {TabItem.inventory_id: None}, synchronize_session=False
        )
        db.session.delete(item)
        db.session.flush()

    def deduct(self, quantities: Mapping[int, int]) -> None:
        for item_id, qty in quantities.items():
            if qty <= 0:
                continue
            has_more = InventoryItem.stock_count > qty
            db.session.execute(
                update(InventoryItem)
                .where(InventoryItem.id == item_id, InventoryItem.stock_count.isnot(None))
                # is_available first: MySQL evaluates SET clauses left to right
                .ordered_values(
                    (InventoryItem.is_available, case((has_more, True), else_=False)),
                    (InventoryItem.stock_count, case((has_more, InventoryItem.stock_count - qty), else_=0)),
                )
                .execution_options(synchronize_session=False)
            )

    def restore(self, item_id: int, units: int) -> None:
        if units <= 0:
            return
        db.session.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item_id, InventoryItem.stock_count.isnot(None))
            # Only a sold-out item comes back; a manual unavailable flag is kept
            .ordered_values(
                (InventoryItem.is_available, case((InventoryItem.stock_count == 0, True), else_=InventoryItem.is_available)),
                (InventoryItem.stock_count, InventoryItem.stock_count + units),
            )
            .execution_options(synchronize_session=False)
        )


class SqlSalesLedger:
    def record(self, sale: SaleRecord) -> SaleRecord:
        row = Sale(
            items=list(sale.items),
            total=sale.total,
            tip=sale.tip,
            discount=sale.discount,
            payment_method=sale.payment_method,
            employee_name=sale.employee_name,
            tab_id=sale.tab_id,
            date=sale.date or utcnow(),
        )
        db.session.add(row)
        db.session.flush()
        return _sale_record(row)

    def list(self) -> list[SaleRecord]:
        rows = db.session.query(Sale).order_by(Sale.date.desc(), Sale.id.desc()).all()
        return [_sale_record(s) for s in rows]

    def clear_all(self) -> int:
        return db.session.query(Sale).delete(synchronize_session=False)


class SqlTabStore:
    def _require(self, tab_id: int) -> Tab:
        tab = db.session.get(Tab, tab_id)
        if tab is None:
            raise NotFoundError(f"Tab {tab_id} not found")
        return tab

    def create(self, customer_name: str) -> TabRecord:
        tab = Tab(customer_name=customer_name, status=TAB_STATUS_OPEN)
        db.session.add(tab)
        db.session.flush()
        return _tab_record(tab)

    def get(self, tab_id: int) -> Optional[TabRecord]:
        tab = db.session.get(Tab, tab_id)
        return _tab_record(tab) if tab else None

    def update(self, tab_id: int, **fields) -> TabRecord:
        unknown = set(fields) - TAB_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
        tab = self._require(tab_id)
        for key, value in fields.items():
            setattr(tab, key, value)
        db.session.flush()
        return _tab_record(tab)

    def list_open(self) -> list[TabRecord]:
        tabs = (
            db.session.query(Tab)
            .filter_by(status=TAB_STATUS_OPEN)
            .order_by(Tab.created_at, Tab.id)
            .all()
        )
        return [_tab_record(t) for t in tabs]

    def insert_item_rows(self, rows: Sequence[TabRow]) -> list[int]:
        objs = [
            TabItem(
                tab_id=r.tab_id,
                inventory_id=r.inventory_id,
                name=r.name,
                category=r.category,
                price=r.price,
                quantity=1,
                is_happy_hour=r.is_happy_hour,
                note=r.note,
                status=ROW_STATUS_ACTIVE,
            )
            for r in rows
        ]
        # Insert one at a time so ids follow list order on every backend
        for obj in objs:
            db.session.add(obj)
            db.session.flush()
        return [obj.id for obj in objs]

    def fetch_active_rows(self, tab_id: int) -> list[TabRow]:
        rows = (
            db.session.query(TabItem)
            .filter_by(tab_id=tab_id, status=ROW_STATUS_ACTIVE)
            .order_by(TabItem.id)
            .all()
        )
        return [_row_record(r) for r in rows]

    def update_row_notes(self, row_ids: Sequence[int], note: Optional[str]) -> None:
        if not row_ids:
            return
        rows = db.session.query(TabItem).filter(TabItem.id.in_(list(row_ids))).all()
        for row in rows:
            row.note = note
        db.session.flush()

    def mark_voided(self, row_id: int, reason: str) -> None:
        row = db.session.get(TabItem, row_id)
        if row is None:
            raise NotFoundError(f"Tab item {row_id} not found")
        if row.status != ROW_STATUS_ACTIVE:
            raise ConflictError(f"Tab item {row_id} is already {row.status}")
        if db.session.get(Tab, row.tab_id).status == TAB_STATUS_PAID:
            raise ConflictError(f"Tab {row.tab_id} is already paid", details={"tab_id": row.tab_id})
        row.status = ROW_STATUS_VOIDED
        row.void_reason = reason
        row.voided_at = utcnow()
        db.session.flush()

    def close(self, tab_id: int) -> None:
        tab = self._require(tab_id)
        if tab.status == TAB_STATUS_PAID:
            raise ConflictError(f"Tab {tab_id} is already paid")
        tab.status = TAB_STATUS_PAID
        tab.closed_at = utcnow()
        db.session.flush()


class SqlUserStore:
    def list(self) -> list[UserRecord]:
        users = db.session.query(User).filter_by(is_active=True).order_by(User.id).all()
        return [UserRecord(id=u.id, name=u.name, role=u.role, pin_hash=u.pin_hash) for u in users]


class SqlHappyHourStore:
    def list(self) -> list[HappyHour]:
        rules = db.session.query(HappyHourRule).order_by(HappyHourRule.id).all()
        return [
            HappyHour(
                id=r.id,
                name=r.name,
                start_time=r.start_time,
                end_time=r.end_time,
                category=r.category,
                discount_amount=Decimal(r.discount_amount),
                days=frozenset(r.days or []),
            )
            for r in rules
        ]


class SqlRepositories(Repositories):
    """Unit of work maps onto the Flask-SQLAlchemy session transaction."""

    def _commit(self) -> None:
        db.session.commit()

    def _rollback(self) -> None:
        db.session.rollback()

    def _translate(self, exc: BaseException) -> BaseException:
        if isinstance(exc, (OperationalError, StaleDataError)):
            return NetworkError(
                "Database temporarily unavailable",
                details={"transient": True, "cause": exc.__class__.__name__},
            )
        if isinstance(exc, IntegrityError):
            return ConflictError("Write rejected by database constraint")
        if isinstance(exc, SQLAlchemyError):
            return NetworkError(
                "Database request failed",
                details={"transient": False, "cause": exc.__class__.__name__},
            )
        return exc


def sql_repositories() -> SqlRepositories:
    return SqlRepositories(
        catalog=SqlInventoryCatalog(),
        sales=SqlSalesLedger(),
        tabs=SqlTabStore(),
        users=SqlUserStore(),
        happy_hours=SqlHappyHourStore(),
    )
