from __future__ import annotations

from ..extensions import db
from barpos.time_utils import to_utc_z


def _money(value) -> str | None:
    return f"{value:.2f}" if value is not None else None


class InventoryItem(db.Model):
    """
    Sellable menu item.

    STOCK DESIGN DECISION:
    stock_count is a mutable quantity, not a ledger sum. NULL means the item
    is untracked (draft beer, well pours) and never sells out on count alone.

    INVARIANTS:
    - stock_count, when present, is never negative
    - is_available is False whenever stock_count == 0
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("stock_count IS NULL OR stock_count >= 0", name="ck_inventory_stock_non_negative"),
        db.Index("ix_inventory_items_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)

    category = db.Column(db.String(64), nullable=False)
    # domestic / call / premium / well
    tier = db.Column(db.String(32), nullable=True)

    stock_count = db.Column(db.Integer, nullable=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_tracked(self) -> bool:
        return self.stock_count is not None

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} stock_count={self.stock_count}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": _money(self.price),
            "category": self.category,
            "tier": self.tier,
            "stock_count": self.stock_count,
            "is_available": self.is_available,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class HappyHourRule(db.Model):
    """
    Scheduled, category-scoped price reduction.

    Window is half-open: start_time <= now < end_time, on any weekday in days.
    category "all" matches every item.
    """
    __tablename__ = "happy_hour_rules"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    category = db.Column(db.String(64), nullable=False, default="all")
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    # JSON array of weekday names, e.g. ["Friday", "Saturday"]
    days = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
            "category": self.category,
            "discount_amount": _money(self.discount_amount),
            "days": list(self.days or []),
        }
