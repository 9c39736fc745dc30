from __future__ import annotations

from ..extensions import db
from barpos.time_utils import to_utc_z

TAB_STATUS_OPEN = "open"
TAB_STATUS_PAID = "paid"

ROW_STATUS_ACTIVE = "active"
ROW_STATUS_VOIDED = "voided"


class Tab(db.Model):
    """
    A customer's running order, persisted so it can be reopened.

    LIFECYCLE: open -> paid. paid is terminal and is only set by the
    sale finalizer.
    """
    __tablename__ = "tabs"
    __table_args__ = (
        db.Index("ix_tabs_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=TAB_STATUS_OPEN, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
        }


class TabItem(db.Model):
    """
    One physical unit sold on a tab.

    WHY one row per unit: a void targets exactly one unit without
    disturbing its siblings, and each void leaves its own audit trail.
    quantity is always 1.
    """
    __tablename__ = "tab_items"
    __table_args__ = (
        db.Index("ix_tab_items_tab_status", "tab_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tab_id = db.Column(db.Integer, db.ForeignKey("tabs.id"), nullable=False, index=True)

    # NULL for custom (open-price) items, or once the catalog item is deleted
    inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventory_items.id", ondelete="SET NULL"), nullable=True, index=True
    )

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    is_happy_hour = db.Column(db.Boolean, nullable=False, default=False)

    status = db.Column(db.String(16), nullable=False, default=ROW_STATUS_ACTIVE, index=True)
    note = db.Column(db.Text, nullable=True)
    void_reason = db.Column(db.String(32), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    tab = db.relationship("Tab", backref=db.backref("items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tab_id": self.tab_id,
            "inventory_id": self.inventory_id,
            "name": self.name,
            "category": self.category,
            "price": f"{self.price:.2f}",
            "quantity": self.quantity,
            "is_happy_hour": self.is_happy_hour,
            "status": self.status,
            "note": self.note,
            "void_reason": self.void_reason,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "created_at": to_utc_z(self.created_at),
        }
