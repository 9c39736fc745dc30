from __future__ import annotations

from ..extensions import db
from barpos.time_utils import to_utc_z


class Sale(db.Model):
    """
    Completed transaction (or $0 void audit record).

    WHY items is a snapshot: later catalog edits (price changes, deletions)
    must not retroactively alter historical reports, so the cart lines are
    copied as JSON at finalize time and never updated.

    Void audit records use total=0, tip=0 and payment_method=<void reason>.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_payment_method_date", "payment_method", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Immutable JSON snapshot of cart lines
    items = db.Column(db.JSON, nullable=False, default=list)

    # All amounts rounded to cents at persistence time
    total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tip = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    # cash, card, entry_error, waste, manager_void
    payment_method = db.Column(db.String(32), nullable=False, index=True)
    employee_name = db.Column(db.String(255), nullable=True)

    tab_id = db.Column(db.Integer, db.ForeignKey("tabs.id"), nullable=True, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "items": list(self.items or []),
            "total": f"{self.total:.2f}",
            "tip": f"{self.tip:.2f}",
            "discount": f"{self.discount:.2f}",
            "payment_method": self.payment_method,
            "employee_name": self.employee_name,
            "tab_id": self.tab_id,
            "date": to_utc_z(self.date),
        }
