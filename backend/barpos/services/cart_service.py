# Overview: Cart builder; the in-memory order aggregate and its line operations.

"""
Cart Invariants (authoritative)

- line.subtotal == line.price * line.quantity; cart subtotal is their sum.
- price is fixed when the line is created (happy-hour price included) and
  never re-evaluated, even if the happy-hour window closes.
- Lines merge only when: same catalog item, same price, no note, and
  neither line is backed by persisted tab rows.
- quantity >= 1. Removing the last unit removes the line.
- Tab-backed lines (tab_id set) cannot be decremented directly; every
  persisted unit leaves through the void workflow for audit purposes.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from ..repositories import CatalogItem, HappyHour
from ..validation import (
    ConflictError,
    StockUnavailableError,
    ValidationError,
    parse_money,
    require_text,
)
from .pricing_service import ZERO, effective_price
from .stock_service import DEFAULT_LOW_STOCK_THRESHOLD, stock_status

CUSTOM_CATEGORY = "custom"


def _new_unique_id() -> str:
    return uuid.uuid4().hex


@dataclass
class CartLine:
    unique_id: str
    item_id: Optional[int]
    name: str
    price: Decimal
    category: Optional[str] = None
    quantity: int = 1
    note: Optional[str] = None
    is_happy_hour: bool = False
    is_custom: bool = False
    tab_id: Optional[int] = None
    # Persisted row ids, one per unit, most recent last
    db_ids: list[int] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    @property
    def is_persisted(self) -> bool:
        return self.tab_id is not None

    def can_merge_with(self, item_id: Optional[int], price: Decimal) -> bool:
        return (
            not self.is_custom
            and self.item_id is not None
            and self.item_id == item_id
            and self.price == price
            and self.note is None
            and self.tab_id is None
        )

    def snapshot(self, quantity: int | None = None) -> dict:
        """Immutable copy written into Sale.items."""
        qty = self.quantity if quantity is None else quantity
        return {
            "item_id": self.item_id,
            "name": self.name,
            "category": self.category,
            "price": f"{self.price:.2f}",
            "quantity": qty,
            "note": self.note,
            "is_happy_hour": self.is_happy_hour,
            "is_custom": self.is_custom,
        }

    def to_dict(self) -> dict:
        return {
            "unique_id": self.unique_id,
            "item_id": self.item_id,
            "name": self.name,
            "category": self.category,
            "price": f"{self.price:.2f}",
            "quantity": self.quantity,
            "subtotal": f"{self.subtotal:.2f}",
            "note": self.note,
            "is_happy_hour": self.is_happy_hour,
            "is_custom": self.is_custom,
            "tab_id": self.tab_id,
            "db_ids": list(self.db_ids),
        }


@dataclass
class Cart:
    """The order under construction. Owned by exactly one terminal session."""
    lines: list[CartLine] = field(default_factory=list)
    customer_name: Optional[str] = None
    tab_id: Optional[int] = None

    @property
    def subtotal(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), ZERO)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find_line(self, unique_id: str) -> CartLine:
        for line in self.lines:
            if line.unique_id == unique_id:
                return line
        raise ValidationError(f"Cart line {unique_id} not found")

    def clone(self) -> "Cart":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "customer_name": self.customer_name,
            "tab_id": self.tab_id,
            "lines": [line.to_dict() for line in self.lines],
            "subtotal": f"{self.subtotal:.2f}",
        }


def add_item(
    cart: Cart,
    item: CatalogItem,
    rules: Sequence[HappyHour] = (),
    now: datetime | None = None,
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
) -> CartLine:
    """
    Add one unit of a catalog item.

    Raises StockUnavailableError (cart untouched) when the item is sold out,
    counting units already in the cart.
    """
    status = stock_status(item, cart, low_stock_threshold)
    if status.sold_out:
        raise StockUnavailableError(
            f"{item.name} is sold out",
            details={"item_id": item.id, "effective_stock": status.effective_stock},
        )

    price, rule = effective_price(item, rules, now)

    for line in cart.lines:
        if line.can_merge_with(item.id, price):
            line.quantity += 1
            return line

    line = CartLine(
        unique_id=_new_unique_id(),
        item_id=item.id,
        name=item.name,
        category=item.category,
        price=price,
        is_happy_hour=rule is not None,
    )
    cart.lines.append(line)
    return line


def add_custom_item(cart: Cart, name, price) -> CartLine:
    """Open-price item outside the catalog: untracked, always available, never merged."""
    name = require_text(name, "name")
    price = parse_money(price, "price")
    line = CartLine(
        unique_id=_new_unique_id(),
        item_id=None,
        name=name,
        category=CUSTOM_CATEGORY,
        price=price,
        is_custom=True,
    )
    cart.lines.append(line)
    return line


def attach_note(cart: Cart, unique_id: str, text: Optional[str]) -> CartLine:
    line = cart.find_line(unique_id)
    note = text.strip() if isinstance(text, str) else None
    line.note = note or None
    return line


def decrement(cart: Cart, unique_id: str) -> Optional[CartLine]:
    """Remove one unsaved unit. Returns the line, or None once it is gone."""
    line = cart.find_line(unique_id)
    if line.is_persisted:
        raise ConflictError(
            "Saved items must be voided, not removed",
            details={"unique_id": unique_id, "tab_id": line.tab_id},
        )
    line.quantity -= 1
    if line.quantity <= 0:
        cart.lines.remove(line)
        return None
    return line


def reset(cart: Cart) -> None:
    cart.lines.clear()
    cart.customer_name = None
    cart.tab_id = None
