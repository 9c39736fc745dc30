# Overview: Stock ledger; availability status and deduction/restoration against the catalog.

"""
Stock Invariants (authoritative)

- stock_count NULL means untracked: unlimited, never sold out on count.
- Effective stock = stock_count - units of the item already in the cart
  that have NOT been deducted yet (lines without a tab_id). Lines loaded
  from a tab were deducted when the tab was saved.
- Stock never goes negative: deduction floors at 0 and flips is_available.
- Only entry_error voids restore stock; waste/manager_void units are gone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ..repositories import CatalogItem

DEFAULT_LOW_STOCK_THRESHOLD = 10


@dataclass(frozen=True)
class StockStatus:
    sold_out: bool
    low_stock: bool
    effective_stock: Optional[int]

    def to_dict(self) -> dict:
        return {
            "sold_out": self.sold_out,
            "low_stock": self.low_stock,
            "effective_stock": self.effective_stock,
        }


def pending_quantity(item_id: int, lines: Iterable) -> int:
    """Units of item_id in the cart that stock has not been deducted for."""
    return sum(
        line.quantity
        for line in lines
        if line.item_id == item_id and line.tab_id is None
    )


def effective_stock(item: CatalogItem, cart) -> Optional[int]:
    if not item.is_tracked:
        return None
    return item.stock_count - pending_quantity(item.id, cart.lines)


def stock_status(
    item: CatalogItem,
    cart,
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
) -> StockStatus:
    remaining = effective_stock(item, cart)
    sold_out = (not item.is_available) or (remaining is not None and remaining <= 0)
    low_stock = remaining is not None and not sold_out and remaining < low_stock_threshold
    return StockStatus(sold_out=sold_out, low_stock=low_stock, effective_stock=remaining)


def deduct_stock(catalog, lines: Iterable) -> dict[int, int]:
    """
    Deduct stock for every catalog-backed line.

    Quantities are aggregated per item so the catalog issues one
    conditional update per item. Custom items carry no item_id and are
    skipped; untracked items are skipped by the catalog itself.
    """
    quantities: dict[int, int] = {}
    for line in lines:
        if line.item_id is None:
            continue
        quantities[line.item_id] = quantities.get(line.item_id, 0) + line.quantity
    if quantities:
        catalog.deduct(quantities)
    return quantities


def restore_stock(catalog, line, units: int = 1) -> None:
    if line.item_id is None or units <= 0:
        return
    catalog.restore(line.item_id, units)
