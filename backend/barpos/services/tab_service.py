# Overview: Tab repository; persists carts as reopenable tabs and rebuilds carts from rows.

"""
Tab Lifecycle (authoritative)

    Unsaved --save_tab--> Open --close_tab (sale finalizer only)--> Paid

- One TabItem row per physical unit: a line of quantity 3 becomes 3 rows.
- Stock is deducted exactly once per unit, when its row is first written.
  Lines that already carry a tab_id were deducted by an earlier save.
- Paid is terminal. Saving onto or closing a paid tab is a conflict.
- load_tab groups active rows by (inventory_id, price, note) in first-seen
  order; custom rows additionally group by name. Loading is idempotent:
  line ids derive from the first row id, so two loads compare equal.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..repositories import Repositories, TabRecord, TabRow
from ..validation import ConflictError, NotFoundError, require_text
from .cart_service import CUSTOM_CATEGORY, Cart, CartLine
from .concurrency import CancellationToken, check_cancelled
from .stock_service import deduct_stock

logger = logging.getLogger(__name__)

TAB_STATUS_PAID = "paid"


def _require_open_tab(repos: Repositories, tab_id: int) -> TabRecord:
    tab = repos.tabs.get(tab_id)
    if tab is None:
        raise NotFoundError(f"Tab {tab_id} not found")
    if tab.status == TAB_STATUS_PAID:
        raise ConflictError(f"Tab {tab_id} is already paid", details={"tab_id": tab_id})
    return tab


def _rows_for_line(tab_id: int, line: CartLine) -> list[TabRow]:
    return [
        TabRow(
            tab_id=tab_id,
            inventory_id=line.item_id,
            name=line.name,
            price=line.price,
            category=line.category,
            is_happy_hour=line.is_happy_hour,
            note=line.note,
        )
        for _ in range(line.quantity)
    ]


def save_tab(
    repos: Repositories,
    cart: Cart,
    customer_name,
    tab_id: Optional[int] = None,
    token: CancellationToken | None = None,
) -> TabRecord:
    """
    Persist the cart as a tab.

    Creates the tab when tab_id is None, otherwise renames it. New lines get
    their stock deducted and one row per unit; already-saved lines only have
    their note pushed to their rows. Runs as one unit of work: on any error
    (including cancellation) nothing is written and the cart is untouched.
    """
    name = require_text(customer_name, "customer_name")
    tab_id = tab_id if tab_id is not None else cart.tab_id

    saved = [line for line in cart.lines if line.tab_id is not None]
    new = [line for line in cart.lines if line.tab_id is None]
    assigned: list[tuple[CartLine, list[int]]] = []

    with repos.unit_of_work():
        check_cancelled(token)
        if tab_id is None:
            tab = repos.tabs.create(name)
        else:
            _require_open_tab(repos, tab_id)
            tab = repos.tabs.update(tab_id, customer_name=name)

        for line in saved:
            if line.tab_id != tab.id:
                raise ConflictError(
                    "Cart line belongs to a different tab",
                    details={"unique_id": line.unique_id, "tab_id": line.tab_id},
                )
            repos.tabs.update_row_notes(line.db_ids, line.note)

        if new:
            check_cancelled(token)
            deduct_stock(repos.catalog, new)

            rows = []
            for line in new:
                rows.extend(_rows_for_line(tab.id, line))
            check_cancelled(token)
            ids = repos.tabs.insert_item_rows(rows)

            offset = 0
            for line in new:
                assigned.append((line, ids[offset:offset + line.quantity]))
                offset += line.quantity

    for line, row_ids in assigned:
        line.tab_id = tab.id
        line.db_ids = list(row_ids)
    cart.tab_id = tab.id
    cart.customer_name = tab.customer_name

    logger.info(
        "Saved tab %s (%s): %d new unit(s)",
        tab.id,
        tab.customer_name,
        sum(len(ids) for _, ids in assigned),
    )
    return tab


def _group_key(row: TabRow) -> tuple:
    if row.inventory_id is None:
        return (None, row.price, row.note, row.name)
    return (row.inventory_id, row.price, row.note, None)


def load_tab(repos: Repositories, tab_id: int) -> Cart:
    """Rebuild a merged cart from the active rows of an open tab. Paid tabs stay closed."""
    tab = _require_open_tab(repos, tab_id)

    lines: dict[tuple, CartLine] = {}
    for row in repos.tabs.fetch_active_rows(tab_id):
        key = _group_key(row)
        line = lines.get(key)
        if line is None:
            line = CartLine(
                unique_id=f"tab-{tab_id}-row-{row.id}",
                item_id=row.inventory_id,
                name=row.name,
                category=row.category,
                price=row.price,
                quantity=0,
                note=row.note,
                is_happy_hour=row.is_happy_hour,
                is_custom=row.inventory_id is None and row.category == CUSTOM_CATEGORY,
                tab_id=tab_id,
            )
            lines[key] = line
        line.quantity += 1
        line.db_ids.append(row.id)

    return Cart(lines=list(lines.values()), customer_name=tab.customer_name, tab_id=tab.id)


def close_tab(repos: Repositories, tab_id: int) -> None:
    """Mark a tab paid. Only the sale finalizer calls this."""
    with repos.unit_of_work():
        _require_open_tab(repos, tab_id)
        repos.tabs.close(tab_id)


def list_open_tabs(repos: Repositories) -> list[TabRecord]:
    return repos.tabs.list_open()
