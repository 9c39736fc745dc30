# Overview: Dict-backed repositories for tests and offline demos.

from __future__ import annotations

import copy
import itertools
import threading
from dataclasses import replace
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .base import (
    CatalogItem,
    HappyHour,
    Repositories,
    SaleRecord,
    TabRecord,
    TabRow,
    UserRecord,
)


class MemoryTabStore:
    def __init__(self):
        self.tabs: dict[int, TabRecord] = {}
        self.rows: dict[int, TabRow] = {}
        self._tab_ids = itertools.count(1)
        self._row_ids = itertools.count(1)

    def _require(self, tab_id: int) -> TabRecord:
        tab = self.tabs.get(tab_id)
        if tab is None:
            raise NotFoundError(f"Tab {tab_id} not found")
        return tab

    def create(self, customer_name: str) -> TabRecord:
        tab = TabRecord(id=next(self._tab_ids), customer_name=customer_name, status="open")
        self.tabs[tab.id] = tab
        return tab

    def get(self, tab_id: int) -> Optional[TabRecord]:
        return self.tabs.get(tab_id)

    def update(self, tab_id: int, **fields) -> TabRecord:
        unknown = set(fields) - {"customer_name"}
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
        tab = replace(self._require(tab_id), **fields)
        self.tabs[tab_id] = tab
        return tab

    def list_open(self) -> list[TabRecord]:
        return [t for t in self.tabs.values() if t.status == "open"]

    def insert_item_rows(self, rows: Sequence[TabRow]) -> list[int]:
        ids = []
        for row in rows:
            self._require(row.tab_id)
            stored = replace(row, id=next(self._row_ids), status="active", quantity=1)
            self.rows[stored.id] = stored
            ids.append(stored.id)
        return ids

    def fetch_active_rows(self, tab_id: int) -> list[TabRow]:
        return sorted(
            (r for r in self.rows.values() if r.tab_id == tab_id and r.status == "active"),
            key=lambda r: r.id,
        )

    def update_row_notes(self, row_ids: Sequence[int], note: Optional[str]) -> None:
        for row_id in row_ids:
            if row_id in self.rows:
                self.rows[row_id] = replace(self.rows[row_id], note=note)

    def mark_voided(self, row_id: int, reason: str) -> None:
        row = self.rows.get(row_id)
        if row is None:
            raise NotFoundError(f"Tab item {row_id} not found")
        if row.status != "active":
            raise ConflictError(f"Tab item {row_id} is already {row.status}")
        if self._require(row.tab_id).status == "paid":
            raise ConflictError(f"Tab {row.tab_id} is already paid", details={"tab_id": row.tab_id})
        self.rows[row_id] = replace(row, status="voided", void_reason=reason)

    def close(self, tab_id: int) -> None:
        tab = self._require(tab_id)
        if tab.status == "paid":
            raise ConflictError(f"Tab {tab_id} is already paid")
        self.tabs[tab_id] = replace(tab, status="paid")


class MemoryInventoryCatalog:
    def __init__(self, tabs: MemoryTabStore, items: Sequence[CatalogItem] = ()):
        self._tabs = tabs
        self._lock = threading.Lock()
        self.items: dict[int, CatalogItem] = {i.id: i for i in items}
        self._ids = itertools.count(max(self.items, default=0) + 1)

    def list(self) -> list[CatalogItem]:
        return [self.items[k] for k in sorted(self.items)]

    def get(self, item_id: int) -> Optional[CatalogItem]:
        return self.items.get(item_id)

    def add(self, *, name, price, category, tier=None, stock_count=None) -> CatalogItem:
        if stock_count is not None and stock_count < 0:
            raise ValidationError("stock_count must be >= 0")
        item = CatalogItem(
            id=next(self._ids),
            name=name,
            price=Decimal(price),
            category=category,
            tier=tier,
            stock_count=stock_count,
            is_available=stock_count is None or stock_count > 0,
        )
        self.items[item.id] = item
        return item

    def delete(self, item_id: int) -> None:
        if item_id not in self.items:
            raise NotFoundError(f"Item {item_id} not found")
        for row in self._tabs.rows.values():
            tab = self._tabs.tabs.get(row.tab_id)
            if row.inventory_id == item_id and row.status == "active" and tab and tab.status == "open":
                raise ConflictError(
                    "Item is on an open tab and cannot be deleted",
                    details={"item_id": item_id},
                )
        del self.items[item_id]

    def deduct(self, quantities: Mapping[int, int]) -> None:
        with self._lock:
            for item_id, qty in quantities.items():
                item = self.items.get(item_id)
                if item is None or not item.is_tracked or qty <= 0:
                    continue
                remaining = max(0, item.stock_count - qty)
                self.items[item_id] = replace(item, stock_count=remaining, is_available=remaining > 0)

    def restore(self, item_id: int, units: int) -> None:
        with self._lock:
            item = self.items.get(item_id)
            if item is None or not item.is_tracked or units <= 0:
                return
            self.items[item_id] = replace(
                item,
                stock_count=item.stock_count + units,
                is_available=item.is_available or item.stock_count == 0,
            )


class MemorySalesLedger:
    def __init__(self):
        self.sales: list[SaleRecord] = []
        self._ids = itertools.count(1)

    def record(self, sale: SaleRecord) -> SaleRecord:
        stored = replace(sale, id=next(self._ids), items=copy.deepcopy(list(sale.items)), date=sale.date or utcnow())
        self.sales.append(stored)
        return stored

    def list(self) -> list[SaleRecord]:
        return list(reversed(self.sales))

    def clear_all(self) -> int:
        count = len(self.sales)
        self.sales.clear()
        return count


class MemoryUserStore:
    def __init__(self, users: Sequence[UserRecord] = ()):
        self.users = list(users)

    def list(self) -> list[UserRecord]:
        return list(self.users)


class MemoryHappyHourStore:
    def __init__(self, rules: Sequence[HappyHour] = ()):
        self.rules = list(rules)

    def list(self) -> list[HappyHour]:
        return list(self.rules)


class MemoryRepositories(Repositories):
    """
    Unit of work snapshots every store on begin and restores it on rollback,
    giving the same all-or-nothing behaviour as the SQL session.
    """

    def _stores(self):
        return (self.catalog, self.sales, self.tabs, self.users, self.happy_hours)

    def _begin(self) -> None:
        self._snapshot = [
            {k: copy.copy(v) for k, v in vars(store).items() if not k.startswith("_")}
            for store in self._stores()
        ]

    def _commit(self) -> None:
        self._snapshot = None

    def _rollback(self) -> None:
        snapshot = getattr(self, "_snapshot", None)
        if snapshot is None:
            return
        for store, state in zip(self._stores(), snapshot):
            for key, value in state.items():
                setattr(store, key, value)
        self._snapshot = None


def memory_repositories(
    *,
    items: Sequence[CatalogItem] = (),
    rules: Sequence[HappyHour] = (),
    users: Sequence[UserRecord] = (),
) -> MemoryRepositories:
    tabs = MemoryTabStore()
    return MemoryRepositories(
        catalog=MemoryInventoryCatalog(tabs, items),
        sales=MemorySalesLedger(),
        tabs=tabs,
        users=MemoryUserStore(users),
        happy_hours=MemoryHappyHourStore(rules),
    )
