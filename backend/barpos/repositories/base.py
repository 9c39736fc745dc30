"""
Repository contracts for the order engine's collaborators.

Services only ever talk to these interfaces. Two implementations ship:
- repositories.sql: Flask-SQLAlchemy, used by the application
- repositories.memory: dict-backed, used by service tests

Records are plain frozen dataclasses so services never hold ORM objects
across a unit of work.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, time
from decimal import Decimal
from typing import Iterator, Mapping, Optional, Protocol, Sequence

from ..time_utils import to_utc_z


# =============================================================================
# RECORDS
# =============================================================================

@dataclass(frozen=True)
class CatalogItem:
    id: int
    name: str
    price: Decimal
    category: str
    tier: Optional[str] = None
    stock_count: Optional[int] = None
    is_available: bool = True

    @property
    def is_tracked(self) -> bool:
        return self.stock_count is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": f"{self.price:.2f}",
            "category": self.category,
            "tier": self.tier,
            "stock_count": self.stock_count,
            "is_available": self.is_available,
        }


@dataclass(frozen=True)
class HappyHour:
    id: int
    name: str
    start_time: time
    end_time: time
    category: str
    discount_amount: Decimal
    days: frozenset = frozenset()

    def applies_to(self, category: str) -> bool:
        return self.category == "all" or self.category == category

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "category": self.category,
            "discount_amount": f"{self.discount_amount:.2f}",
            "days": sorted(self.days),
        }


@dataclass(frozen=True)
class TabRecord:
    id: int
    customer_name: str
    status: str

    def to_dict(self) -> dict:
        return {"id": self.id, "customer_name": self.customer_name, "status": self.status}


@dataclass(frozen=True)
class TabRow:
    """One persisted unit. id is None until inserted."""
    tab_id: int
    inventory_id: Optional[int]
    name: str
    price: Decimal
    category: Optional[str] = None
    is_happy_hour: bool = False
    note: Optional[str] = None
    status: str = "active"
    quantity: int = 1
    id: Optional[int] = None
    void_reason: Optional[str] = None


@dataclass(frozen=True)
class SaleRecord:
    items: list
    total: Decimal
    payment_method: str
    tip: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    employee_name: Optional[str] = None
    tab_id: Optional[int] = None
    date: Optional[datetime] = None
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "items": list(self.items),
            "total": f"{self.total:.2f}",
            "tip": f"{self.tip:.2f}",
            "discount": f"{self.discount:.2f}",
            "payment_method": self.payment_method,
            "employee_name": self.employee_name,
            "tab_id": self.tab_id,
            "date": to_utc_z(self.date),
        }


@dataclass(frozen=True)
class UserRecord:
    id: int
    name: str
    role: str
    pin_hash: str


# =============================================================================
# INTERFACES
# =============================================================================

class InventoryCatalog(Protocol):
    def list(self) -> list[CatalogItem]: ...

    def get(self, item_id: int) -> Optional[CatalogItem]: ...

    def add(
        self,
        *,
        name: str,
        price: Decimal,
        category: str,
        tier: Optional[str] = None,
        stock_count: Optional[int] = None,
    ) -> CatalogItem: ...

    def delete(self, item_id: int) -> None:
        """Raise ConflictError when active tab rows reference the item."""

    def deduct(self, quantities: Mapping[int, int]) -> None:
        """Subtract per-item units, flooring at 0. Untracked items are skipped."""

    def restore(self, item_id: int, units: int) -> None: ...


class SalesLedger(Protocol):
    def record(self, sale: SaleRecord) -> SaleRecord: ...

    def list(self) -> list[SaleRecord]: ...

    def clear_all(self) -> int: ...


class TabStore(Protocol):
    def create(self, customer_name: str) -> TabRecord: ...

    def get(self, tab_id: int) -> Optional[TabRecord]: ...

    def update(self, tab_id: int, **fields) -> TabRecord: ...

    def list_open(self) -> list[TabRecord]: ...

    def insert_item_rows(self, rows: Sequence[TabRow]) -> list[int]:
        """Insert rows in order and return their new ids in the same order."""

    def fetch_active_rows(self, tab_id: int) -> list[TabRow]:
        """Active rows for the tab in insertion order."""

    def update_row_notes(self, row_ids: Sequence[int], note: Optional[str]) -> None: ...

    def mark_voided(self, row_id: int, reason: str) -> None: ...

    def close(self, tab_id: int) -> None: ...


class UserStore(Protocol):
    def list(self) -> list[UserRecord]: ...


class HappyHourStore(Protocol):
    def list(self) -> list[HappyHour]: ...


# =============================================================================
# BUNDLE
# =============================================================================

@dataclass
class Repositories:
    """
    All collaborator repositories plus a unit of work.

    unit_of_work() is reentrant: only the outermost block commits (or rolls
    back), so a service can open one and still be composed into a larger
    operation.
    """
    catalog: InventoryCatalog
    sales: SalesLedger
    tabs: TabStore
    users: UserStore
    happy_hours: HappyHourStore
    _depth: int = field(default=0, init=False, repr=False)

    @contextmanager
    def unit_of_work(self) -> Iterator["Repositories"]:
        outermost = self._depth == 0
        if outermost:
            self._begin()
        self._depth += 1
        try:
            yield self
        except BaseException as exc:
            self._depth -= 1
            if outermost:
                self._rollback()
            translated = self._translate(exc)
            if translated is not exc:
                raise translated from exc
            raise
        self._depth -= 1
        if outermost:
            try:
                self._commit()
            except Exception as exc:
                self._rollback()
                translated = self._translate(exc)
                if translated is not exc:
                    raise translated from exc
                raise

    def _begin(self) -> None:
        pass

    def _commit(self) -> None:
        pass

    def _rollback(self) -> None:
        pass

    def _translate(self, exc: BaseException) -> BaseException:
        """Map backend-specific failures onto the PosError taxonomy."""
        return exc
