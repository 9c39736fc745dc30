# Overview: Void workflow; reverses one persisted unit under a reason, manager-PIN gated.

"""
Void Workflow

    REASON_SELECT --entry_error--------------------------> CONFIRMED
    REASON_SELECT --waste/manager_void--> PIN_ENTRY --ok--> CONFIRMED
    PIN_ENTRY --wrong PIN--> PIN_ENTRY (error set, nothing written)
    PIN_ENTRY --back--> REASON_SELECT
    any non-terminal --cancel--> CANCELLED (no side effects)

Confirming a void:
- targets the line's most recent persisted row (last db_id)
- marks that row voided and records a $0 audit Sale whose
  payment_method is the reason code
- removes exactly one unit from the in-memory line (and that db_id)
- entry_error puts the unit back in stock; waste and manager_void do not,
  the unit was poured or lost
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..repositories import Repositories, SaleRecord
from ..validation import ConflictError, ValidationError
from .auth_service import find_authorizer
from .cart_service import Cart, CartLine
from .concurrency import CancellationToken, check_cancelled
from .pricing_service import ZERO
from .stock_service import restore_stock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoidReason:
    code: str
    label: str
    requires_authorization: bool
    restores_stock: bool

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "label": self.label,
            "requires_authorization": self.requires_authorization,
        }


ENTRY_ERROR = VoidReason("entry_error", "Entry Error", requires_authorization=False, restores_stock=True)
WASTE = VoidReason("waste", "Spill / Waste", requires_authorization=True, restores_stock=False)
MANAGER_VOID = VoidReason("manager_void", "Manager Void", requires_authorization=True, restores_stock=False)

VOID_REASONS = {r.code: r for r in (ENTRY_ERROR, WASTE, MANAGER_VOID)}


def parse_reason(code) -> VoidReason:
    if isinstance(code, VoidReason):
        return code
    reason = VOID_REASONS.get(code)
    if reason is None:
        raise ValidationError(f"Invalid void reason: {code}. Must be one of {list(VOID_REASONS)}")
    return reason


def confirm_void(
    repos: Repositories,
    cart: Cart,
    unique_id: str,
    reason: VoidReason,
    employee_name: Optional[str] = None,
    token: CancellationToken | None = None,
) -> Optional[CartLine]:
    """
    Void one persisted unit of a cart line.

    Returns the line, or None when its last unit was voided.
    """
    line = cart.find_line(unique_id)
    if not line.is_persisted or not line.db_ids:
        raise ConflictError(
            "Only saved items can be voided; remove unsaved items instead",
            details={"unique_id": unique_id},
        )
    row_id = line.db_ids[-1]

    with repos.unit_of_work():
        check_cancelled(token)
        repos.tabs.mark_voided(row_id, reason.code)
        repos.sales.record(
            SaleRecord(
                items=[dict(line.snapshot(quantity=1), row_id=row_id)],
                total=ZERO,
                tip=ZERO,
                discount=ZERO,
                payment_method=reason.code,
                employee_name=employee_name,
                tab_id=line.tab_id,
            )
        )
        if reason.restores_stock:
            restore_stock(repos.catalog, line, 1)

    line.db_ids.pop()
    line.quantity -= 1
    logger.info(
        "Voided tab item %s (%s) on tab %s: %s",
        row_id,
        line.name,
        line.tab_id,
        reason.code,
    )
    if line.quantity <= 0:
        cart.lines.remove(line)
        return None
    return line


class VoidWorkflow:
    REASON_SELECT = "reason_select"
    PIN_ENTRY = "pin_entry"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    def __init__(self, repos: Repositories, unique_id: str, employee_name: Optional[str] = None):
        self.repos = repos
        self.unique_id = unique_id
        self.employee_name = employee_name
        self.state = self.REASON_SELECT
        self.reason: Optional[VoidReason] = None
        self.error: Optional[str] = None
        self.failed_attempts = 0
        self.authorized_by: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.state in (self.CONFIRMED, self.CANCELLED)

    def _require_state(self, *states: str) -> None:
        if self.state not in states:
            raise ConflictError(f"Void is in state {self.state}")

    def select_reason(self, cart: Cart, code, token: CancellationToken | None = None) -> str:
        self._require_state(self.REASON_SELECT)
        cart.find_line(self.unique_id)
        reason = parse_reason(code)
        self.reason = reason
        self.error = None
        if reason.requires_authorization:
            self.state = self.PIN_ENTRY
            return self.state
        confirm_void(self.repos, cart, self.unique_id, reason, self.employee_name, token)
        self.state = self.CONFIRMED
        return self.state

    def submit_pin(self, cart: Cart, pin, token: CancellationToken | None = None) -> str:
        """
        Authorize and confirm. A wrong PIN raises ConflictError and leaves
        the workflow in PIN_ENTRY with error set.
        """
        self._require_state(self.PIN_ENTRY)
        authorizer = find_authorizer(pin, self.repos.users.list())
        if authorizer is None:
            self.failed_attempts += 1
            self.error = "Invalid Manager PIN"
            logger.warning(
                "Void of %s (%s) denied: invalid manager PIN, attempt %d",
                self.unique_id,
                self.reason.code,
                self.failed_attempts,
            )
            raise ConflictError(self.error, details={"failed_attempts": self.failed_attempts})

        confirm_void(self.repos, cart, self.unique_id, self.reason, self.employee_name, token)
        self.error = None
        self.authorized_by = authorizer.name
        self.state = self.CONFIRMED
        logger.info("Void of %s authorized by %s", self.unique_id, authorizer.name)
        return self.state

    def back(self) -> str:
        if self.state == self.PIN_ENTRY:
            self.state = self.REASON_SELECT
            self.reason = None
            self.error = None
        elif self.state == self.REASON_SELECT:
            self.state = self.CANCELLED
        return self.state

    def cancel(self) -> str:
        if not self.is_finished:
            self.state = self.CANCELLED
        return self.state

    def to_dict(self) -> dict:
        return {
            "unique_id": self.unique_id,
            "state": self.state,
            "reason": self.reason.code if self.reason else None,
            "error": self.error,
            "failed_attempts": self.failed_attempts,
            "authorized_by": self.authorized_by,
            "reasons": [r.to_dict() for r in VOID_REASONS.values()],
        }
