# Overview: Terminal session controller; owns the cart aggregate and returns structured results.

"""
Terminal Session

WHY: One explicit owner for the cart, the active tab association, the
order discount and the in-flight void/payment workflows, instead of state
scattered across UI handlers.

RESULT CONTRACT:
- Every public operation returns a Result. PosError subclasses become
  Result.failure(kind, message, details); nothing recoverable is raised.
- Mutating operations run against a clone of the cart that replaces the
  live cart only on success, so a failed save/pay/void leaves the cart
  exactly as it was.
- save, void confirmation and payment completion hold the busy gate; a
  concurrent second call fails fast with a "busy" conflict. The gate is
  released on every path, including authorization failures.
- Every cart replacement happens under the session lock, so an edit made
  while a save is in flight lands on the saved cart instead of being
  overwritten by it.
- A confirmed payment only settles the order it was started for. Any
  change to the lines or discount after begin_payment is refused at
  completion and the payment has to be started again.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from ..repositories import Repositories
from ..time_utils import localnow
from ..validation import ConflictError, NotFoundError, PosError, ValidationError, parse_money
from . import cart_service, sale_service, tab_service
from .cart_service import Cart
from .concurrency import BusyGate, CancellationToken, run_with_retry
from .pricing_service import ZERO, Discount, compute_totals, effective_price, grand_total
from .sale_service import PaymentFlow
from .stock_service import DEFAULT_LOW_STOCK_THRESHOLD, stock_status
from .void_service import VoidWorkflow


@dataclass(frozen=True)
class Result:
    ok: bool
    value: Any = None
    error_kind: Optional[str] = None
    message: Optional[str] = None
    details: dict = field(default_factory=dict)

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: PosError) -> "Result":
        return cls(ok=False, error_kind=exc.kind, message=exc.message, details=dict(exc.details))

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True, "value": self.value}
        return {
            "ok": False,
            "error": self.message,
            "error_kind": self.error_kind,
            "details": self.details,
        }


@dataclass(frozen=True)
class TerminalSettings:
    tax_rate: Decimal = Decimal("0.07")
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD
    card_auth_delay_seconds: float = 2.0

    @classmethod
    def from_config(cls, config: Mapping) -> "TerminalSettings":
        return cls(
            tax_rate=Decimal(str(config.get("TAX_RATE", "0.07"))),
            low_stock_threshold=int(config.get("LOW_STOCK_THRESHOLD", DEFAULT_LOW_STOCK_THRESHOLD)),
            card_auth_delay_seconds=float(config.get("CARD_AUTH_DELAY_SECONDS", 2.0)),
        )


class TerminalSession:
    def __init__(
        self,
        repos: Repositories,
        settings: TerminalSettings | None = None,
        clock: Callable = localnow,
        sleep: Callable = time.sleep,
    ):
        self.repos = repos
        self.settings = settings or TerminalSettings()
        self.clock = clock
        self.sleep = sleep
        self.cart = Cart()
        self.discount = Discount.none()
        self.void_flow: Optional[VoidWorkflow] = None
        self.payment_flow: Optional[PaymentFlow] = None
        self._gate = BusyGate()
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # plumbing
    # -------------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._gate.busy

    def _apply(self, op: Callable[[Cart], Any]) -> Result:
        """Run op on a cart clone; swap it in only when op succeeds."""
        def _attempt():
            working = self.cart.clone()
            return working, op(working)

        with self._lock:
            try:
                working, value = run_with_retry(_attempt)
            except PosError as exc:
                return Result.failure(exc)
            self.cart = working
        return Result.success(value)

    def _guarded(self, op: Callable[[Cart], Any]) -> Result:
        if not self._gate.acquire():
            return Result.failure(ConflictError("Terminal is busy, try again"))
        try:
            return self._apply(op)
        finally:
            self._gate.release()

    def _read(self, op: Callable[[], Any]) -> Result:
        try:
            return Result.success(op())
        except PosError as exc:
            return Result.failure(exc)

    def _require_item(self, item_id):
        item = self.repos.catalog.get(item_id)
        if item is None:
            raise NotFoundError(f"Item {item_id} not found")
        return item

    # -------------------------------------------------------------------------
    # catalog view
    # -------------------------------------------------------------------------

    def menu(self, category: Optional[str] = None) -> Result:
        """Catalog with current price, happy-hour flag and stock status per item."""
        def _op():
            rules = self.repos.happy_hours.list()
            now = self.clock()
            entries = []
            for item in self.repos.catalog.list():
                if category and category != "all" and item.category != category:
                    continue
                price, rule = effective_price(item, rules, now)
                status = stock_status(item, self.cart, self.settings.low_stock_threshold)
                entry = item.to_dict()
                entry.update(
                    current_price=f"{price:.2f}",
                    is_happy_hour=rule is not None,
                    happy_hour=rule.name if rule else None,
                    **status.to_dict(),
                )
                entries.append(entry)
            return entries

        return self._read(_op)

    # -------------------------------------------------------------------------
    # cart builder
    # -------------------------------------------------------------------------

    def add_item(self, item_id) -> Result:
        def _op(cart):
            item = self._require_item(item_id)
            line = cart_service.add_item(
                cart,
                item,
                self.repos.happy_hours.list(),
                now=self.clock(),
                low_stock_threshold=self.settings.low_stock_threshold,
            )
            return line.to_dict()

        return self._apply(_op)

    def add_custom_item(self, name, price) -> Result:
        return self._apply(lambda cart: cart_service.add_custom_item(cart, name, price).to_dict())

    def attach_note(self, unique_id: str, text) -> Result:
        return self._apply(lambda cart: cart_service.attach_note(cart, unique_id, text).to_dict())

    def decrement(self, unique_id: str) -> Result:
        def _op(cart):
            line = cart_service.decrement(cart, unique_id)
            return line.to_dict() if line else None

        return self._apply(_op)

    def set_discount(self, discount_type: str, value) -> Result:
        try:
            self.discount = Discount(discount_type, value)
        except PosError as exc:
            return Result.failure(exc)
        return Result.success(self.discount.to_dict())

    def clear_discount(self) -> Result:
        self.discount = Discount.none()
        return Result.success(self.discount.to_dict())

    def totals(self, tip=ZERO) -> Result:
        def _op():
            tip_amount = parse_money(tip, "tip")
            totals = compute_totals(self.cart.lines, self.discount, self.settings.tax_rate)
            data = totals.to_dict()
            data["tip"] = f"{tip_amount:.2f}"
            data["grand_total"] = f"{grand_total(totals, tip_amount):.2f}"
            return data

        return self._read(_op)

    def new_order(self) -> Result:
        if self.busy:
            return Result.failure(ConflictError("Terminal is busy, try again"))
        with self._lock:
            cart_service.reset(self.cart)
            self.discount = Discount.none()
            self.void_flow = None
            self.payment_flow = None
            return Result.success(self.cart.to_dict())

    def snapshot(self) -> dict:
        return {
            "cart": self.cart.to_dict(),
            "discount": self.discount.to_dict(),
            "totals": compute_totals(self.cart.lines, self.discount, self.settings.tax_rate).to_dict(),
            "busy": self.busy,
            "void": self.void_flow.to_dict() if self.void_flow else None,
            "payment": self.payment_flow.to_dict() if self.payment_flow else None,
        }

    # -------------------------------------------------------------------------
    # tabs
    # -------------------------------------------------------------------------

    def save_tab(self, customer_name=None, token: CancellationToken | None = None) -> Result:
        def _op(cart):
            name = customer_name if customer_name is not None else cart.customer_name
            tab = tab_service.save_tab(self.repos, cart, name, cart.tab_id, token=token)
            return tab.to_dict()

        return self._guarded(_op)

    def load_tab(self, tab_id) -> Result:
        if self.busy:
            return Result.failure(ConflictError("Terminal is busy, try again"))
        with self._lock:
            try:
                cart = tab_service.load_tab(self.repos, tab_id)
            except PosError as exc:
                return Result.failure(exc)
            self.cart = cart
            self.discount = Discount.none()
            self.void_flow = None
            self.payment_flow = None
        return Result.success(cart.to_dict())

    def list_open_tabs(self) -> Result:
        return self._read(lambda: [t.to_dict() for t in tab_service.list_open_tabs(self.repos)])

    # -------------------------------------------------------------------------
    # voids
    # -------------------------------------------------------------------------

    def begin_void(self, unique_id: str, employee_name: Optional[str] = None) -> Result:
        def _op():
            line = self.cart.find_line(unique_id)
            if not line.is_persisted:
                raise ConflictError(
                    "Only saved items can be voided; remove unsaved items instead",
                    details={"unique_id": unique_id},
                )
            self.void_flow = VoidWorkflow(self.repos, unique_id, employee_name)
            return self.void_flow.to_dict()

        return self._read(_op)

    def _require_void_flow(self) -> VoidWorkflow:
        if self.void_flow is None or self.void_flow.is_finished:
            raise ConflictError("No void in progress")
        return self.void_flow

    def select_void_reason(self, code, token: CancellationToken | None = None) -> Result:
        def _op(cart):
            flow = self._require_void_flow()
            flow.select_reason(cart, code, token=token)
            return flow.to_dict()

        return self._guarded(_op)

    def submit_void_pin(self, pin, token: CancellationToken | None = None) -> Result:
        def _op(cart):
            flow = self._require_void_flow()
            flow.submit_pin(cart, pin, token=token)
            return flow.to_dict()

        return self._guarded(_op)

    def void_back(self) -> Result:
        def _op():
            flow = self._require_void_flow()
            flow.back()
            return flow.to_dict()

        return self._read(_op)

    def cancel_void(self) -> Result:
        flow, self.void_flow = self.void_flow, None
        if flow is not None:
            flow.cancel()
            return Result.success(flow.to_dict())
        return Result.success(None)

    # -------------------------------------------------------------------------
    # payment
    # -------------------------------------------------------------------------

    def begin_payment(self, tip=ZERO) -> Result:
        def _op():
            if self.cart.is_empty:
                raise ValidationError("Cart is empty")
            tip_amount = parse_money(tip, "tip")
            totals = compute_totals(self.cart.lines, self.discount, self.settings.tax_rate)
            self.payment_flow = PaymentFlow(
                grand_total(totals, tip_amount),
                tip=tip_amount,
                card_delay=self.settings.card_auth_delay_seconds,
                sleep=self.sleep,
            )
            return self.payment_flow.to_dict()

        return self._read(_op)

    def _require_payment_flow(self) -> PaymentFlow:
        if self.payment_flow is None or self.payment_flow.state == PaymentFlow.CANCELLED:
            raise ConflictError("No payment in progress")
        return self.payment_flow

    def select_payment_method(self, method: str) -> Result:
        def _op():
            flow = self._require_payment_flow()
            flow.select_method(method)
            return flow.to_dict()

        return self._read(_op)

    def tender_cash(self, amount) -> Result:
        def _op():
            flow = self._require_payment_flow()
            flow.tender(amount)
            return flow.to_dict()

        return self._read(_op)

    def authorize_card(self, token: CancellationToken | None = None) -> Result:
        if not self._gate.acquire():
            return Result.failure(ConflictError("Terminal is busy, try again"))
        try:
            def _op():
                flow = self._require_payment_flow()
                flow.authorize_card(token=token)
                return flow.to_dict()

            return self._read(_op)
        finally:
            self._gate.release()

    def payment_back(self) -> Result:
        def _op():
            flow = self._require_payment_flow()
            flow.back()
            return flow.to_dict()

        return self._read(_op)

    def cancel_payment(self) -> Result:
        flow, self.payment_flow = self.payment_flow, None
        if flow is not None:
            flow.cancel()
        return Result.success(None)

    def complete_payment(self, employee_name: Optional[str] = None, token: CancellationToken | None = None) -> Result:
        """Finalize once the payment flow is confirmed. Terminal for this order."""
        def _op(cart):
            flow = self._require_payment_flow()
            if not flow.confirmed:
                raise ConflictError(f"Payment is in state {flow.state}")
            current = grand_total(
                compute_totals(cart.lines, self.discount, self.settings.tax_rate),
                flow.tip,
            )
            if current != flow.grand_total:
                self.payment_flow = None
                raise ConflictError(
                    "Order changed after payment began; start the payment again",
                    details={"paid_for": f"{flow.grand_total:.2f}", "grand_total": f"{current:.2f}"},
                )
            sale = sale_service.finalize_sale(
                self.repos,
                cart,
                flow.method,
                tip=flow.tip,
                discount=self.discount,
                employee_name=employee_name,
                tax_rate=self.settings.tax_rate,
                token=token,
            )
            data = sale.to_dict()
            data["change"] = f"{flow.change:.2f}" if flow.change is not None else None
            return data

        result = self._guarded(_op)
        if result.ok:
            self.discount = Discount.none()
            self.payment_flow = None
            self.void_flow = None
        return result


class TerminalRegistry:
    """Live terminal sessions keyed by terminal id, one cart each."""

    def __init__(self):
        self._sessions: dict[str, TerminalSession] = {}
        self._lock = threading.Lock()

    def get_or_create(self, terminal_id: str, factory: Callable[[], TerminalSession]) -> TerminalSession:
        with self._lock:
            session = self._sessions.get(terminal_id)
            if session is None:
                session = factory()
                self._sessions[terminal_id] = session
            return session

    def drop(self, terminal_id: str) -> None:
        with self._lock:
            self._sessions.pop(terminal_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
