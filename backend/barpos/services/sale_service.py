# Overview: Sale finalizer and the payment sub-state-machine.

"""
Sale Finalizer

WHY: A sale is the terminal step of an order. It snapshots the cart into
the sales ledger, deducts the stock no earlier tab save already deducted,
closes the originating tab and clears the cart. A completed sale cannot be
reopened.

PAYMENT FLOW:
    SELECT_METHOD --cash--> ENTER_AMOUNT --tendered >= grand total--> CONFIRMED
    SELECT_METHOD --card--> AUTHORIZING --simulated delay--> CONFIRMED
Insufficient cash raises InsufficientFundsError and stays in ENTER_AMOUNT.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Optional

from ..repositories import Repositories, SaleRecord
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, parse_money
from .cart_service import Cart, reset
from .concurrency import CancellationToken, check_cancelled
from .pricing_service import (
    DEFAULT_TAX_RATE,
    ZERO,
    Discount,
    change_due,
    compute_totals,
    to_cents,
)
from .stock_service import deduct_stock
from .tab_service import close_tab

logger = logging.getLogger(__name__)

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
VALID_PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD)


def finalize_sale(
    repos: Repositories,
    cart: Cart,
    payment_method: str,
    tip=ZERO,
    discount: Discount | None = None,
    employee_name: Optional[str] = None,
    tax_rate: Decimal = DEFAULT_TAX_RATE,
    token: CancellationToken | None = None,
) -> SaleRecord:
    if cart.is_empty:
        raise ValidationError("Cart is empty")
    if payment_method not in VALID_PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}. Must be one of {list(VALID_PAYMENT_METHODS)}"
        )
    tip = parse_money(tip, "tip")
    totals = compute_totals(cart.lines, discount, tax_rate).rounded()

    with repos.unit_of_work():
        check_cancelled(token)
        sale = repos.sales.record(
            SaleRecord(
                items=[line.snapshot() for line in cart.lines],
                total=totals.total,
                tip=to_cents(tip),
                discount=totals.discount_amount,
                payment_method=payment_method,
                employee_name=employee_name,
                tab_id=cart.tab_id,
                date=utcnow(),
            )
        )

        # Lines with a tab_id were deducted when the tab was saved
        check_cancelled(token)
        deduct_stock(repos.catalog, [line for line in cart.lines if line.tab_id is None])

        if cart.tab_id is not None:
            close_tab(repos, cart.tab_id)

    logger.info(
        "Finalized sale %s: total=%s tip=%s method=%s tab=%s",
        sale.id,
        sale.total,
        sale.tip,
        payment_method,
        cart.tab_id,
    )
    reset(cart)
    return sale


def list_sales(repos: Repositories) -> list[SaleRecord]:
    return repos.sales.list()


def clear_sales(repos: Repositories) -> int:
    with repos.unit_of_work():
        count = repos.sales.clear_all()
    logger.warning("Cleared %d sale record(s)", count)
    return count


class PaymentFlow:
    SELECT_METHOD = "select_method"
    ENTER_AMOUNT = "enter_amount"
    AUTHORIZING = "authorizing"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    def __init__(self, grand_total: Decimal, tip: Decimal = ZERO, card_delay: float = 2.0, sleep=time.sleep):
        self.grand_total = grand_total
        self.tip = tip
        self.card_delay = card_delay
        self._sleep = sleep
        self.state = self.SELECT_METHOD
        self.method: Optional[str] = None
        self.tendered: Optional[Decimal] = None
        self.change: Optional[Decimal] = None

    @property
    def confirmed(self) -> bool:
        return self.state == self.CONFIRMED

    def _require_state(self, *states: str) -> None:
        if self.state not in states:
            raise ConflictError(f"Payment is in state {self.state}")

    def select_method(self, method: str) -> str:
        self._require_state(self.SELECT_METHOD)
        if method == PAYMENT_CASH:
            self.state = self.ENTER_AMOUNT
        elif method == PAYMENT_CARD:
            self.state = self.AUTHORIZING
        else:
            raise ValidationError(
                f"Invalid payment method: {method}. Must be one of {list(VALID_PAYMENT_METHODS)}"
            )
        self.method = method
        return self.state

    def tender(self, amount) -> Decimal:
        """Accept cash; returns change. Short tender keeps the flow in ENTER_AMOUNT."""
        self._require_state(self.ENTER_AMOUNT)
        tendered = parse_money(amount, "tendered")
        change = change_due(self.grand_total, tendered)
        self.tendered = tendered
        self.change = change
        self.state = self.CONFIRMED
        return change

    def authorize_card(self, token: CancellationToken | None = None) -> str:
        self._require_state(self.AUTHORIZING)
        check_cancelled(token)
        self._sleep(self.card_delay)
        check_cancelled(token)
        self.state = self.CONFIRMED
        return self.state

    def back(self) -> str:
        if self.state in (self.ENTER_AMOUNT, self.AUTHORIZING):
            self.state = self.SELECT_METHOD
            self.method = None
        return self.state

    def cancel(self) -> str:
        if self.state != self.CONFIRMED:
            self.state = self.CANCELLED
        return self.state

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "method": self.method,
            "grand_total": f"{self.grand_total:.2f}",
            "tip": f"{self.tip:.2f}",
            "tendered": f"{self.tendered:.2f}" if self.tendered is not None else None,
            "change": f"{self.change:.2f}" if self.change is not None else None,
        }
