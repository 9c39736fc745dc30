# Overview: Pricing engine; happy-hour resolution and order totals in Decimal.

"""
Pricing Invariants (authoritative)

- All money is Decimal. Floats never enter a calculation.
- Rounding to cents (half-up) happens only at output boundaries:
  Totals.rounded(), persistence and JSON. Intermediate values keep full
  precision so rounding never compounds.
- 0 <= discount_amount <= subtotal, whatever the discount input.
- tax = (subtotal - discount_amount) * tax_rate
- total = subtotal - discount_amount + tax; grand total adds the tip.

Happy hour:
- A rule matches when its category is "all" or the item's category, today's
  weekday is in its days, and start_time <= now < end_time.
- When several rules match, the first in rule order wins. Whether overlaps
  should stack or follow a priority has not been decided; do not change
  this without a product decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from ..repositories import CatalogItem, HappyHour
from ..time_utils import localnow, weekday_name
from ..validation import InsufficientFundsError, ValidationError, parse_money

CENTS = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_TAX_RATE = Decimal("0.07")

DISCOUNT_PERCENT = "percent"
DISCOUNT_AMOUNT = "amount"
VALID_DISCOUNT_TYPES = (DISCOUNT_PERCENT, DISCOUNT_AMOUNT)


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Discount:
    """Whole-order discount. A comp is percent/100."""
    type: str = DISCOUNT_AMOUNT
    value: Decimal = ZERO

    def __post_init__(self):
        if self.type not in VALID_DISCOUNT_TYPES:
            raise ValidationError(f"Invalid discount type: {self.type}. Must be one of {list(VALID_DISCOUNT_TYPES)}")
        object.__setattr__(self, "value", parse_money(self.value, "discount value"))

    @classmethod
    def none(cls) -> "Discount":
        return cls(DISCOUNT_AMOUNT, ZERO)

    @classmethod
    def comp(cls) -> "Discount":
        return cls(DISCOUNT_PERCENT, HUNDRED)

    def amount_for(self, subtotal: Decimal) -> Decimal:
        if self.type == DISCOUNT_PERCENT:
            raw = subtotal * self.value / HUNDRED
        else:
            raw = self.value
        return min(max(raw, ZERO), subtotal)

    def to_dict(self) -> dict:
        return {"type": self.type, "value": str(self.value)}


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal

    def rounded(self) -> "Totals":
        return Totals(
            subtotal=to_cents(self.subtotal),
            discount_amount=to_cents(self.discount_amount),
            tax=to_cents(self.tax),
            total=to_cents(self.total),
        )

    def to_dict(self) -> dict:
        r = self.rounded()
        return {
            "subtotal": f"{r.subtotal:.2f}",
            "discount_amount": f"{r.discount_amount:.2f}",
            "tax": f"{r.tax:.2f}",
            "total": f"{r.total:.2f}",
        }


def matching_rule(
    category: str,
    rules: Iterable[HappyHour],
    now: datetime,
) -> Optional[HappyHour]:
    today = weekday_name(now)
    clock = now.time()
    for rule in rules:
        if not rule.applies_to(category):
            continue
        if today not in rule.days:
            continue
        if rule.start_time <= clock < rule.end_time:
            return rule
    return None


def effective_price(
    item: CatalogItem,
    rules: Sequence[HappyHour],
    now: datetime | None = None,
) -> tuple[Decimal, Optional[HappyHour]]:
    """
    Price an item at `now` (terminal local time).

    Returns (price, matched_rule); matched_rule is None outside happy hour.
    """
    now = now or localnow()
    rule = matching_rule(item.category, rules, now)
    if rule is None:
        return item.price, None
    return max(ZERO, item.price - rule.discount_amount), rule


def compute_totals(
    lines: Iterable,
    discount: Discount | None = None,
    tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> Totals:
    """
    Totals for any iterable of objects exposing .price and .quantity.
    Values are unrounded; call .rounded() at the boundary.
    """
    discount = discount or Discount.none()
    subtotal = sum((line.price * line.quantity for line in lines), ZERO)
    discount_amount = discount.amount_for(subtotal)
    taxable = subtotal - discount_amount
    tax = taxable * tax_rate
    return Totals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax=tax,
        total=taxable + tax,
    )


def grand_total(totals: Totals, tip: Decimal = ZERO) -> Decimal:
    """Amount actually collected: rounded order total plus tip."""
    return to_cents(totals.rounded().total + tip)


def change_due(grand: Decimal, tendered: Decimal) -> Decimal:
    if tendered < grand:
        raise InsufficientFundsError(
            "Not enough cash",
            details={"grand_total": f"{grand:.2f}", "tendered": f"{tendered:.2f}"},
        )
    return to_cents(tendered - grand)
