from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

# Maximum price: $99,999.99
# Anything above this on a bar ticket is a typo, not a price
MAX_PRICE = Decimal("99999.99")

PIN_LENGTH = 4


class PosError(Exception):
    """
    Base class for recoverable order-engine errors.

    kind is the stable machine-readable name surfaced in results and JSON.
    """
    kind = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PosError):
    """400-level input problem (missing name/price, malformed PIN)."""
    kind = "validation_error"


class InsufficientFundsError(PosError):
    """Cash tendered is below the grand total."""
    kind = "insufficient_funds"


class ConflictError(PosError):
    """409-level business rule conflict (referenced item, invalid PIN, busy)."""
    kind = "conflict"


class StockUnavailableError(PosError):
    """Adding would exceed the item's effective stock."""
    kind = "stock_unavailable"


class NetworkError(PosError):
    """A repository call failed."""
    kind = "network_error"


class NotFoundError(PosError):
    kind = "not_found"


class OperationCancelledError(PosError):
    kind = "cancelled"


def parse_money(value: Any, field: str = "price") -> Decimal:
    """
    Coerce user input into a non-negative Decimal.

    Floats are routed through str() so 4.1 becomes Decimal("4.1"),
    not its binary expansion.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required")
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_PRICE:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE}")
    return amount


def require_text(value: Any, field: str) -> str:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def validate_pin_format(pin: Any) -> str:
    if not isinstance(pin, str):
        raise ValidationError("PIN must be a string of digits")
    if len(pin) != PIN_LENGTH or not pin.isdigit():
        raise ValidationError(f"PIN must be exactly {PIN_LENGTH} digits")
    return pin
