"""Fixed-point helpers for monetary amounts."""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any

from loan_ledger.config import MoneyConfig
from loan_ledger.exceptions import ValidationError

ZERO = Decimal("0")


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a numeric input into a finite ``Decimal``.

    Accepts ``Decimal``, ``int``, ``float`` (via its shortest repr) and
    numeric strings such as ``"4000"`` or ``" 1,000,000 "``.

    Raises
    ------
    ValidationError
        If the value is missing, boolean, unparsable or not finite.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} is required and must be numeric")

    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float)):
        dec = Decimal(str(value))
    elif isinstance(value, str):
        s = value.strip().replace(",", "")
        if not s:
            raise ValidationError(f"{field_name} is required and must be numeric")
        try:
            dec = Decimal(s)
        except InvalidOperation as exc:
            raise ValidationError(f"{field_name} must be numeric, got {value!r}") from exc
    else:
        raise ValidationError(f"{field_name} must be numeric, got {type(value).__name__}")

    if not dec.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    return dec


def quantize(value: Decimal, quantum: Decimal, rounding: str = ROUND_HALF_EVEN) -> Decimal:
    """Round ``value`` to a multiple of ``quantum``."""
    return value.quantize(quantum, rounding=rounding)


def positive_amount(value: Any, field_name: str, money: MoneyConfig) -> Decimal:
    """Parse and round a currency amount that must be strictly positive."""
    dec = quantize(parse_decimal(value, field_name), money.currency_quantum, money.rounding)
    if dec <= ZERO:
        raise ValidationError(f"{field_name} must be positive, got {value!r}")
    return dec


def positive_int(value: Any, field_name: str) -> int:
    """Validate a strictly positive whole number (e.g. a term in days)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer, got {value!r}")
    if value <= 0:
        raise ValidationError(f"{field_name} must be positive, got {value}")
    return value
