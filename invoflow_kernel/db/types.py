"""
Module: invoflow_kernel.db.types
Responsibility: Money precision, rounding and currency helpers shared by
    models, services and engines, plus the timestamp normalisation needed
    to treat every stored datetime as UTC.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and invoflow_engines.  MUST NOT import from any
    of those layers.

Invariants enforced:
    - No floats for money.  Every monetary amount is a Decimal; floats are
      converted through ``str`` so 0.1 stays 0.1.
    - Invoice amounts are stored at the currency minor unit (2 places),
      rounded half-up by ``round_money()``, the only sanctioned rounding
      function for money.
    - MONEY_TOLERANCE (0.01) is the single tolerance for "fully paid".

Failure modes:
    - ValidationError on non-numeric input to ``to_decimal()``.
    - ValidationError on an unknown currency code.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from sqlalchemy import Numeric, String

from invoflow_kernel.exceptions import ValidationError

# Monetary amount: stored wide, rounded to minor units by services
Money = Annotated[Decimal, Numeric(38, 9)]

# ISO 4217 currency code (e.g., "USD", "EUR", "GBP")
Currency = Annotated[str, String(3)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
MONEY_TOLERANCE = Decimal("0.01")
ZERO = Decimal("0")

ISO_4217_CURRENCIES: frozenset[str] = frozenset({
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD", "INR", "CNY",
    "HKD", "SGD", "SEK", "NOK", "DKK", "PLN", "CZK", "MXN", "BRL", "ZAR",
    "AED", "SAR", "KRW", "ILS", "TRY", "NGN", "KES", "PHP", "THB", "IDR",
})

DEFAULT_CURRENCY = "USD"


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce a user-supplied number to Decimal.

    Floats go through ``str`` to avoid binary-fraction artefacts.

    Raises:
        ValidationError: If the value is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValidationError(field, "must be a number")
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(field, "must be a number") from None
    if not result.is_finite():
        raise ValidationError(field, "must be a finite number")
    return result


def round_money(value: Decimal, places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """Round a monetary amount half-up to ``places`` decimal places."""
    quantizer = Decimal(10) ** -places
    return value.quantize(quantizer, rounding=DEFAULT_ROUNDING)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded towards +inf."""
    return math.floor(value + 0.5)


def validate_currency(code: str | None) -> str:
    """Normalise and validate an ISO 4217 currency code."""
    if code is None:
        return DEFAULT_CURRENCY
    normalized = str(code).strip().upper()
    if normalized not in ISO_4217_CURRENCIES:
        raise ValidationError("currency", f"unsupported currency code: {code}")
    return normalized


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Return ``value`` as an aware UTC datetime.

    Some backends (SQLite) drop tzinfo on round-trip; naive values read
    back from storage are UTC by construction.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_decimal(value: Decimal) -> Decimal:
    """Strip storage padding (``2.000000000`` -> ``2``) without exponent form."""
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return normalized.quantize(Decimal(1))
    return normalized
