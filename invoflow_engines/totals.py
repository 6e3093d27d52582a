"""
Module: invoflow_engines.totals
Responsibility:
    Validate invoice line items and compute line amounts, subtotal, tax and
    total.  The same function serves invoice creation, item replacement on
    edit, tax-rate changes, duplication and recurring materialisation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - amount_i == round(quantity_i * rate_i)
    - subtotal == sum(amount_i)
    - tax == round(subtotal * tax_rate / 100)
    - total == subtotal + tax
    Rounding is half-up to 2 places (``round_money``).

Failure modes:
    - ValidationError for an empty item list, blank description,
      quantity <= 0, rate < 0, or a tax rate outside 0..100.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence

from invoflow_kernel.db.types import ZERO, round_money, to_decimal
from invoflow_kernel.domain.dtos import LineItemInput
from invoflow_kernel.exceptions import ValidationError
from invoflow_engines.tracer import traced_engine

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ComputedLine:
    position: int
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    lines: tuple[ComputedLine, ...]
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal


def coerce_line_items(
    raw_items: Iterable[LineItemInput | Mapping[str, Any]] | None,
) -> tuple[LineItemInput, ...]:
    """
    Accept LineItemInput objects or ``{"description", "quantity", "rate"}``
    mappings and return validated LineItemInput values.
    """
    if raw_items is None:
        raise ValidationError("items", "at least one item is required")
    items: list[LineItemInput] = []
    for index, raw in enumerate(raw_items):
        if isinstance(raw, LineItemInput):
            description, quantity, rate = raw.description, raw.quantity, raw.rate
        else:
            description = raw.get("description")
            quantity = raw.get("quantity")
            rate = raw.get("rate")
        items.append(_validated_item(index, description, quantity, rate))
    if not items:
        raise ValidationError("items", "at least one item is required")
    return tuple(items)


def _validated_item(index: int, description: Any, quantity: Any, rate: Any) -> LineItemInput:
    prefix = f"items[{index}]"
    if description is None or not str(description).strip():
        raise ValidationError(f"{prefix}.description", "description is required")
    qty = to_decimal(quantity, f"{prefix}.quantity")
    if qty <= ZERO:
        raise ValidationError(f"{prefix}.quantity", "quantity must be positive")
    unit_rate = to_decimal(rate, f"{prefix}.rate")
    if unit_rate < ZERO:
        raise ValidationError(f"{prefix}.rate", "rate must be non-negative")
    return LineItemInput(description=str(description).strip(), quantity=qty, rate=unit_rate)


def validate_tax_rate(tax_rate: Any) -> Decimal:
    """Tax rate is a percentage in 0..100; ``None`` means 0."""
    if tax_rate is None:
        return ZERO
    rate = to_decimal(tax_rate, "tax_rate")
    if rate < ZERO or rate > HUNDRED:
        raise ValidationError("tax_rate", "tax rate must be between 0 and 100")
    return rate


@traced_engine("invoice_totals", "1.0", fingerprint_fields=("items", "tax_rate"))
def compute_invoice_totals(
    *,
    items: Sequence[LineItemInput | Mapping[str, Any]],
    tax_rate: Any = ZERO,
) -> InvoiceTotals:
    """
    Compute line amounts and invoice totals.

    Example:
        2 x 50 and 1 x 25 at 0% -> subtotal 125, tax 0, total 125.
        1 x 1000 at 10% -> subtotal 1000, tax 100, total 1100.
    """
    validated = coerce_line_items(items)
    rate = validate_tax_rate(tax_rate)

    lines = tuple(
        ComputedLine(
            position=position,
            description=item.description,
            quantity=item.quantity,
            rate=item.rate,
            amount=round_money(item.quantity * item.rate),
        )
        for position, item in enumerate(validated)
    )
    subtotal = round_money(sum((line.amount for line in lines), ZERO))
    tax = round_money(subtotal * rate / HUNDRED)
    return InvoiceTotals(
        lines=lines,
        subtotal=subtotal,
        tax_rate=rate,
        tax=tax,
        total=subtotal + tax,
    )


def recompute_tax(subtotal: Decimal, tax_rate: Any) -> tuple[Decimal, Decimal]:
    """Tax and total for an unchanged subtotal under a new tax rate."""
    rate = validate_tax_rate(tax_rate)
    tax = round_money(subtotal * rate / HUNDRED)
    return tax, round_money(subtotal) + tax


def estimate_template_total(items: Iterable[LineItemInput]) -> Decimal:
    """Pre-tax sum(quantity * rate) shown for recurring templates."""
    return round_money(sum((item.quantity * item.rate for item in items), ZERO))
