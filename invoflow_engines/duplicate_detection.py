"""
Module: invoflow_engines.duplicate_detection
Responsibility:
    Score a candidate invoice against the client's nearby invoices and flag
    likely duplicates.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Similarity (0-100) per existing invoice:
    amount   0-40  relative difference |a - b| / max(a, b, 1):
                   exact 40, <1% 35, <5% 20, <10% 10
    date     0-20  absolute day difference: <1 20, <3 15, <7 10, <14 5
    items    0-40  round(40 * matched / max(len(new), len(existing)));
                   each new item takes the first existing item that matches
                   on description+rate+quantity (1.0), description+rate
                   (0.7) or description alone (0.4)

Invariants enforced:
    - Empty comparison set: not a duplicate, confidence 95.
    - Only scores >= 30 are reported, highest first, at most 5.
    - Duplicate when any score >= 75; confidence is then the highest score,
      otherwise 95 - 0.5 * highest.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from invoflow_kernel.db.types import round_half_up, round_money
from invoflow_kernel.domain.dtos import Invoice, LineItemInput
from invoflow_engines import scoring
from invoflow_engines.tracer import traced_engine

_CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥", "INR": "₹"}

_NO_MATCH_REASON = "No similar invoices found for this client in the same time period."


@dataclass(frozen=True)
class DuplicateCandidate:
    """The invoice being checked (not necessarily persisted)."""
    client_id: UUID
    total: Decimal
    issue_date: date
    items: tuple[LineItemInput, ...] = ()


@dataclass(frozen=True)
class SimilarInvoice:
    id: UUID
    number: str
    total: Decimal
    issue_date: date
    similarity: int


@dataclass(frozen=True)
class DuplicateCheck:
    is_duplicate: bool
    confidence: float
    similar_invoices: tuple[SimilarInvoice, ...]
    reason: str


def format_money(amount: Decimal, currency: str = "USD") -> str:
    """``1100`` -> ``$1,100.00``; unknown currencies are prefixed by code."""
    text = f"{round_money(amount):,.2f}"
    symbol = _CURRENCY_SYMBOLS.get(currency)
    return f"{symbol}{text}" if symbol else f"{currency} {text}"


def amount_points(new_total: Decimal, existing_total: Decimal) -> int:
    diff = abs(existing_total - new_total) / max(existing_total, new_total, Decimal(1))
    if diff == 0:
        return scoring.AMOUNT_EXACT_POINTS
    for bound, points in scoring.AMOUNT_TIERS:
        if diff < bound:
            return points
    return 0


def date_points(new_date: date, existing_date: date) -> int:
    days = abs((existing_date - new_date).days)
    for bound, points in scoring.DATE_TIERS:
        if days < bound:
            return points
    return 0


def _close(a: Decimal, b: Decimal) -> bool:
    return abs(a - b) < scoring.ITEM_VALUE_TOLERANCE


def item_points(
    new_items: Sequence[LineItemInput], existing: Invoice,
) -> int:
    if not new_items or not existing.items:
        return 0
    matched = 0.0
    for new_item in new_items:
        new_desc = new_item.description.lower().strip()
        for old in existing.items:
            if new_desc != old.description.lower().strip():
                continue
            rate_match = _close(new_item.rate, old.rate)
            if rate_match and _close(new_item.quantity, old.quantity):
                matched += scoring.ITEM_FULL_MATCH
            elif rate_match:
                matched += scoring.ITEM_DESC_RATE_MATCH
            else:
                matched += scoring.ITEM_DESC_MATCH
            break
    ratio = matched / max(len(new_items), len(existing.items))
    return round_half_up(ratio * scoring.ITEM_POINTS)


def similarity(candidate: DuplicateCandidate, existing: Invoice) -> int:
    return (
        amount_points(candidate.total, existing.total)
        + date_points(candidate.issue_date, existing.issue_date)
        + item_points(candidate.items, existing)
    )


@traced_engine(
    "duplicate_detection", "1.0", fingerprint_fields=("candidate", "existing"),
)
def detect_duplicate(
    *,
    candidate: DuplicateCandidate,
    existing: Sequence[Invoice],
) -> DuplicateCheck:
    """
    Args:
        candidate: The invoice to check.
        existing: The client's non-cancelled invoices issued within 30 days
            of the candidate, newest first.
    """
    if not existing:
        return DuplicateCheck(
            is_duplicate=False,
            confidence=float(scoring.NO_MATCH_CONFIDENCE),
            similar_invoices=(),
            reason=_NO_MATCH_REASON,
        )

    by_id = {inv.id: inv for inv in existing}
    similar = [
        SimilarInvoice(
            id=inv.id,
            number=inv.number,
            total=inv.total,
            issue_date=inv.issue_date,
            similarity=score,
        )
        for inv in existing
        if (score := similarity(candidate, inv)) >= scoring.SIMILAR_THRESHOLD
    ]
    similar.sort(key=lambda s: s.similarity, reverse=True)

    is_duplicate = any(s.similarity >= scoring.DUPLICATE_THRESHOLD for s in similar)
    highest = similar[0].similarity if similar else 0

    if is_duplicate:
        top = similar[0]
        reason = (
            f"High similarity ({top.similarity}%) with invoice {top.number} "
            f"({format_money(top.total, by_id[top.id].currency)}) from "
            f"{top.issue_date.isoformat()}. This may be a duplicate."
        )
        confidence = float(highest)
    elif similar:
        plural = "s" if len(similar) != 1 else ""
        reason = (
            f"Found {len(similar)} similar invoice{plural} but no exact "
            f"duplicates. Highest similarity: {highest}%."
        )
        confidence = scoring.NO_MATCH_CONFIDENCE - highest * scoring.NON_DUPLICATE_CONFIDENCE_SLOPE
    else:
        reason = _NO_MATCH_REASON
        confidence = float(scoring.NO_MATCH_CONFIDENCE)

    return DuplicateCheck(
        is_duplicate=is_duplicate,
        confidence=confidence,
        similar_invoices=tuple(similar[: scoring.SIMILAR_RESULT_LIMIT]),
        reason=reason,
    )
