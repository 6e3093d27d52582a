"""
Module: invoflow_engines.line_item_suggestion
Responsibility:
    Rank line items a user is likely to bill a client again, from the
    client's recent invoices, falling back to the user's recent invoices
    across all clients when the client yields nothing.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Items group on ``description.lower().strip()``; the first description
      seen (newest invoice first) is the one displayed.
    - Suggested rate is the most recent rate; suggested quantity is the
      mean rounded half-up to one decimal (client suggestions) or 1
      (fallback suggestions).
    - Ordering is by frequency descending; ties keep first-seen order.
    - At most 10 suggestions are returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from invoflow_kernel.domain.dtos import Invoice
from invoflow_engines import scoring
from invoflow_engines.tracer import traced_engine

_ONE_DECIMAL = Decimal("0.1")


@dataclass(frozen=True)
class LineItemSuggestion:
    description: str
    quantity: Decimal
    rate: Decimal
    frequency: int
    confidence: int


@dataclass
class _ItemGroup:
    description: str
    rates: list[Decimal] = field(default_factory=list)
    quantities: list[Decimal] = field(default_factory=list)


def _group_items(invoices: Iterable[Invoice]) -> list[_ItemGroup]:
    groups: dict[str, _ItemGroup] = {}
    for invoice in invoices:
        for item in invoice.items:
            key = item.description.lower().strip()
            group = groups.get(key)
            if group is None:
                group = groups[key] = _ItemGroup(description=item.description)
            group.rates.append(item.rate)
            group.quantities.append(item.quantity)
    return list(groups.values())


def _matches(description: str, filter_text: str | None) -> bool:
    """Substring match on the whole filter or on any of its words."""
    if not filter_text or not filter_text.strip():
        return True
    haystack = description.lower()
    search = filter_text.lower().strip()
    return search in haystack or any(word in haystack for word in search.split())


def _client_suggestions(groups: list[_ItemGroup]) -> list[LineItemSuggestion]:
    suggestions = []
    for group in groups:
        count = len(group.rates)
        avg_quantity = sum(group.quantities, Decimal(0)) / count
        suggestions.append(
            LineItemSuggestion(
                description=group.description,
                quantity=avg_quantity.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP),
                rate=group.rates[0],
                frequency=count,
                confidence=min(
                    scoring.CLIENT_SUGGESTION_CAP,
                    scoring.CLIENT_SUGGESTION_BASE
                    + count * scoring.CLIENT_SUGGESTION_PER_USE,
                ),
            )
        )
    return sorted(suggestions, key=lambda s: s.frequency, reverse=True)


def _fallback_suggestions(groups: list[_ItemGroup]) -> list[LineItemSuggestion]:
    suggestions = [
        LineItemSuggestion(
            description=group.description,
            quantity=Decimal("1"),
            rate=group.rates[0],
            frequency=len(group.rates),
            confidence=min(
                scoring.FALLBACK_SUGGESTION_CAP,
                scoring.FALLBACK_SUGGESTION_BASE
                + len(group.rates) * scoring.FALLBACK_SUGGESTION_PER_USE,
            ),
        )
        for group in groups
    ]
    return sorted(suggestions, key=lambda s: s.frequency, reverse=True)


@traced_engine(
    "line_item_suggestion", "1.0",
    fingerprint_fields=("client_history", "user_history", "filter_text"),
)
def suggest_line_items(
    *,
    client_history: Sequence[Invoice],
    user_history: Sequence[Invoice],
    filter_text: str | None = None,
) -> list[LineItemSuggestion]:
    """
    Args:
        client_history: The client's most recent invoices, newest first.
        user_history: The user's most recent invoices, newest first; only
            read when the client history produces no suggestion.
        filter_text: Optional text the description must match.
    """
    client_groups = _group_items(client_history[: scoring.CLIENT_ITEM_HISTORY_LIMIT])
    suggestions = [
        s for s in _client_suggestions(client_groups)
        if _matches(s.description, filter_text)
    ]

    if not suggestions:
        user_groups = _group_items(user_history[: scoring.USER_ITEM_HISTORY_LIMIT])
        suggestions = [
            s for s in _fallback_suggestions(user_groups)
            if _matches(s.description, filter_text)
        ]

    return suggestions[: scoring.SUGGESTION_LIMIT]
