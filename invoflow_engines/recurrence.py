"""
Module: invoflow_engines.recurrence
Responsibility:
    Calendar arithmetic for recurring invoice templates: advance a date by
    one cadence unit and enumerate every cycle that has fallen due.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - weekly = +7 days; monthly = +1 calendar month; quarterly = +3 months.
    - Month arithmetic clamps to the last day of the target month
      (Jan 31 + 1 month = Feb 28/29).
    - ``due_cycles`` returns the cycles in chronological order and a
      ``next_date`` strictly after ``today``, so missed runs are caught up
      in one pass and never generated twice.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta

from invoflow_kernel.domain.dtos import RecurrenceFrequency


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance(value: date, frequency: RecurrenceFrequency | str) -> date:
    """Move ``value`` forward by one cadence unit."""
    freq = RecurrenceFrequency(frequency)
    if freq == RecurrenceFrequency.WEEKLY:
        return value + timedelta(days=7)
    if freq == RecurrenceFrequency.MONTHLY:
        return add_months(value, 1)
    return add_months(value, 3)


@dataclass(frozen=True)
class DueCycles:
    cycle_dates: tuple[date, ...]
    next_date: date


def due_cycles(
    next_date: date,
    today: date,
    frequency: RecurrenceFrequency | str,
) -> DueCycles:
    """
    Every cycle date ``<= today`` starting at ``next_date``.

    Example:
        monthly, next_date 2026-01-15, today 2026-03-20
        -> cycles (01-15, 02-15, 03-15), next_date 2026-04-15
    """
    cycles: list[date] = []
    current = next_date
    while current <= today:
        cycles.append(current)
        current = advance(current, frequency)
    return DueCycles(cycle_dates=tuple(cycles), next_date=current)
