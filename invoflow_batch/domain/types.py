"""
invoflow_batch.domain.types -- Pure frozen dataclasses for the batch system.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class BatchRunStatus(str, Enum):
    """Run-level outcome."""

    COMPLETED = "completed"  # No item failed (includes an empty run)
    FAILED = "failed"  # Every item failed
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed

    @classmethod
    def from_counts(cls, succeeded: int, failed: int, skipped: int) -> BatchRunStatus:
        if failed == 0:
            return cls.COMPLETED
        if succeeded == 0 and skipped == 0:
            return cls.FAILED
        return cls.PARTIALLY_COMPLETED


class BatchItemStatus(str, Enum):
    """Per-item outcome within a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # Nothing to do; the SAVEPOINT is rolled back


@dataclass(frozen=True)
class BatchItemResult:
    """Immutable result of processing a single batch item."""

    item_index: int
    item_key: str  # Business identifier (template id, user id)
    status: BatchItemStatus
    error_code: str | None = None
    error_message: str | None = None
    result_data: dict[str, Any] | None = None
    duration_ms: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class BatchRunResult:
    """Immutable result of one ``BatchRunner.run()`` call."""

    run_id: UUID
    task_type: str
    status: BatchRunStatus
    total_items: int
    succeeded: int
    failed: int
    skipped: int
    item_results: tuple[BatchItemResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def item_data(self) -> tuple[dict[str, Any], ...]:
        """``result_data`` of the succeeded items, in run order."""
        return tuple(
            r.result_data or {} for r in self.item_results
            if r.status == BatchItemStatus.SUCCEEDED
        )
