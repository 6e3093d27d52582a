"""
BatchRunner -- runs one task's items, each inside its own SAVEPOINT.

A succeeded item keeps its writes; skipped and failed items are rolled back
to the savepoint, and an exception escaping ``execute_item`` is recorded as
``UNHANDLED_EXCEPTION`` instead of aborting the run.  Every item sees the
same ``as_of`` instant, taken from the injected clock when the run starts.

The runner never commits: the caller (a test, a CLI, ``BatchScheduler``)
owns the transaction.  Run history is logged and returned, not persisted.
"""

from __future__ import annotations

import time
from collections import Counter
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from invoflow_kernel.domain.clock import Clock, SystemClock
from invoflow_kernel.logging_config import LogContext, get_logger

from invoflow_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
)
from invoflow_batch.tasks.base import BatchItemInput, BatchTask, TaskRegistry

logger = get_logger("batch.runner")

UNHANDLED_EXCEPTION = "UNHANDLED_EXCEPTION"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class BatchRunner:

    def __init__(
        self,
        session: Session,
        task_registry: TaskRegistry,
        clock: Clock | None = None,
    ):
        self._session = session
        self._task_registry = task_registry
        self._clock = clock or SystemClock()

    def run(
        self,
        task_type: str,
        parameters: dict[str, Any] | None = None,
    ) -> BatchRunResult:
        """
        Raises:
            KeyError: ``task_type`` is not registered.
        """
        task = self._task_registry.get(task_type)
        params = dict(parameters or {})
        run_id = uuid4()
        as_of = self._clock.now()
        started = time.monotonic()

        with LogContext.bind(correlation_id=run_id, actor="batch"):
            items = task.prepare_items(parameters=params, session=self._session, as_of=as_of)
            logger.info(
                "batch_run_started",
                extra={
                    "task_type": task_type,
                    "total_items": len(items),
                    "as_of": as_of,
                },
            )

            results = tuple(self._execute(task, item, params, as_of) for item in items)
            self._session.flush()

            counts = Counter(r.status for r in results)
            status = BatchRunStatus.from_counts(
                succeeded=counts[BatchItemStatus.SUCCEEDED],
                failed=counts[BatchItemStatus.FAILED],
                skipped=counts[BatchItemStatus.SKIPPED],
            )
            duration_ms = _elapsed_ms(started)
            logger.info(
                "batch_run_completed",
                extra={
                    "task_type": task_type,
                    "status": status,
                    "succeeded": counts[BatchItemStatus.SUCCEEDED],
                    "failed": counts[BatchItemStatus.FAILED],
                    "skipped": counts[BatchItemStatus.SKIPPED],
                    "duration_ms": duration_ms,
                },
            )

        return BatchRunResult(
            run_id=run_id,
            task_type=task_type,
            status=status,
            total_items=len(items),
            succeeded=counts[BatchItemStatus.SUCCEEDED],
            failed=counts[BatchItemStatus.FAILED],
            skipped=counts[BatchItemStatus.SKIPPED],
            item_results=results,
            started_at=as_of,
            completed_at=self._clock.now(),
            duration_ms=duration_ms,
        )

    def _execute(
        self,
        task: BatchTask,
        item: BatchItemInput,
        params: dict[str, Any],
        as_of: datetime,
    ) -> BatchItemResult:
        started = time.monotonic()
        started_at = self._clock.now()
        savepoint = self._session.begin_nested()
        try:
            outcome = task.execute_item(
                item=item, parameters=params, session=self._session, as_of=as_of,
            )
        except Exception as exc:
            savepoint.rollback()
            logger.exception(
                "batch_item_failed",
                extra={
                    "task_type": task.task_type,
                    "item_key": item.item_key,
                    "error_code": UNHANDLED_EXCEPTION,
                },
            )
            return BatchItemResult(
                item_index=item.item_index,
                item_key=item.item_key,
                status=BatchItemStatus.FAILED,
                error_code=UNHANDLED_EXCEPTION,
                error_message=str(exc),
                duration_ms=_elapsed_ms(started),
                started_at=started_at,
                completed_at=self._clock.now(),
            )

        if outcome.status == BatchItemStatus.SUCCEEDED:
            savepoint.commit()
        else:
            savepoint.rollback()
        if outcome.status == BatchItemStatus.FAILED:
            logger.warning(
                "batch_item_failed",
                extra={
                    "task_type": task.task_type,
                    "item_key": item.item_key,
                    "error_code": outcome.error_code,
                    "error_message": outcome.error_message,
                },
            )
        return BatchItemResult(
            item_index=item.item_index,
            item_key=item.item_key,
            status=outcome.status,
            error_code=outcome.error_code,
            error_message=outcome.error_message,
            result_data=outcome.result_data,
            duration_ms=_elapsed_ms(started),
            started_at=started_at,
            completed_at=self._clock.now(),
        )
