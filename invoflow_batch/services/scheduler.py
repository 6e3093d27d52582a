"""
BatchScheduler -- in-process polling loop over the registered tasks.

Each tick opens a fresh session, runs every task once in registration
order (recurring materialisation before the overdue sweep) and commits.
Both invoicing tasks are idempotent for a given day, so ticking more often
than daily only finds nothing to do.

A tick that raises is rolled back and logged; the loop keeps going.  This is
a single-process scheduler with no leader election.
"""

from __future__ import annotations

import threading
from typing import Callable

from sqlalchemy.orm import Session

from invoflow_kernel.domain.clock import Clock, SystemClock
from invoflow_kernel.logging_config import get_logger

from invoflow_batch.domain.types import BatchRunResult
from invoflow_batch.services.runner import BatchRunner
from invoflow_batch.tasks.base import TaskRegistry

logger = get_logger("batch.scheduler")

DEFAULT_TICK_SECONDS = 60


class BatchScheduler:

    def __init__(
        self,
        session_factory: Callable[[], Session],
        task_registry: TaskRegistry,
        clock: Clock | None = None,
        tick_interval_seconds: int = DEFAULT_TICK_SECONDS,
    ):
        self._session_factory = session_factory
        self._task_registry = task_registry
        self._clock = clock or SystemClock()
        self._interval = tick_interval_seconds
        self._stopping = threading.Event()
        self._worker: threading.Thread | None = None

    def tick(self) -> tuple[BatchRunResult, ...]:
        """
        Run each registered task once and commit.

        Returns:
            One result per task in registration order, or ``()`` when the
            tick failed and was rolled back.  A stop request ends the tick
            early between tasks.
        """
        session = self._session_factory()
        try:
            runner = BatchRunner(session, self._task_registry, self._clock)
            results = []
            for task in self._task_registry:
                if self._stopping.is_set():
                    break
                results.append(runner.run(task.task_type))
            session.commit()
        except Exception:
            session.rollback()
            logger.exception("scheduler_tick_failed")
            return ()
        finally:
            session.close()

        logger.debug(
            "scheduler_tick_completed",
            extra={"runs": {r.task_type: r.status for r in results}},
        )
        return tuple(results)

    def start(self) -> None:
        """Start the daemon polling thread; a no-op while it is running."""
        if self.is_running:
            return
        self._stopping.clear()
        self._worker = threading.Thread(
            target=self._loop, name="invoflow-scheduler", daemon=True,
        )
        self._worker.start()
        logger.info("scheduler_started", extra={"tick_interval": self._interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Ask the loop to finish and wait up to ``timeout`` seconds for it."""
        self._stopping.set()
        if self.is_running:
            self._worker.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def _loop(self) -> None:
        while not self._stopping.is_set():
            self.tick()
            self._stopping.wait(timeout=self._interval)
