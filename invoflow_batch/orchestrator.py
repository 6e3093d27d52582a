"""
BatchOrchestrator -- DI container for the batch processing system.

Contract:
    Wires a TaskRegistry with the invoicing tasks, creates BatchRunner
    instances for ad-hoc runs and a BatchScheduler for background use.

Architecture: invoflow_batch (top-level).  This is the canonical entry point
    for configuring and running batch jobs.

Invariants enforced:
    - Clock injection: runner and scheduler receive the same Clock.
    - Materialisation is registered before the overdue sweep, so one tick
      sweeps the invoices it just generated.

Usage:
    orchestrator = BatchOrchestrator(config=get_active_config())
    scheduler = orchestrator.create_scheduler(get_session_factory())
    scheduler.start()
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session

from invoflow_config import AppConfig, get_active_config
from invoflow_kernel.domain.clock import Clock, SystemClock
from invoflow_kernel.logging_config import get_logger
from invoflow_services.notification import NotificationSink

from invoflow_batch.services.runner import BatchRunner
from invoflow_batch.services.scheduler import BatchScheduler
from invoflow_batch.tasks.base import TaskRegistry
from invoflow_batch.tasks.invoice_tasks import MaterializeRecurringTask, SweepOverdueTask

logger = get_logger("batch.orchestrator")


def build_invoice_task_registry(
    config: AppConfig,
    notifier: NotificationSink | None = None,
) -> TaskRegistry:
    """Create a TaskRegistry pre-loaded with the invoicing tasks."""
    return TaskRegistry((
        MaterializeRecurringTask(config, notifier),
        SweepOverdueTask(config, notifier),
    ))


class BatchOrchestrator:
    """DI container for the batch processing system.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
        - Does NOT manage session lifecycle -- caller controls commits.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        clock: Clock | None = None,
        notifier: NotificationSink | None = None,
        task_registry: TaskRegistry | None = None,
    ):
        self.config = config or get_active_config()
        self.clock = clock or SystemClock()
        if task_registry is None:
            task_registry = build_invoice_task_registry(self.config, notifier)
        self.task_registry = task_registry
        logger.debug(
            "batch_orchestrator_ready",
            extra={"tasks": list(self.task_registry.list_tasks())},
        )

    def create_runner(self, session: Session) -> BatchRunner:
        return BatchRunner(session, self.task_registry, self.clock)

    def create_scheduler(
        self,
        session_factory: Callable[[], Session],
        tick_interval_seconds: int | None = None,
    ) -> BatchScheduler:
        return BatchScheduler(
            session_factory=session_factory,
            task_registry=self.task_registry,
            clock=self.clock,
            tick_interval_seconds=(
                tick_interval_seconds or self.config.scheduler_tick_seconds
            ),
        )
