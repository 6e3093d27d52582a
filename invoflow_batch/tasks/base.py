"""
Task contract for scheduled invoicing work.

A task splits one run into independent items: ``prepare_items`` decides
*what* is due as of the run instant, ``execute_item`` handles one of them.
The runner wraps each ``execute_item`` call in its own SAVEPOINT, so a task
never commits, rolls back or retries.

Only ``invoflow_batch.domain`` and SQLAlchemy's ``Session`` type are
imported here; concrete tasks live beside this module.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.orm import Session

from invoflow_batch.domain.types import BatchItemStatus


@dataclass(frozen=True)
class BatchItemInput:
    """One unit of work, e.g. a recurring template or an owner to sweep."""

    item_index: int
    item_key: str
    payload: dict[str, Any] = field(default_factory=dict)

    def uuid(self, key: str) -> UUID:
        return UUID(str(self.payload[key]))


@dataclass(frozen=True)
class BatchTaskResult:
    status: BatchItemStatus
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def succeeded(cls, **data: Any) -> BatchTaskResult:
        return cls(status=BatchItemStatus.SUCCEEDED, result_data=data)

    @classmethod
    def skipped(cls) -> BatchTaskResult:
        return cls(status=BatchItemStatus.SKIPPED)

    @classmethod
    def rejected(cls, exc: Exception) -> BatchTaskResult:
        """A domain error that fails the item without aborting the run."""
        return cls(
            status=BatchItemStatus.FAILED,
            error_code=getattr(exc, "code", type(exc).__name__),
            error_message=str(exc),
        )


def user_scope(parameters: Mapping[str, Any]) -> UUID | None:
    """The optional ``user_id`` run parameter narrowing a task to one owner."""
    value = parameters.get("user_id")
    if not value:
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


@runtime_checkable
class BatchTask(Protocol):
    """
    Contract:
        - ``task_type`` is the registry key, e.g. ``invoices.sweep_overdue``.
        - ``prepare_items`` only reads; the items it returns are immutable.
        - ``execute_item`` handles one item and reports the outcome instead
          of raising for expected domain errors.
    """

    @property
    def task_type(self) -> str: ...

    @property
    def description(self) -> str: ...

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]: ...

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult: ...


class TaskRegistry:
    """Tasks keyed by ``task_type``; iteration follows registration order."""

    def __init__(self, tasks: tuple[BatchTask, ...] = ()) -> None:
        self._by_type: dict[str, BatchTask] = {}
        for task in tasks:
            self.register(task)

    def register(self, task: BatchTask) -> None:
        """
        Raises:
            ValueError: ``task.task_type`` is already taken.
        """
        if task.task_type in self._by_type:
            raise ValueError(f"Task type '{task.task_type}' is already registered")
        self._by_type[task.task_type] = task

    def get(self, task_type: str) -> BatchTask:
        """
        Raises:
            KeyError: Unknown ``task_type``; the message lists the known ones.
        """
        task = self._by_type.get(task_type)
        if task is None:
            raise KeyError(
                f"No task registered for type '{task_type}'. "
                f"Available: {sorted(self._by_type)}"
            )
        return task

    def list_tasks(self) -> tuple[str, ...]:
        return tuple(self._by_type)

    def __iter__(self) -> Iterator[BatchTask]:
        return iter(tuple(self._by_type.values()))

    def __len__(self) -> int:
        return len(self._by_type)

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._by_type
