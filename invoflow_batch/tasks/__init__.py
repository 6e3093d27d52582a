"""
invoflow_batch.tasks -- Task protocol, registry, and invoicing task implementations.

ZERO kernel/engine/service imports in base.py.
invoice_tasks.py reaches the services through ``build_services``.
"""

from invoflow_batch.tasks.base import (
    BatchItemInput,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
)
from invoflow_batch.tasks.invoice_tasks import (
    MaterializeRecurringTask,
    SweepOverdueTask,
)

__all__ = [
    "BatchItemInput",
    "BatchTask",
    "BatchTaskResult",
    "MaterializeRecurringTask",
    "SweepOverdueTask",
    "TaskRegistry",
]
