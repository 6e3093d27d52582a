"""Batch runner and polling scheduler."""

from invoflow_batch.services.runner import BatchRunner
from invoflow_batch.services.scheduler import BatchScheduler

__all__ = ["BatchRunner", "BatchScheduler"]
