"""
invoflow_batch -- Batch processing and the recurring job scheduler.

Provides a batch runner with per-item SAVEPOINT isolation and an
in-process polling scheduler.  The two invoicing jobs that have no
inbound request to drive them, recurring-invoice materialisation and the
overdue sweep, run here as registered tasks.

Architecture:
    invoflow_batch/ is a top-level package.  Nothing in kernel/, engines/
    or services/ imports from invoflow_batch.

Invariants:
    - SAVEPOINT isolation per item: one failing item does not abort a run.
    - Clock injection: every task sees the run's ``as_of`` time, never the
      wall clock.
    - Idempotent ticks: running the scheduler twice in the same day
      creates no second invoice for a cycle and flips no invoice twice.
    - Graceful shutdown: ``stop()`` lets the current tick finish.
"""
