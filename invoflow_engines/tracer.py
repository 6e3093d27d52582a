"""
invoflow_engines.tracer -- ``@traced_engine`` and the INVOFLOW_ENGINE_TRACE record.

Every pure engine (totals, the three scorers, report aggregation) is
wrapped so that each call logs its name, version, duration and a
fingerprint of the inputs that drive the result.  The heuristic scorers
depend only on history and "today", so two calls with the same fingerprint
must produce the same answer; the trace makes that checkable from logs.

The decorator adds a log record and nothing else; engines stay free of I/O.

Usage:
    @traced_engine("payment_prediction", "1.0", fingerprint_fields=("due_date", "today"))
    def predict_payment_date(history, invoice_total, due_date, today):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from invoflow_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16


@functools.singledispatch
def _canonical(value: Any) -> str:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _canonical({f.name: getattr(value, f.name) for f in dataclasses.fields(value)})
    return "null" if value is None else str(value)


@_canonical.register
def _(value: Enum) -> str:
    return str(value.value)


@_canonical.register
def _(value: Decimal) -> str:
    # 100, 100.0 and 100.00 are the same amount
    return str(value.normalize()) if value.is_finite() else str(value)


@_canonical.register
def _(value: date) -> str:
    return value.isoformat()


@_canonical.register
def _(value: Mapping) -> str:
    pairs = sorted((str(k), _canonical(v)) for k, v in value.items())
    return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"


@_canonical.register(list)
@_canonical.register(tuple)
def _(value) -> str:
    return "[" + ",".join(_canonical(v) for v in value) + "]"


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """SHA-256 prefix over ``field=value`` pairs; absent fields count as ``None``."""
    canonical = "|".join(f"{name}={_canonical(kwargs.get(name))}" for name in fingerprint_fields)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Args:
        engine_name: e.g. ``"duplicate_detection"``.
        engine_version: Bumped whenever scoring constants change.
        fingerprint_fields: Parameter names hashed into the fingerprint,
            whether they are passed positionally or by keyword.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = (time.perf_counter() - started) * 1000

            _logger.info(
                "INVOFLOW_ENGINE_TRACE",
                extra={
                    "trace_type": "INVOFLOW_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": round(elapsed_ms, 2),
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
