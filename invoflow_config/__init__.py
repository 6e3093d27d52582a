"""
invoflow_config -- single public entrypoint for application configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services, the batch scheduler and entry
    scripts receive an ``AppConfig`` from here instead of reading files or
    environment variables themselves.

Architecture position:
    Configuration -- YAML file plus environment overrides.  This package
    sits beside ``invoflow_kernel`` and below ``invoflow_services`` /
    ``invoflow_batch``.  The kernel MUST NEVER import from
    ``invoflow_config``; services pass the relevant values into kernel
    constructors.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic identity: the same effective values always produce the
      same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the selected YAML file does not exist.
    - ``ValueError`` -- a key has the wrong type or an out-of-range value.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``INVOFLOW_CONFIG_TRACE`` log entry with the source path and checksum.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from invoflow_config.loader import AppConfig, compute_checksum, load_config

_logger = logging.getLogger("invoflow.config")

__all__ = ["AppConfig", "get_active_config"]


def get_active_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Explicit YAML file.  Defaults to ``$INVOFLOW_CONFIG`` or the
            packaged ``defaults.yaml``.
        environ: Environment mapping used for overrides (``os.environ``
            when omitted).

    Returns:
        The frozen ``AppConfig``.

    Raises:
        FileNotFoundError: If the selected file does not exist.
        ValueError: If validation fails.
    """
    config, source = load_config(path, environ)
    checksum = compute_checksum(config.to_dict())

    _logger.info(
        "INVOFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "INVOFLOW_CONFIG_TRACE",
            "source": str(source),
            "checksum": checksum,
            "log_level": config.log_level,
            "default_currency": config.default_currency,
            "recurring_auto_send": config.recurring_auto_send,
        },
    )
    return config
