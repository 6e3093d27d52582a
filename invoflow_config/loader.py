"""
Configuration Loader (``invoflow_config.loader``).

Responsibility
--------------
Loads the YAML configuration file, applies environment overrides and
parses the result into the frozen ``AppConfig`` dataclass.  Runtime code
obtains configuration through ``invoflow_config.get_active_config()``;
the functions here are also used directly by tests.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on kernel
services, engines or batch.

Invariants enforced
-------------------
* Every parse or range error raises ``ValueError`` naming the offending key.
* Unknown sections and keys are ignored; missing keys take the documented
  defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective configuration.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_PATH = "INVOFLOW_CONFIG"
ENV_DATABASE_URL = "INVOFLOW_DATABASE_URL"
ENV_LOG_LEVEL = "INVOFLOW_LOG_LEVEL"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class AppConfig:
    """Effective application configuration."""

    database_url: str = "sqlite:///invoflow.db"
    database_echo: bool = False
    log_level: str = "INFO"
    default_currency: str = "USD"
    payment_terms_days: int = 30
    invoice_number_prefix: str = "INV-"
    invoice_number_width: int = 3
    recurring_auto_send: bool = False
    report_window_months: int = 12
    top_clients_limit: int = 10
    scheduler_tick_seconds: int = 60

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return value


def _int(value: Any, key: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Config key '{key}' must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"Config key '{key}' must be >= {minimum}, got {value}")
    return value


def _bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Config key '{key}' must be true or false, got {value!r}")
    return value


def _str(value: Any, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config key '{key}' must be a non-empty string")
    return value.strip()


def parse_config(data: Mapping[str, Any]) -> AppConfig:
    """
    Parse a configuration mapping into ``AppConfig``.

    Raises:
        ValueError: on a wrong type or out-of-range value.
    """
    defaults = AppConfig()
    database = _section(data, "database")
    logging_section = _section(data, "logging")
    invoicing = _section(data, "invoicing")
    recurring = _section(data, "recurring")
    reporting = _section(data, "reporting")
    scheduler = _section(data, "scheduler")

    log_level = _str(logging_section.get("level", defaults.log_level), "logging.level").upper()
    if log_level not in _LOG_LEVELS:
        raise ValueError(f"Config key 'logging.level' has unknown level {log_level!r}")

    currency = _str(
        invoicing.get("default_currency", defaults.default_currency),
        "invoicing.default_currency",
    ).upper()
    if len(currency) != 3 or not currency.isalpha():
        raise ValueError(
            f"Config key 'invoicing.default_currency' must be a 3-letter code, got {currency!r}"
        )

    prefix = invoicing.get("number_prefix", defaults.invoice_number_prefix)
    if not isinstance(prefix, str):
        raise ValueError("Config key 'invoicing.number_prefix' must be a string")

    return AppConfig(
        database_url=_str(database.get("url", defaults.database_url), "database.url"),
        database_echo=_bool(database.get("echo", defaults.database_echo), "database.echo"),
        log_level=log_level,
        default_currency=currency,
        payment_terms_days=_int(
            invoicing.get("payment_terms_days", defaults.payment_terms_days),
            "invoicing.payment_terms_days", 0,
        ),
        invoice_number_prefix=prefix,
        invoice_number_width=_int(
            invoicing.get("number_width", defaults.invoice_number_width),
            "invoicing.number_width", 1,
        ),
        recurring_auto_send=_bool(
            recurring.get("auto_send", defaults.recurring_auto_send),
            "recurring.auto_send",
        ),
        report_window_months=_int(
            reporting.get("window_months", defaults.report_window_months),
            "reporting.window_months", 1,
        ),
        top_clients_limit=_int(
            reporting.get("top_clients", defaults.top_clients_limit),
            "reporting.top_clients", 1,
        ),
        scheduler_tick_seconds=_int(
            scheduler.get("tick_seconds", defaults.scheduler_tick_seconds),
            "scheduler.tick_seconds", 1,
        ),
    )


def apply_env_overrides(
    data: Mapping[str, Any], environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment variable overrides applied."""
    merged: dict[str, Any] = {
        key: dict(value) if isinstance(value, Mapping) else value
        for key, value in data.items()
    }
    if environ.get(ENV_DATABASE_URL):
        merged.setdefault("database", {})["url"] = environ[ENV_DATABASE_URL]
    if environ.get(ENV_LOG_LEVEL):
        merged.setdefault("logging", {})["level"] = environ[ENV_LOG_LEVEL]
    return merged


def resolve_config_path(
    path: Path | None, environ: Mapping[str, str],
) -> Path:
    if path is not None:
        return Path(path)
    if environ.get(ENV_CONFIG_PATH):
        return Path(environ[ENV_CONFIG_PATH])
    return DEFAULTS_PATH


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[AppConfig, Path]:
    """
    Load, override and parse the configuration.

    Args:
        path: Explicit YAML file; otherwise ``INVOFLOW_CONFIG`` or the
            packaged defaults.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        The parsed config and the file it was read from.
    """
    if environ is None:
        environ = os.environ
    source = resolve_config_path(path, environ)
    raw = load_yaml_file(source)
    return parse_config(apply_env_overrides(raw, environ)), source


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
