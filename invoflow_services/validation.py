"""Field validators shared by the owner-facing services."""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from invoflow_kernel.exceptions import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def require_text(value: Any, field: str, max_length: int = 255) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(field, "is required")
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(field, f"must be at most {max_length} characters")
    return text


def optional_text(value: Any, field: str, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(field, f"must be at most {max_length} characters")
    return text


def validate_email(value: Any, field: str = "email") -> str:
    email = require_text(value, field).lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError(field, "must be a valid email address")
    return email


def require_date(value: Any, field: str) -> date:
    """Accept a ``date`` or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(field, "must be a date (YYYY-MM-DD)")
