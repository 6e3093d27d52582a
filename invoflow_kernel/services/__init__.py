"""Kernel write-side services (flush, never commit)."""
