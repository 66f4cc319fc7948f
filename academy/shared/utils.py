"""Shared utility functions."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_email(value: str) -> str:
    """Lower-case and strip an e-mail address for lookups."""
    return value.strip().lower()


def normalize_code(value: str) -> str:
    """Canonical form of a promo code."""
    return value.strip().upper()
