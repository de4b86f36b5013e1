"""
Core Utilities

Shared helpers used across the application.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Return timezone-aware UTC datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def pad_token_id(token_id: int, width: int = 5) -> str:
    """Zero-pad a numeric token id (7 -> "00007")."""
    return str(token_id).zfill(width)
