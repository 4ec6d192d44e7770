"""
UTC clock for audit stamps.

Every ``CreatedAt``/``ModifiedAt``/``DeletedAt`` the engine writes comes
from a clock callable that defaults to :func:`utc_now`; repositories accept
``clock=`` so tests can freeze time.

Tags:
    timestamps, utc, datetime, audit
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


__all__ = ["utc_now"]
