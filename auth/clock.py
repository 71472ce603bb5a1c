"""
auth/clock.py -- Current-time source for expiry decisions.

Every auth component takes a ``clock`` callable (defaulting to utc_now) instead
of calling datetime.now() inline, so tests can freeze or advance time and
check expiry deterministically.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)
