"""Injectable id and clock sources for messages.

Sessions take these as callables so tests can pin ids and timestamps.
"""

from __future__ import annotations

import itertools
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

IdFactory = Callable[[], str]
Clock = Callable[[], datetime]


def uuid_ids() -> IdFactory:
    """Return an id factory producing random UUID4 strings."""

    def _next() -> str:
        return str(uuid.uuid4())

    return _next


def counter_ids(prefix: str = "msg") -> IdFactory:
    """Return an id factory producing ``{prefix}-1``, ``{prefix}-2``, ...

    Ids are monotonic in generation order, which keeps test logs stable.
    """
    counter = itertools.count(1)

    def _next() -> str:
        return f"{prefix}-{next(counter)}"

    return _next


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(UTC)
