# price_agent/pricing/fallback.py

"""Compose optional-returning lookups into a fallback chain."""

from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")


def first_resolved(*steps: Callable[[], T | None]) -> T | None:
    """Call ``steps`` in order and return the first non-``None`` result.

    Later steps are not called once one resolves.
    """
    for step in steps:
        result = step()
        if result is not None:
            return result
    return None
