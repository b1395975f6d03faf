"""Parsing helpers for ``WR_*`` / ``TFE_*`` environment values.

Every helper returns None when the variable is unset so callers can fall
back to their own defaults.
"""

from __future__ import annotations

from typing import Callable, TypeVar

N = TypeVar("N", int, float)

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def parse_bool_env(value: str | None) -> bool | None:
    """True for 1/true/yes/on (any case), False for anything else that is set."""
    if value is None:
        return None
    return value.strip().lower() in _TRUTHY


def _parse_number(value: str | None, kind: Callable[[str], N]) -> N | None:
    if value is None:
        return None
    try:
        return kind(value.strip())
    except ValueError:
        return None


def parse_int_env(value: str | None) -> int | None:
    """Integer value, or None when unset or not a number."""
    return _parse_number(value, int)


def parse_float_env(value: str | None) -> float | None:
    """Float value, or None when unset or not a number."""
    return _parse_number(value, float)
