"""Exponential backoff used between polls and between retry attempts."""

from __future__ import annotations


def backoff_ms(minimum: float, maximum: float, iteration: int) -> int:
    """Return ``floor(min(minimum * 2 ** (iteration / 5), maximum))`` in milliseconds.

    The delay doubles every five iterations and is capped at ``maximum``.
    """
    if iteration < 0:
        raise ValueError(f"iteration must be >= 0, got {iteration}")
    try:
        value = minimum * 2 ** (iteration / 5)
    except OverflowError:
        value = maximum
    return int(min(value, maximum))


def backoff_seconds(minimum_ms: float, maximum_ms: float, iteration: int) -> float:
    return backoff_ms(minimum_ms, maximum_ms, iteration) / 1000.0
