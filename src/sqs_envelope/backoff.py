"""
Visibility timeout backoff functions.

A backoff function maps a message's receive count to the visibility timeout
to apply before it is retried:

    f(receive_count, initial_timeout, max_timeout, factor) -> timeout

Any callable with this signature can be set as ``ClientSettings.backoff_function``.
"""

from __future__ import annotations

# Receive counts above this are treated as equal, which keeps the exponent bounded.
MAX_RECEIVE_COUNT: int = 9999


def exponential_backoff(
    receive_count: int, min_backoff: int, max_backoff: int, backoff_factor: int
) -> int:
    """min_backoff * factor ** (receive_count - 1), capped at max_backoff."""
    count = min(receive_count, MAX_RECEIVE_COUNT)
    retry_number = max(count - 1, 0)
    return min(backoff_factor**retry_number * min_backoff, max_backoff)


def linear_backoff(
    receive_count: int, min_backoff: int, max_backoff: int, backoff_factor: int
) -> int:
    """min_backoff + (receive_count - 1) * factor, capped at max_backoff."""
    return min(min_backoff + (receive_count - 1) * backoff_factor, max_backoff)
