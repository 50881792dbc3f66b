"""Retry backoff for failed outbox deliveries."""

from __future__ import annotations

from datetime import timedelta

DEFAULT_MAX_BACKOFF_EXPONENT = 6


def compute_retry_delay(
    retry_count: int,
    max_exponent: int = DEFAULT_MAX_BACKOFF_EXPONENT,
) -> timedelta:
    """Delay before the next delivery attempt.

    ``delay = min(2^retry_count, 2^max_exponent)`` minutes, where
    ``retry_count`` is the number of failures recorded so far (including
    the one just recorded):

    - 1st failure: 2 minutes
    - 2nd failure: 4 minutes
    - 6th failure onwards: 64 minutes (with the default cap)

    Args:
        retry_count: Failures recorded on the message. Negative values are
            treated as zero.
        max_exponent: Exponent of the cap.

    Returns:
        Delay to add to the current time.
    """
    exponent = min(max(retry_count, 0), max_exponent)
    return timedelta(minutes=2**exponent)


__all__ = ["DEFAULT_MAX_BACKOFF_EXPONENT", "compute_retry_delay"]
