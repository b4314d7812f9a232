"""Epoch timestamp normalization.

Producers emit a mix of millisecond epochs (13 digits) and over-precise
values such as nanosecond epochs (19 digits). Every timestamp read by the
engine goes through ``normalize_timestamp`` before any comparison.
"""

from __future__ import annotations

# Largest 13-digit value: anything above cannot be a millisecond epoch.
MAX_MILLIS_EPOCH = 9_999_999_999_999
NANOS_PER_MILLI = 1_000_000


def normalize_timestamp(timestamp: int) -> int:
    """Return ``timestamp`` as a millisecond epoch.

    Example: 1761204205212000000 -> 1761204205212
    """
    if timestamp > MAX_MILLIS_EPOCH:
        # Truncating division, same result as the SQL side for positive epochs.
        return int(timestamp) // NANOS_PER_MILLI
    return int(timestamp)
