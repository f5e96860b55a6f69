"""Compact base-62 identifiers derived from creation timestamps."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
BASE = len(ALPHABET)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def encode(timestamp_millis: int) -> str:
    """Encode a Unix timestamp in milliseconds as a base-62 string.

    Most significant digit first, no padding. Strings of different lengths do
    not sort chronologically, and two timestamps in the same millisecond give
    the same id.
    """
    if timestamp_millis < 0:
        raise ValueError(f"timestamp must be non-negative, got {timestamp_millis}")
    if timestamp_millis == 0:
        return ALPHABET[0]

    digits: list[str] = []
    n = timestamp_millis
    while n:
        n, rem = divmod(n, BASE)
        digits.append(ALPHABET[rem])
    return "".join(reversed(digits))


def to_millis(moment: datetime) -> int:
    """Unix milliseconds for a datetime (naive values are taken as local time)."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def short_id_for(moment: datetime) -> str:
    return encode(to_millis(moment))
