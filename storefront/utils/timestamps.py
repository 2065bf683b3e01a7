# storefront/utils/timestamps.py
"""
Timestamp normalization.

Coupon windows and other instants reach the service in several shapes:
datetimes from the database (naive when the driver drops the offset),
epoch seconds from imports, ISO-8601 strings from admin forms, and
``{"seconds": ..., "nanoseconds": ...}`` mappings from exported documents.
Everything is compared as integer epoch milliseconds in UTC.
"""
from datetime import date, datetime, time, timezone
from numbers import Real
from typing import Any, Mapping


class TimestampParseError(ValueError):
    """The value cannot be interpreted as an instant."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; leave aware ones untouched."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def from_epoch_millis(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _from_mapping(value: Mapping[str, Any]) -> int:
    for seconds_key, nanos_key in (("seconds", "nanoseconds"), ("_seconds", "_nanoseconds")):
        if seconds_key in value:
            seconds = value[seconds_key]
            nanos = value.get(nanos_key, 0) or 0
            if isinstance(seconds, bool) or not isinstance(seconds, Real):
                raise TimestampParseError(f"Invalid seconds field: {seconds!r}")
            if isinstance(nanos, bool) or not isinstance(nanos, Real):
                raise TimestampParseError(f"Invalid nanoseconds field: {nanos!r}")
            return int(seconds) * 1000 + int(nanos) // 1_000_000
    raise TimestampParseError(f"Unrecognized timestamp mapping keys: {sorted(value)}")


def _from_string(value: str) -> int:
    text = value.strip()
    if not text:
        raise TimestampParseError("Empty timestamp string")

    try:
        return int(float(text) * 1000)
    except ValueError:
        pass

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise TimestampParseError(f"Invalid timestamp string: {value!r}") from e
    return int(ensure_aware(parsed).timestamp() * 1000)


def to_epoch_millis(value: Any) -> int:
    """
    Normalize ``value`` to integer milliseconds since the Unix epoch (UTC).

    Accepts datetimes (naive = UTC), dates (midnight UTC), int/float epoch
    seconds, numeric or ISO-8601 strings and ``seconds``/``_seconds``
    mappings. Raises TimestampParseError for anything else, including None.
    """
    if value is None:
        raise TimestampParseError("Timestamp is missing")
    if isinstance(value, bool):
        raise TimestampParseError("Booleans are not timestamps")
    if isinstance(value, datetime):
        return int(ensure_aware(value).timestamp() * 1000)
    if isinstance(value, date):
        return int(datetime.combine(value, time(), tzinfo=timezone.utc).timestamp() * 1000)
    if isinstance(value, Real):
        return int(value * 1000)
    if isinstance(value, str):
        return _from_string(value)
    if isinstance(value, Mapping):
        return _from_mapping(value)
    raise TimestampParseError(f"Unsupported timestamp type: {type(value).__name__}")


def to_datetime(value: Any) -> datetime:
    """Normalize any accepted timestamp shape to an aware UTC datetime."""
    return from_epoch_millis(to_epoch_millis(value))
