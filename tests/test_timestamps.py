from datetime import date, datetime, timedelta, timezone

import pytest

from storefront.utils.timestamps import (
    TimestampParseError,
    from_epoch_millis,
    to_datetime,
    to_epoch_millis,
)

JAN_1_2024_MS = 1704067200000


@pytest.mark.parametrize(
    "value",
    [
        datetime(2024, 1, 1, tzinfo=timezone.utc),
        datetime(2024, 1, 1),  # naive is treated as UTC
        datetime(2024, 1, 1, 5, 30, tzinfo=timezone(timedelta(hours=5, minutes=30))),
        date(2024, 1, 1),
        1704067200,
        1704067200.0,
        "1704067200",
        "2024-01-01T00:00:00Z",
        "2024-01-01T05:30:00+05:30",
        "2024-01-01 00:00:00",
        {"seconds": 1704067200, "nanoseconds": 0},
        {"_seconds": 1704067200, "_nanoseconds": 0},
    ],
)
def test_equivalent_representations_normalize_to_same_instant(value):
    assert to_epoch_millis(value) == JAN_1_2024_MS


def test_sub_second_precision_is_kept():
    assert to_epoch_millis(1704067200.5) == JAN_1_2024_MS + 500
    assert to_epoch_millis({"seconds": 1704067200, "nanoseconds": 250_000_000}) == JAN_1_2024_MS + 250


@pytest.mark.parametrize(
    "value",
    [None, True, False, "", "   ", "next tuesday", {"foo": 1}, {"seconds": "abc"}, [1704067200], object()],
)
def test_unparseable_values_raise(value):
    with pytest.raises(TimestampParseError):
        to_epoch_millis(value)


def test_parse_error_is_a_value_error():
    assert issubclass(TimestampParseError, ValueError)


def test_from_epoch_millis_is_utc_aware():
    dt = from_epoch_millis(JAN_1_2024_MS)
    assert dt == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert dt.tzinfo is not None


def test_to_datetime_round_trips_mapping():
    assert to_datetime({"seconds": 1704067200}) == datetime(2024, 1, 1, tzinfo=timezone.utc)
