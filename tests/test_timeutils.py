"""Tests for civil-time conversion and interval overlap"""

from datetime import date, datetime, timedelta, timezone

import pytest

from tablehaus.core.timeutils import civil_date, day_bounds, ensure_utc, overlaps, to_instant


def at(hour, minute=0):
    return datetime(2030, 6, 15, hour, minute, tzinfo=timezone.utc)


def test_to_instant_uses_restaurant_zone():
    """19:00 in Bangkok is 12:00 UTC regardless of the caller"""
    instant = to_instant("2030-06-15", "19:00", "Asia/Bangkok")

    assert instant == datetime(2030, 6, 15, 12, 0, tzinfo=timezone.utc)
    assert instant.tzinfo == timezone.utc


def test_to_instant_accepts_date_objects():
    assert to_instant(date(2030, 6, 15), "00:30", "Asia/Bangkok") == datetime(2030, 6, 14, 17, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize("bad_date, bad_time", [("2030-13-01", "19:00"), ("2030-06-15", "25:00"), ("tomorrow", "19:00")])
def test_to_instant_rejects_garbage(bad_date, bad_time):
    with pytest.raises(ValueError):
        to_instant(bad_date, bad_time, "Asia/Bangkok")


def test_day_bounds_cover_the_civil_day():
    start, end = day_bounds("2030-06-15", "Asia/Bangkok")

    assert start == datetime(2030, 6, 14, 17, 0, tzinfo=timezone.utc)
    assert end - start == timedelta(days=1)


def test_civil_date_crosses_midnight():
    # 18:30 UTC is already the next day in Bangkok
    assert civil_date(datetime(2030, 6, 15, 18, 30, tzinfo=timezone.utc), "Asia/Bangkok") == date(2030, 6, 16)


def test_ensure_utc_treats_naive_as_utc():
    naive = datetime(2030, 6, 15, 12, 0)

    assert ensure_utc(naive) == at(12)


def test_overlap_partial():
    assert overlaps(at(19), at(21), at(20), at(22))
    assert overlaps(at(20), at(22), at(19), at(21))


def test_overlap_containment():
    assert overlaps(at(18), at(23), at(19), at(20))


def test_shared_endpoint_is_not_overlap():
    """Back-to-back bookings on a table are allowed"""
    assert not overlaps(at(19), at(21), at(21), at(23))
    assert not overlaps(at(21), at(23), at(19), at(21))


def test_zero_length_interval_never_overlaps():
    assert not overlaps(at(20), at(20), at(19), at(21))
    assert not overlaps(at(19), at(21), at(20), at(20))
