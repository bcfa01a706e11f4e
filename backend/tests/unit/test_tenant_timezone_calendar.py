from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.core.exceptions import ValidationException
from app.core.timezone_utils import (
    day_of_week,
    ensure_utc,
    get_zoned_date_and_time,
    parse_time_to_minutes,
    zoned_datetime_to_utc,
    zoned_day_range,
)
from app.services.conflict_checker import local_minute_span, window_contains

NZ = "Pacific/Auckland"


def test_summer_wall_clock_resolves_with_daylight_offset():
    # NZDT is UTC+13
    assert zoned_datetime_to_utc(date(2030, 1, 16), "10:00", NZ) == datetime(
        2030, 1, 15, 21, 0, tzinfo=timezone.utc
    )


def test_winter_wall_clock_resolves_with_standard_offset():
    # NZST is UTC+12
    assert zoned_datetime_to_utc(date(2030, 7, 16), "10:00", NZ) == datetime(
        2030, 7, 15, 22, 0, tzinfo=timezone.utc
    )


@pytest.mark.parametrize(
    "local_date,local_time",
    [
        (date(2030, 1, 16), "00:00"),
        (date(2030, 4, 7), "01:30"),
        (date(2030, 4, 7), "12:00"),
        (date(2030, 9, 29), "04:15"),
        (date(2030, 12, 31), "23:59"),
    ],
)
def test_local_round_trip_across_dst_transitions(local_date, local_time):
    instant = zoned_datetime_to_utc(local_date, local_time, NZ)

    assert get_zoned_date_and_time(instant, NZ) == (local_date, local_time)


def test_day_range_is_twenty_five_hours_when_daylight_saving_ends():
    start, end = zoned_day_range(date(2030, 4, 7), NZ)

    assert start == datetime(2030, 4, 6, 11, 0, tzinfo=timezone.utc)
    assert end - start == timedelta(hours=25)


def test_day_range_is_twenty_three_hours_when_daylight_saving_starts():
    start, end = zoned_day_range(date(2030, 9, 29), NZ)

    assert end - start == timedelta(hours=23)


@pytest.mark.parametrize(
    "tz_name,local_date,hours",
    [
        (NZ, date(2030, 1, 16), 24),
        (NZ, date(2030, 4, 7), 25),
        (NZ, date(2030, 9, 29), 23),
        ("America/New_York", date(2030, 3, 10), 23),
        ("America/New_York", date(2030, 11, 3), 25),
        ("America/New_York", date(2030, 7, 4), 24),
        ("Europe/London", date(2030, 3, 31), 23),
        ("Europe/London", date(2030, 10, 27), 25),
        ("Europe/London", date(2030, 12, 31), 24),
        ("UTC", date(2030, 2, 28), 24),
    ],
)
def test_day_range_starts_at_local_midnight_in_any_zone(tz_name, local_date, hours):
    start, end = zoned_day_range(local_date, tz_name)

    assert get_zoned_date_and_time(start, tz_name) == (local_date, "00:00")
    assert get_zoned_date_and_time(end, tz_name) == (local_date + timedelta(days=1), "00:00")
    assert end - start == timedelta(hours=hours)


@pytest.mark.parametrize(
    "tz_name,local_date,local_time",
    [
        ("America/New_York", date(2030, 3, 10), "03:30"),
        ("America/New_York", date(2030, 11, 3), "00:45"),
        ("Europe/London", date(2030, 3, 31), "02:15"),
        ("Europe/London", date(2030, 10, 27), "23:59"),
    ],
)
def test_wall_clock_round_trip_in_northern_zones(tz_name, local_date, local_time):
    instant = zoned_datetime_to_utc(local_date, local_time, tz_name)

    assert get_zoned_date_and_time(instant, tz_name) == (local_date, local_time)


def test_day_of_week_starts_on_sunday():
    assert day_of_week(date(2030, 1, 13)) == 0
    assert day_of_week(date(2030, 1, 16)) == 3
    assert day_of_week("2030-01-19") == 6


@pytest.mark.parametrize(
    "value,expected",
    [
        ("09:30", 570),
        ("9:05", 545),
        ("17:00:00", 1020),
        ("24:00", None),
        ("12:60", None),
        ("noon", None),
        (None, None),
    ],
)
def test_parse_time_to_minutes(value, expected):
    assert parse_time_to_minutes(value) == expected


def test_unknown_timezone_is_rejected():
    with pytest.raises(ValidationException) as exc_info:
        zoned_datetime_to_utc(date(2030, 1, 16), "10:00", "Mars/Olympus_Mons")
    assert exc_info.value.code == "INVALID_TIMEZONE"


def test_ensure_utc_treats_naive_values_as_utc():
    naive = datetime(2030, 1, 16, 10, 0)
    assert ensure_utc(naive) == datetime(2030, 1, 16, 10, 0, tzinfo=timezone.utc)


def test_local_minute_span_within_one_day():
    start = zoned_datetime_to_utc(date(2030, 1, 16), "10:00", NZ)
    end = zoned_datetime_to_utc(date(2030, 1, 16), "11:30", NZ)

    assert local_minute_span(start, end, NZ) == (date(2030, 1, 16), 600, 690)


def test_local_minute_span_past_midnight_exceeds_one_day():
    start = zoned_datetime_to_utc(date(2030, 1, 16), "23:00", NZ)
    end = zoned_datetime_to_utc(date(2030, 1, 17), "00:30", NZ)

    assert local_minute_span(start, end, NZ) == (date(2030, 1, 16), 1380, 1470)


def _rule(start_time, end_time):
    return SimpleNamespace(start_time=start_time, end_time=end_time)


def test_window_must_fully_contain_the_range():
    rules = [_rule("08:00", "17:00")]

    assert window_contains(rules, 480, 1020)
    assert window_contains(rules, 600, 660)
    assert not window_contains(rules, 470, 600)
    assert not window_contains(rules, 960, 1080)


def test_adjacent_windows_do_not_combine():
    rules = [_rule("08:00", "12:00"), _rule("12:00", "17:00")]

    assert not window_contains(rules, 660, 780)
    assert window_contains(rules, 720, 780)


def test_window_ending_at_midnight():
    rules = [_rule("18:00", "24:00")]

    assert window_contains(rules, 1380, 1440)
    assert not window_contains(rules, 1380, 1470)


def test_malformed_rules_are_ignored():
    assert not window_contains([_rule("17:00", "08:00"), _rule("bad", "12:00")], 600, 660)
