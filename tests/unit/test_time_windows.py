from datetime import date, datetime, time, timezone

from fieldops.services.time_windows import (
    day_of_week, elapsed_minutes, format_hhmm, iter_dates, minutes_between, windows_overlap,
)


def test_partial_overlap_detected_both_ways():
    assert windows_overlap(time(9, 0), time(10, 30), time(10, 0), time(11, 0))
    assert windows_overlap(time(10, 0), time(11, 0), time(9, 0), time(10, 30))


def test_containment_is_overlap():
    assert windows_overlap(time(8, 0), time(12, 0), time(9, 0), time(10, 0))
    assert windows_overlap(time(9, 0), time(10, 0), time(8, 0), time(12, 0))


def test_identical_windows_overlap():
    assert windows_overlap(time(9, 0), time(10, 0), time(9, 0), time(10, 0))


def test_adjacent_windows_do_not_overlap():
    assert not windows_overlap(time(9, 0), time(10, 0), time(10, 0), time(11, 0))
    assert not windows_overlap(time(10, 0), time(11, 0), time(9, 0), time(10, 0))


def test_disjoint_windows_do_not_overlap():
    assert not windows_overlap(time(7, 0), time(8, 0), time(13, 0), time(14, 0))


def test_minutes_between():
    assert minutes_between(time(9, 0), time(11, 0)) == 120
    assert minutes_between(time(9, 15), time(9, 45)) == 30
    assert minutes_between(time(11, 0), time(9, 0)) == 0


def test_elapsed_minutes():
    start = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)
    end = datetime(2024, 6, 1, 10, 45, 30, tzinfo=timezone.utc)
    assert elapsed_minutes(start, end) == 105


def test_day_of_week_is_sunday_based():
    assert day_of_week(date(2024, 6, 2)) == 0  # Sunday
    assert day_of_week(date(2024, 6, 3)) == 1  # Monday
    assert day_of_week(date(2024, 6, 1)) == 6  # Saturday


def test_iter_dates_inclusive():
    days = list(iter_dates(date(2024, 6, 1), date(2024, 6, 3)))
    assert days == [date(2024, 6, 1), date(2024, 6, 2), date(2024, 6, 3)]
    assert list(iter_dates(date(2024, 6, 3), date(2024, 6, 1))) == []


def test_format_hhmm():
    assert format_hhmm(time(8, 5)) == "08:05"
    assert format_hhmm(None) is None
