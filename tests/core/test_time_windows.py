"""Time Windows — UTC coercion and inclusive rolling windows."""

from datetime import date, datetime, timedelta, timezone

from conxion.core.time_windows import as_utc, date_within_days, within_window

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
WINDOW = timedelta(days=15)


def test_naive_is_read_as_utc():
    assert as_utc(datetime(2026, 3, 10, 12, 0)) == NOW


def test_iso_strings_with_z_suffix():
    assert as_utc("2026-03-10T12:00:00Z") == NOW


def test_offsets_are_converted():
    assert as_utc("2026-03-10T14:00:00+02:00") == NOW


def test_garbage_is_none():
    assert as_utc("yesterday") is None
    assert as_utc("   ") is None
    assert as_utc(12) is None


def test_window_bounds_are_inclusive():
    assert within_window(NOW, WINDOW, NOW)
    assert within_window(NOW - WINDOW, WINDOW, NOW)
    assert not within_window(NOW - WINDOW - timedelta(seconds=1), WINDOW, NOW)


def test_future_timestamps_fall_outside():
    assert not within_window(NOW + timedelta(minutes=1), WINDOW, NOW)


def test_missing_never_satisfies():
    assert not within_window(None, WINDOW, NOW)
    assert not within_window("", WINDOW, NOW)


def test_calendar_day_window():
    today = date(2026, 3, 10)
    assert date_within_days(date(2026, 2, 23), 15, today)
    assert not date_within_days(date(2026, 2, 22), 15, today)
    assert not date_within_days(date(2026, 3, 11), 15, today)
    assert not date_within_days(None, 15, today)
