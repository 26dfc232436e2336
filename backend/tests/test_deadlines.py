import os
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.services.deadlines import (
    FAR_FUTURE,
    elapsed_fraction,
    get_baseline,
    get_deadline,
    parse_timestamp,
    sent_for_cycle,
    to_iso,
)

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _switch(**overrides):
    values = {
        "created_at": to_iso(T0),
        "last_checkin_at": None,
        "interval_days": 7,
        "grace_days": 0,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_deadline_is_interval_plus_grace_in_calendar_days():
    assert get_deadline(T0, 7, 2) == datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


def test_deadline_crosses_month_and_year_boundaries():
    baseline = datetime(2026, 12, 20, 8, 30, tzinfo=timezone.utc)
    assert get_deadline(baseline, 14, 0) == datetime(2027, 1, 3, 8, 30, tzinfo=timezone.utc)


def test_non_positive_interval_is_due_immediately():
    assert get_deadline(T0, 0, 3) == T0
    assert get_deadline(T0, -5, 0) == T0


def test_deadline_beyond_calendar_range_clamps_to_far_future():
    assert get_deadline(T0, 5_000_000) == FAR_FUTURE
    assert get_deadline(T0, 10**12, 3) == FAR_FUTURE
    assert to_iso(FAR_FUTURE).startswith("9999-12-31T23:59:59")


def test_negative_grace_counts_as_zero():
    assert get_deadline(T0, 7, -3) == T0 + timedelta(days=7)


def test_baseline_falls_back_to_created_at():
    assert get_baseline(_switch()) == T0

    checked_in = T0 + timedelta(days=3)
    assert get_baseline(_switch(last_checkin_at=to_iso(checked_in))) == checked_in


def test_baseline_is_none_for_malformed_timestamp():
    assert get_baseline(_switch(created_at="not-a-date")) is None


def test_parse_timestamp_accepts_z_suffix_and_naive_values():
    assert parse_timestamp("2026-01-01T12:00:00Z") == T0
    assert parse_timestamp("2026-01-01T12:00:00") == T0
    assert parse_timestamp("2026-01-01T13:00:00+01:00") == T0
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None


def test_sent_for_cycle_compares_against_baseline():
    assert sent_for_cycle(to_iso(T0), T0)
    assert sent_for_cycle(to_iso(T0 + timedelta(hours=1)), T0)
    assert not sent_for_cycle(to_iso(T0 - timedelta(seconds=1)), T0)
    assert not sent_for_cycle(None, T0)
    assert not sent_for_cycle("garbage", T0)


def test_elapsed_fraction():
    deadline = T0 + timedelta(days=10)
    assert elapsed_fraction(T0, deadline, T0 + timedelta(days=5)) == 0.5
    assert elapsed_fraction(T0, T0, T0) == 1.0
