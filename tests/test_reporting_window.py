"""
Tests for the reporting window calculator.

Pure functions; no database access beyond the autouse fixture.
"""

from datetime import datetime, timedelta, timezone

import pytest

from completion_tracker.services.reporting_window import (
    DAILY,
    MONTHLY,
    QUARTERLY,
    WEEKLY,
    YEARLY,
    Period,
    is_missing,
    normalize_frequency,
    window_for,
)
from factories import utc


# ═══════════════════════════════════════════════════════════════════════════
#  Frequency normalisation
# ═══════════════════════════════════════════════════════════════════════════


class TestNormalizeFrequency:
    @pytest.mark.parametrize("raw,expected", [
        ("daily", DAILY),
        ("Real-Time", DAILY),
        ("real_time", DAILY),
        ("weekly", WEEKLY),
        ("Monthly", MONTHLY),
        ("3-months", QUARTERLY),
        ("quarterly", QUARTERLY),
        ("annually", YEARLY),
        ("yearly", YEARLY),
    ])
    def test_aliases(self, raw, expected):
        assert normalize_frequency(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "fortnightly", 12])
    def test_unknown_defaults_to_monthly(self, raw):
        assert normalize_frequency(raw) == MONTHLY


# ═══════════════════════════════════════════════════════════════════════════
#  window_for
# ═══════════════════════════════════════════════════════════════════════════


class TestWindowFor:
    def test_monthly(self):
        w = window_for("monthly", utc(2025, 3, 15, 10, 30))
        assert w.start == utc(2025, 3, 1)
        assert w.end == utc(2025, 4, 1)

    def test_monthly_december_rolls_year(self):
        w = window_for("monthly", utc(2024, 12, 31, 23, 59, 59))
        assert w.start == utc(2024, 12, 1)
        assert w.end == utc(2025, 1, 1)

    def test_daily(self):
        w = window_for("daily", utc(2025, 3, 15, 23, 59))
        assert (w.start, w.end) == (utc(2025, 3, 15), utc(2025, 3, 16))

    def test_weekly_starts_monday(self):
        # 2025-03-15 is a Saturday
        w = window_for("weekly", utc(2025, 3, 15, 12))
        assert w.start == utc(2025, 3, 10)
        assert w.end == utc(2025, 3, 17)
        assert w.start.weekday() == 0

    def test_quarterly(self):
        w = window_for("quarterly", utc(2025, 5, 10))
        assert (w.start, w.end) == (utc(2025, 4, 1), utc(2025, 7, 1))

    def test_fourth_quarter_rolls_year(self):
        w = window_for("quarterly", utc(2025, 11, 2))
        assert (w.start, w.end) == (utc(2025, 10, 1), utc(2026, 1, 1))

    def test_yearly(self):
        w = window_for("annually", utc(2025, 7, 4))
        assert (w.start, w.end) == (utc(2025, 1, 1), utc(2026, 1, 1))

    @pytest.mark.parametrize("freq", [DAILY, WEEKLY, MONTHLY, QUARTERLY, YEARLY])
    def test_reference_instant_is_inside_window(self, freq):
        ref = utc(2024, 2, 29, 8, 15)
        w = window_for(freq, ref)
        assert w.start <= ref < w.end
        assert w.contains(ref)
        assert not w.contains(w.end)

    def test_window_start_maps_to_itself(self):
        w = window_for("monthly", utc(2025, 3, 1))
        assert w.start == utc(2025, 3, 1)
        assert window_for("monthly", w.end - timedelta(microseconds=1)) == w

    def test_naive_reference_is_treated_as_utc(self):
        w = window_for("monthly", datetime(2025, 3, 15))
        assert w.start.tzinfo is not None
        assert w.start == utc(2025, 3, 1)

    def test_non_utc_reference_is_converted(self):
        plus_three = timezone(timedelta(hours=3))
        # 02:00 on Apr 1 at +03:00 is still March 31 in UTC
        w = window_for("monthly", datetime(2025, 4, 1, 2, 0, tzinfo=plus_three))
        assert w.start == utc(2025, 3, 1)

    def test_to_dict(self):
        d = window_for("quarterly", utc(2025, 2, 1)).to_dict()
        assert d == {
            "frequency": "quarterly",
            "from": "2025-01-01T00:00:00+00:00",
            "to": "2025-04-01T00:00:00+00:00",
        }


# ═══════════════════════════════════════════════════════════════════════════
#  is_missing
# ═══════════════════════════════════════════════════════════════════════════


class TestIsMissing:
    def test_never_reported_is_missing(self):
        assert is_missing("monthly", None, utc(2025, 3, 15)) is True

    def test_entry_in_previous_month_is_missing_right_after_rollover(self):
        assert is_missing("monthly", utc(2025, 2, 28), utc(2025, 3, 1, 0, 0, 1)) is True

    def test_entry_in_current_window_is_not_missing(self):
        assert is_missing("monthly", utc(2025, 3, 2), utc(2025, 3, 20)) is False

    def test_entry_exactly_at_window_start_counts(self):
        assert is_missing("daily", utc(2025, 3, 20), utc(2025, 3, 20, 18)) is False

    def test_entry_later_in_window_than_reference_counts(self):
        assert is_missing("quarterly", utc(2025, 6, 30), utc(2025, 4, 2)) is False

    def test_real_time_behaves_as_daily(self):
        assert is_missing("real-time", utc(2025, 3, 19, 23), utc(2025, 3, 20, 1)) is True


# ═══════════════════════════════════════════════════════════════════════════
#  Period
# ═══════════════════════════════════════════════════════════════════════════


class TestPeriod:
    def test_for_month(self):
        p = Period.for_month(2025, 3)
        assert (p.start, p.end) == (utc(2025, 3, 1), utc(2025, 4, 1))
        assert p.to_dict()["month"] == 3
        assert p.to_dict()["year"] == 2025

    @pytest.mark.parametrize("month", [0, 13, -1])
    def test_invalid_month(self, month):
        with pytest.raises(ValueError):
            Period.for_month(2025, month)

    def test_containing(self):
        p = Period.containing(utc(2025, 12, 31, 23, 0))
        assert (p.month, p.year) == (12, 2025)
        assert p.end == utc(2026, 1, 1)
