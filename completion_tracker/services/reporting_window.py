"""
Reporting window calculator.

Maps a collection frequency and a reference instant to the calendar-aligned,
half-open UTC interval ``[start, end)`` that is currently open for
submissions. Pure functions, no I/O.

Usage:
    window = window_for("quarterly", datetime(2025, 5, 10, tzinfo=timezone.utc))
    window.start  # 2025-04-01T00:00:00+00:00
    window.end    # 2025-07-01T00:00:00+00:00

    is_missing("monthly", last_entry_at, now)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from completion_tracker.models import as_utc

DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"

DEFAULT_FREQUENCY = MONTHLY

_ALIASES = {
    "daily": DAILY,
    "day": DAILY,
    "real-time": DAILY,
    "realtime": DAILY,
    "weekly": WEEKLY,
    "week": WEEKLY,
    "monthly": MONTHLY,
    "month": MONTHLY,
    "quarterly": QUARTERLY,
    "quarter": QUARTERLY,
    "3-months": QUARTERLY,
    "3-month": QUARTERLY,
    "yearly": YEARLY,
    "year": YEARLY,
    "annually": YEARLY,
    "annual": YEARLY,
    "12-months": YEARLY,
}


def normalize_frequency(frequency: str | None) -> str:
    """Canonical frequency name; unknown or empty values fall back to monthly."""
    if not frequency or not isinstance(frequency, str):
        return DEFAULT_FREQUENCY
    key = frequency.strip().lower().replace("_", "-").replace(" ", "-")
    return _ALIASES.get(key, DEFAULT_FREQUENCY)


def _add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = (year * 12 + (month - 1)) + months
    return index // 12, index % 12 + 1


def _month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class ReportingWindow:
    """Half-open ``[start, end)`` interval in UTC."""

    frequency: str
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        instant = as_utc(instant)
        return self.start <= instant < self.end

    def to_dict(self) -> dict:
        return {
            "frequency": self.frequency,
            "from": self.start.isoformat(),
            "to": self.end.isoformat(),
        }


def window_for(frequency: str | None, reference_instant: datetime | None = None) -> ReportingWindow:
    """Return the reporting window covering ``reference_instant`` for ``frequency``."""
    freq = normalize_frequency(frequency)
    ref = as_utc(reference_instant) if reference_instant is not None else datetime.now(timezone.utc)
    day_start = datetime(ref.year, ref.month, ref.day, tzinfo=timezone.utc)

    if freq == DAILY:
        start = day_start
        end = start + timedelta(days=1)
    elif freq == WEEKLY:
        # ISO week starts on Monday
        start = day_start - timedelta(days=ref.weekday())
        end = start + timedelta(days=7)
    elif freq == QUARTERLY:
        first_month = 3 * ((ref.month - 1) // 3) + 1
        start = _month_start(ref.year, first_month)
        end = _month_start(*_add_months(ref.year, first_month, 3))
    elif freq == YEARLY:
        start = _month_start(ref.year, 1)
        end = _month_start(ref.year + 1, 1)
    else:
        start = _month_start(ref.year, ref.month)
        end = _month_start(*_add_months(ref.year, ref.month, 1))

    return ReportingWindow(frequency=freq, start=start, end=end)


def is_missing(frequency: str | None, last_entry_at: datetime | None,
               reference_instant: datetime | None = None) -> bool:
    """True when no submission exists for the window open at ``reference_instant``.

    A submission dated after the reference instant but still inside the
    window satisfies it; anything before the window start does not.
    """
    if last_entry_at is None:
        return True
    window = window_for(frequency, reference_instant)
    return as_utc(last_entry_at) < window.start


@dataclass(frozen=True)
class Period:
    """A calendar month used as the completion-stats reporting period."""

    month: int
    year: int
    start: datetime
    end: datetime

    @classmethod
    def for_month(cls, year: int, month: int) -> "Period":
        if not 1 <= month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {month}")
        window = window_for(MONTHLY, _month_start(year, month))
        return cls(month=month, year=year, start=window.start, end=window.end)

    @classmethod
    def containing(cls, instant: datetime | None = None) -> "Period":
        ref = as_utc(instant) if instant is not None else datetime.now(timezone.utc)
        return cls.for_month(ref.year, ref.month)

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "year": self.year,
            "from": self.start.isoformat(),
            "to": self.end.isoformat(),
        }
