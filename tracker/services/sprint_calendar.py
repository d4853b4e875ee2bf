"""
Calendar Service — business days and sprint windows.

All date math runs in UTC.  ``utc_today()`` and ``to_utc_date()`` are the only
ways "today" and stored timestamps enter the engine; mixing local-time and UTC
construction shifts sprint numbers by one around midnight.

Sprint windows:
    window n starts at ``anchor + 7 * (n - 1)`` days (00:00:00 UTC) and ends
    six days later at 23:59:59 UTC.  Windows are contiguous and disjoint.

Business days exclude Saturday, Sunday and the observed US federal holidays
listed in ``FEDERAL_HOLIDAYS``.  Dates outside the table are business days.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

logger = logging.getLogger(__name__)

SPRINT_LENGTH_DAYS = 7

# Temporal (derived) sprint statuses
UPCOMING = "upcoming"
ACTIVE = "active"
COMPLETED = "completed"

# Observed dates: Saturday holidays move to Friday, Sunday holidays to Monday.
FEDERAL_HOLIDAYS: dict[int, tuple[str, ...]] = {
    2025: (
        "2025-01-01",  # New Year's Day
        "2025-01-20",  # Martin Luther King Jr. Day
        "2025-02-17",  # Presidents' Day
        "2025-05-26",  # Memorial Day
        "2025-06-19",  # Juneteenth
        "2025-07-04",  # Independence Day
        "2025-09-01",  # Labor Day
        "2025-10-13",  # Columbus Day
        "2025-11-11",  # Veterans Day
        "2025-11-27",  # Thanksgiving Day
        "2025-12-25",  # Christmas Day
    ),
    2026: (
        "2026-01-01",  # New Year's Day
        "2026-01-19",  # Martin Luther King Jr. Day
        "2026-02-16",  # Presidents' Day
        "2026-05-25",  # Memorial Day
        "2026-06-19",  # Juneteenth
        "2026-07-03",  # Independence Day (observed)
        "2026-09-07",  # Labor Day
        "2026-10-12",  # Columbus Day
        "2026-11-11",  # Veterans Day
        "2026-11-26",  # Thanksgiving Day
        "2026-12-25",  # Christmas Day
    ),
    2027: (
        "2027-01-01",  # New Year's Day
        "2027-01-18",  # Martin Luther King Jr. Day
        "2027-02-15",  # Presidents' Day
        "2027-05-31",  # Memorial Day
        "2027-06-18",  # Juneteenth (observed)
        "2027-07-05",  # Independence Day (observed)
        "2027-09-06",  # Labor Day
        "2027-10-11",  # Columbus Day
        "2027-11-11",  # Veterans Day
        "2027-11-25",  # Thanksgiving Day
        "2027-12-24",  # Christmas Day (observed)
    ),
}

_HOLIDAYS: frozenset[date] = frozenset(
    date.fromisoformat(d) for days in FEDERAL_HOLIDAYS.values() for d in days
)


@dataclass(frozen=True)
class SprintWindow:
    """Calendar span of one sprint, both ends inclusive, in UTC."""

    start: datetime
    end: datetime

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def to_dict(self) -> dict:
        return {"start": self.start_date.isoformat(), "end": self.end_date.isoformat()}


# ═════════════════════════════════════════════════════════════════════════════
# UTC boundary
# ═════════════════════════════════════════════════════════════════════════════


def utc_today() -> date:
    """Today's date in UTC."""
    return datetime.now(timezone.utc).date()


def to_utc_date(value) -> date | None:
    """Normalise a date-like value to a UTC calendar date.

    - ``datetime`` with tzinfo → converted to UTC first
    - naive ``datetime`` → taken as UTC
    - ``date`` → returned as-is
    - ISO string (``YYYY-MM-DD`` or full timestamp) → parsed, then as above

    Returns None for empty input; raises ValueError for unparseable strings.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return to_utc_date(datetime.fromisoformat(text))
    raise ValueError(f"Unsupported date value: {value!r}")


def resolve_anchor_date(raw, today: date) -> date:
    """Return the workspace anchor date, falling back to ``today``.

    A missing or unparseable anchor is not an error: the workspace behaves as
    if window 1 started today.
    """
    try:
        anchor = to_utc_date(raw)
    except (TypeError, ValueError):
        logger.warning("Unparseable sprint_start_date %r, anchoring at %s", raw, today)
        return today
    if anchor is None:
        logger.warning("Workspace has no sprint_start_date, anchoring at %s", today)
        return today
    return anchor


# ═════════════════════════════════════════════════════════════════════════════
# Business days
# ═════════════════════════════════════════════════════════════════════════════


def is_business_day(day: date) -> bool:
    """True iff ``day`` is a weekday and not a listed holiday."""
    if day.weekday() >= 5:
        return False
    return day not in _HOLIDAYS


def holidays_for_year(year: int) -> list[date]:
    """Observed holidays for ``year``; empty for years outside the table."""
    return [date.fromisoformat(d) for d in FEDERAL_HOLIDAYS.get(year, ())]


def next_business_day(day: date) -> date:
    """First business day strictly after ``day``."""
    current = day + timedelta(days=1)
    while not is_business_day(current):
        current += timedelta(days=1)
    return current


def add_business_days(day: date, days: int) -> date:
    """Move ``days`` business days forward (or backward when negative)."""
    if days == 0:
        return day
    step = timedelta(days=1 if days > 0 else -1)
    remaining = abs(days)
    current = day
    while remaining > 0:
        current += step
        if is_business_day(current):
            remaining -= 1
    return current


def business_days_between(start: date, end: date) -> int:
    """Business days after ``start`` up to and including ``end``.

    Negative when ``end`` is before ``start``; walking backwards counts the
    days from ``start - 1`` down to and including ``end``.
    """
    if start == end:
        return 0
    if end > start:
        step, sign = timedelta(days=1), 1
    else:
        step, sign = timedelta(days=-1), -1

    count = 0
    current = start
    while current != end:
        current += step
        if is_business_day(current):
            count += 1
    return sign * count


# ═════════════════════════════════════════════════════════════════════════════
# Sprint windows
# ═════════════════════════════════════════════════════════════════════════════


def sprint_window(sprint_number: int, anchor: date) -> SprintWindow:
    """Window of ``sprint_number`` (1-based) relative to ``anchor``."""
    start_day = anchor + timedelta(days=SPRINT_LENGTH_DAYS * (sprint_number - 1))
    end_day = start_day + timedelta(days=SPRINT_LENGTH_DAYS - 1)
    return SprintWindow(
        start=datetime.combine(start_day, time.min, tzinfo=timezone.utc),
        end=datetime.combine(end_day, time(23, 59, 59), tzinfo=timezone.utc),
    )


def sprint_temporal_status(sprint_number: int, anchor: date, today: date) -> str:
    window = sprint_window(sprint_number, anchor)
    if today < window.start_date:
        return UPCOMING
    if today > window.end_date:
        return COMPLETED
    return ACTIVE


def current_sprint_number(anchor: date, today: date) -> int:
    days_since = (today - anchor).days
    return max(1, days_since // SPRINT_LENGTH_DAYS + 1)
