"""Class schedule strings and the concrete class dates they recur on.

A schedule is free text written by admins, e.g.
    "Mondays and Wednesdays, 6:00 PM - 8:00 PM"
    "Saturdays, 10:00 AM - 12:00 PM"
Weekdays are numbered 0 (Sunday) through 6 (Saturday).
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from LearningCenterApp.core.exceptions import ScheduleFormatError

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")

TIME_RANGE_RE = re.compile(
    r"(?P<sh>\d{1,2}):(?P<sm>\d{2})\s*(?P<sp>[ap]m)\s*[-–]\s*"
    r"(?P<eh>\d{1,2}):(?P<em>\d{2})\s*(?P<ep>[ap]m)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ParsedSchedule:
    days: frozenset[int]
    start_time: str
    duration: int

    @classmethod
    def empty(cls) -> "ParsedSchedule":
        return cls(days=frozenset(), start_time="00:00", duration=0)

    @property
    def start(self) -> time:
        return time.fromisoformat(self.start_time)

    def end_time_for(self, start: datetime) -> datetime:
        return start + timedelta(minutes=self.duration)


def _to_minutes(hour: str, minute: str, meridiem: str) -> int:
    h, m = int(hour), int(minute)
    if not 1 <= h <= 12 or not 0 <= m <= 59:
        raise ScheduleFormatError(f"Invalid clock time {hour}:{minute} {meridiem}")
    h = h % 12
    if meridiem.lower() == "pm":
        h += 12
    return h * 60 + m


def parse_schedule(text: str) -> ParsedSchedule:
    """Parse a schedule string into weekdays, a 24h "HH:MM" start and a duration in minutes.

    Raises:
        ScheduleFormatError: no weekday name, no/invalid time range, or an
            end time not after the start time (overnight ranges unsupported).
    """
    lowered = (text or "").lower()
    days = frozenset(i for i, name in enumerate(WEEKDAY_NAMES) if name in lowered)
    if not days:
        raise ScheduleFormatError(f"No weekday found in schedule {text!r}")

    match = TIME_RANGE_RE.search(lowered)
    if not match:
        raise ScheduleFormatError(f"No time range found in schedule {text!r}")
    start = _to_minutes(match["sh"], match["sm"], match["sp"])
    end = _to_minutes(match["eh"], match["em"], match["ep"])
    if end <= start:
        raise ScheduleFormatError(f"End time must be after start time in {text!r}")

    return ParsedSchedule(
        days=days,
        start_time=f"{start // 60:02d}:{start % 60:02d}",
        duration=end - start,
    )


def parse_schedule_or_empty(text: str | None) -> ParsedSchedule:
    """Tolerant variant for stored data: malformed text means no class days."""
    if not text or not text.strip():
        return ParsedSchedule.empty()
    try:
        return parse_schedule(text)
    except ScheduleFormatError as exc:
        logger.debug("Ignoring unparseable schedule: %s", exc)
        return ParsedSchedule.empty()


def weekday_of(day: date) -> int:
    """Weekday number with Sunday as 0."""
    return (day.weekday() + 1) % 7


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def generate_occurrences(
    start_date: date | datetime,
    end_date: date | datetime,
    days: set[int] | frozenset[int],
    start_time: str | time,
) -> list[datetime]:
    """Start datetimes of every class day in [start_date, end_date].

    Pure and ordered: the same inputs give the same strictly increasing list.
    Empty `days` or an inverted range give an empty list.
    """
    first, last = _as_date(start_date), _as_date(end_date)
    if not days or last < first:
        return []
    slot = start_time if isinstance(start_time, time) else time.fromisoformat(start_time)

    occurrences = []
    current = first
    while current <= last:
        if weekday_of(current) in days:
            occurrences.append(datetime.combine(current, slot))
        current += timedelta(days=1)
    return occurrences


def is_class_day(
    parsed: ParsedSchedule,
    start_date: date | None,
    end_date: date | None,
    on_date: date,
) -> bool:
    """True when on_date lies in the class range and falls on a scheduled weekday."""
    if start_date and on_date < start_date:
        return False
    if end_date and on_date > end_date:
        return False
    return weekday_of(on_date) in parsed.days
