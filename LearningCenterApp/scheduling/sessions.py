"""Synthetic class sessions derived from a class's recurring schedule (never persisted)."""

from dataclasses import dataclass
from datetime import date, datetime

from django.utils import timezone

from LearningCenterApp.scheduling.schedule import generate_occurrences, parse_schedule_or_empty


@dataclass(frozen=True)
class ClassSession:
    """One concrete occurrence of a class; identified only by class id and start time."""
    class_id: int
    class_name: str
    teacher_id: int
    teacher_name: str
    starts_at: datetime
    ends_at: datetime
    meeting_url: str = ""

    @property
    def key(self) -> str:
        return f"{self.class_id}-{int(self.starts_at.timestamp())}"


def class_sessions(klass, start: date | None = None, end: date | None = None) -> list[ClassSession]:
    """Sessions of `klass` in [start, end], clipped to the class's own date range.

    Start times are wall-clock times in the current Django time zone.
    """
    first = max(filter(None, [start, klass.start_date]), default=None)
    last = min(filter(None, [end, klass.end_date]), default=None)
    if first is None or last is None:
        return []

    parsed = parse_schedule_or_empty(klass.schedule)
    tz = timezone.get_current_timezone()
    sessions = []
    for naive_start in generate_occurrences(first, last, parsed.days, parsed.start_time):
        starts_at = timezone.make_aware(naive_start, tz)
        sessions.append(ClassSession(
            class_id=klass.pk,
            class_name=klass.name,
            teacher_id=klass.teacher_id,
            teacher_name=klass.teacher.name,
            starts_at=starts_at,
            ends_at=parsed.end_time_for(starts_at),
            meeting_url=klass.meeting_url,
        ))
    return sessions
