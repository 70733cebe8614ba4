"""Meetings: scheduling, cancelling and joining, plus the dashboard queries and calendar."""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from LearningCenterApp.classes.models import Class
from LearningCenterApp.core.access import can_manage_class, is_admin
from LearningCenterApp.core.choices import MeetingStatus, MeetingType, NotificationType, UserRole
from LearningCenterApp.core.exceptions import InvalidTransitionError
from LearningCenterApp.domain.services import notification_service
from LearningCenterApp.scheduling.models import Meeting, MeetingParticipant
from LearningCenterApp.scheduling.sessions import class_sessions
from LearningCenterApp.users.models import User

logger = logging.getLogger(__name__)

PAST_LIMIT = 10


@dataclass(frozen=True)
class CalendarEntry:
    """A calendar row: a stored meeting or a class session derived from a schedule."""
    key: str
    kind: str
    title: str
    starts_at: datetime
    ends_at: datetime
    meeting_id: int | None = None
    class_id: int | None = None
    is_online: bool = True
    meeting_url: str = ""


def format_duration(start: datetime, end: datetime) -> str:
    """'1 hour', 'N hours' for whole hours, one decimal otherwise ('1.5 hours')."""
    hours = (end - start).total_seconds() / 3600
    if hours == 1:
        return "1 hour"
    if hours.is_integer():
        return f"{int(hours)} hours"
    return f"{hours:.1f} hours"


def _base_queryset() -> QuerySet[Meeting]:
    return Meeting.objects.select_related("teacher", "student", "klass").with_participant_count()


def _for_user(user: User) -> QuerySet[Meeting]:
    qs = _base_queryset()
    return qs if is_admin(user) else qs.involving(user)


@transaction.atomic
def schedule_meeting(actor: User, data: dict[str, Any]) -> Meeting:
    """Schedule a one-on-one or group meeting.

    Teachers host their own meetings; admins may name another teacher. One-on-one
    meetings need a student and start confirmed; group meetings open for joining.
    """
    if actor.role not in (UserRole.TEACHER, UserRole.ADMIN):
        raise PermissionDenied("Teacher or admin role required")
    data = dict(data)
    teacher = data.pop("teacher", None) or actor
    if actor.role == UserRole.TEACHER and teacher.pk != actor.pk:
        raise PermissionDenied("Teachers can only schedule their own meetings")
    if teacher.role != UserRole.TEACHER and not is_admin(teacher):
        raise ValidationError({"teacher_id": ["User is not a teacher"]})

    if data["end_time"] <= data["start_time"]:
        raise ValidationError({"end_time": ["End time must be after start time"]})

    klass = data.get("klass")
    if klass is not None and not can_manage_class(actor, klass):
        raise PermissionDenied("Only the class teacher or an admin can schedule class meetings")

    student = data.get("student")
    if data.get("type", MeetingType.ONE_ON_ONE) == MeetingType.ONE_ON_ONE:
        if student is None:
            raise ValidationError({"student_id": ["One-on-one meetings need a student"]})
        if student.role != UserRole.STUDENT:
            raise ValidationError({"student_id": ["User is not a student"]})
        status = MeetingStatus.CONFIRMED
    else:
        data["student"] = None
        status = MeetingStatus.OPEN

    meeting = Meeting.objects.create(teacher=teacher, status=status, **data)
    if meeting.student_id:
        notification_service.notify(
            [meeting.student],
            "Meeting scheduled",
            f"{meeting.title} on {timezone.localtime(meeting.start_time):%b %d, %I:%M %p}.",
            kind=NotificationType.MEETING,
            related_id=meeting.pk,
        )
    logger.info("Meeting %s (%s) scheduled by user %s", meeting.pk, meeting.type, actor.pk)
    return meeting


@transaction.atomic
def cancel_meeting(actor: User, meeting: Meeting) -> Meeting:
    meeting = Meeting.objects.select_for_update().get(pk=meeting.pk)
    if not (is_admin(actor) or actor.pk in (meeting.teacher_id, meeting.student_id)):
        raise PermissionDenied("Only the meeting's teacher or student can cancel it")
    if meeting.status in (MeetingStatus.CANCELLED, MeetingStatus.COMPLETED):
        raise InvalidTransitionError(f"Meeting is already {meeting.status}")
    meeting.status = MeetingStatus.CANCELLED
    meeting.save(update_fields=["status"])
    logger.info("Meeting %s cancelled by user %s", meeting.pk, actor.pk)
    return meeting


@transaction.atomic
def join_meeting(user: User, meeting: Meeting) -> MeetingParticipant:
    """Join a group meeting; joining twice returns the existing participation."""
    meeting = Meeting.objects.select_for_update().get(pk=meeting.pk)
    existing = MeetingParticipant.objects.filter(meeting=meeting, user=user).first()
    if existing:
        return existing
    if meeting.type != MeetingType.GROUP:
        raise ValidationError({"meeting": ["Only group meetings can be joined"]})
    if meeting.status in (MeetingStatus.CANCELLED, MeetingStatus.COMPLETED):
        raise InvalidTransitionError(f"Meeting is {meeting.status}")
    if meeting.max_participants and meeting.participants.count() >= meeting.max_participants:
        raise ValidationError({"meeting": ["Meeting is full"]})
    participant = MeetingParticipant.objects.create(meeting=meeting, user=user)
    logger.info("User %s joined meeting %s", user.pk, meeting.pk)
    return participant


def upcoming_meetings(user: User, now: datetime | None = None) -> QuerySet[Meeting]:
    now = now or timezone.now()
    return _for_user(user).active().filter(start_time__gte=now).order_by("start_time", "id")


def past_meetings(user: User, now: datetime | None = None, limit: int = PAST_LIMIT) -> QuerySet[Meeting]:
    now = now or timezone.now()
    return _for_user(user).filter(end_time__lt=now).order_by("-start_time", "-id")[:limit]


def available_meetings(user: User, now: datetime | None = None) -> QuerySet[Meeting]:
    """Open future meetings the user has not joined yet."""
    now = now or timezone.now()
    return (
        _base_queryset()
        .filter(status=MeetingStatus.OPEN, start_time__gte=now)
        .exclude(participants__user=user)
        .order_by("start_time", "id")
    )


def calendar(user: User, start: date, end: date) -> list[CalendarEntry]:
    """Stored meetings and derived class sessions between two dates, by start time."""
    tz = timezone.get_current_timezone()
    window_start = timezone.make_aware(datetime.combine(start, datetime.min.time()), tz)
    window_end = timezone.make_aware(datetime.combine(end, datetime.max.time()), tz)

    entries = [
        CalendarEntry(
            key=f"meeting-{m.pk}",
            kind="meeting",
            title=m.title,
            starts_at=m.start_time,
            ends_at=m.end_time,
            meeting_id=m.pk,
            class_id=m.klass_id,
            is_online=m.is_online,
            meeting_url=m.meeting_link,
        )
        for m in _for_user(user).active().filter(start_time__range=(window_start, window_end))
    ]
    for klass in Class.objects.visible_to(user).select_related("teacher"):
        for session in class_sessions(klass, start, end):
            entries.append(CalendarEntry(
                key=f"class-{session.key}",
                kind="class",
                title=session.class_name,
                starts_at=session.starts_at,
                ends_at=session.ends_at,
                class_id=session.class_id,
                meeting_url=session.meeting_url,
            ))
    entries.sort(key=lambda e: (e.starts_at, e.key))
    return entries
