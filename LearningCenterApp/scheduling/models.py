"""Scheduling models: standalone meetings and their participants.

Recurring class sessions are not stored; see scheduling.sessions.
"""

from django.db import models
from django.db.models import Count, F, Q
from django.conf import settings

from LearningCenterApp.classes.models import Class
from LearningCenterApp.core.choices import MeetingStatus, MeetingType

User = settings.AUTH_USER_MODEL


class MeetingQuerySet(models.QuerySet):
    def involving(self, user):
        """Meetings the user teaches, is the one-on-one student of, or joined."""
        joined = self.model.objects.filter(participants__user=user).values("pk")
        return self.filter(Q(teacher=user) | Q(student=user) | Q(pk__in=joined))

    def with_participant_count(self):
        return self.annotate(participant_count=Count("participants", distinct=True))

    def active(self):
        return self.exclude(status=MeetingStatus.CANCELLED)


class Meeting(models.Model):
    """A one-on-one or group meeting with a fixed start and end."""
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=16, choices=MeetingType.choices, default=MeetingType.ONE_ON_ONE)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    is_online = models.BooleanField(default=True)
    meeting_link = models.URLField(blank=True)
    location = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=16, choices=MeetingStatus.choices, default=MeetingStatus.CONFIRMED)
    max_participants = models.PositiveIntegerField(null=True, blank=True)
    teacher = models.ForeignKey(User, on_delete=models.CASCADE, related_name="hosted_meetings")
    klass = models.ForeignKey(
        Class, null=True, blank=True, on_delete=models.SET_NULL, related_name="meetings"
    )
    student = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.CASCADE, related_name="booked_meetings"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = MeetingQuerySet.as_manager()

    class Meta:
        ordering = ["start_time", "id"]
        constraints = [
            models.CheckConstraint(condition=Q(end_time__gt=F("start_time")), name="ck_meeting_end_after_start"),
        ]

    def __str__(self) -> str:
        return f"{self.title} @ {self.start_time:%Y-%m-%d %H:%M}"


class MeetingParticipant(models.Model):
    meeting = models.ForeignKey(Meeting, on_delete=models.CASCADE, related_name="participants")
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="meeting_participations")
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["meeting", "user"], name="uq_meeting_participant"),
        ]
