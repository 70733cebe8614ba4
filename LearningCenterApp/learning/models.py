"""Learning domain models: Assignment, AssignmentFile, Submission, SubmissionFile."""

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator

from LearningCenterApp.classes.models import Class
from LearningCenterApp.core.choices import AssignmentType, SubmissionStatus
from LearningCenterApp.core.validators import validate_file_size, validate_attachment_mime
from LearningCenterApp.classes.querysets import AssignmentQuerySet, SubmissionQuerySet

from simple_history.models import HistoricalRecords

User = settings.AUTH_USER_MODEL


class Assignment(models.Model):
    """Work set by a class's teacher, due at a point in time and worth `points`."""
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    klass = models.ForeignKey(Class, on_delete=models.CASCADE, related_name="assignments")
    teacher = models.ForeignKey(User, on_delete=models.PROTECT, related_name="created_assignments")
    due_date = models.DateTimeField()
    points = models.PositiveIntegerField(default=100)
    assignment_type = models.CharField(
        max_length=16, choices=AssignmentType.choices, default=AssignmentType.OTHER
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = AssignmentQuerySet.as_manager()

    class Meta:
        ordering = ["due_date", "id"]

    def __str__(self) -> str:
        return f"{self.title} (#{self.pk})"


class AssignmentFile(models.Model):
    """Reference material attached to an assignment by the teacher."""
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="files")
    file = models.FileField(
        upload_to="assignment-files/",
        validators=[validate_file_size, validate_attachment_mime]
    )
    file_name = models.CharField(max_length=255)
    file_size = models.PositiveIntegerField()
    file_type = models.CharField(max_length=100, blank=True)
    uploaded_at = models.DateTimeField(auto_now_add=True)


class Submission(models.Model):
    """A student's submission for an assignment (unique per assignment+student)."""
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="submissions")
    content = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(
        max_length=16, choices=SubmissionStatus.choices, default=SubmissionStatus.PENDING
    )
    grade = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0)])
    feedback = models.TextField(blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    graded_at = models.DateTimeField(null=True, blank=True)
    graded_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name="graded_submissions"
    )
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = SubmissionQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["assignment", "student"], name="uq_assignment_student"),
        ]

    @property
    def is_late(self) -> bool:
        return bool(self.submitted_at and self.submitted_at > self.assignment.due_date)


class SubmissionFile(models.Model):
    """A file uploaded by the student as part of a submission."""
    submission = models.ForeignKey(Submission, on_delete=models.CASCADE, related_name="files")
    file = models.FileField(
        upload_to="submission-files/",
        validators=[validate_file_size, validate_attachment_mime]
    )
    file_name = models.CharField(max_length=255)
    file_size = models.PositiveIntegerField()
    file_type = models.CharField(max_length=100, blank=True)
    uploaded_at = models.DateTimeField(auto_now_add=True)
