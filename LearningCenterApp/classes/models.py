"""Class domain models: Class, Enrollment, EnrollmentRequest, Attendance, ClassMaterial."""

from django.db import models
from django.db.models import Q
from django.conf import settings

from simple_history.models import HistoricalRecords

from LearningCenterApp.core.choices import (
    AttendanceStatus, EnrollmentRequestStatus, LearningMethod
)
from LearningCenterApp.classes.querysets import ClassQuerySet, EnrollmentRequestQuerySet
from LearningCenterApp.core.validators import validate_file_size, validate_material_file


User = settings.AUTH_USER_MODEL

class Class(models.Model):
    """A class taught by exactly one teacher, with a free-text recurring schedule.

    Fields:
        name / description: Display text.
        teacher: FK to the owning teacher.
        schedule: Free text such as "Mondays and Wednesdays, 6:00 PM - 8:00 PM".
            Rows written before schedule validation existed may not parse.
        start_date / end_date: Inclusive date range the schedule recurs over.
        max_students: Enrollment capacity.
        tags: JSON list of labels used for filtering.
        history: Audit history (django-simple-history).
    """
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    teacher = models.ForeignKey(User, on_delete=models.PROTECT, related_name="taught_classes")
    schedule = models.CharField(max_length=255, blank=True)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    max_students = models.PositiveIntegerField(default=30)
    tags = models.JSONField(default=list, blank=True)
    learning_method = models.CharField(
        max_length=16, choices=LearningMethod.choices, default=LearningMethod.ONLINE
    )
    meeting_url = models.URLField(blank=True)
    image = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = ClassQuerySet.as_manager()

    class Meta:
        db_table = "classes"
        ordering = ["start_date", "id"]

    def __str__(self) -> str:
        return f"{self.name} (#{self.pk})"


class Enrollment(models.Model):
    """Join row between a student and a class.

    Constraints:
        uq_class_student: Prevent duplicate enrollment rows.
    """
    klass = models.ForeignKey(Class, on_delete=models.CASCADE, related_name="enrollments")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="enrollments")
    enrolled_at = models.DateTimeField(auto_now_add=True)
    history = HistoricalRecords()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["klass", "student"], name="uq_class_student"),
        ]

    def __str__(self) -> str:
        return f"{self.student} -> {self.klass}"


class EnrollmentRequest(models.Model):
    """A student's request to join a class, answered by the class teacher.

    Fields:
        status: pending -> approved | rejected (both terminal).
        response_message: Rejection reason or approval note.
    Constraints:
        uq_active_enrollment_request: at most one pending/approved request per
        (class, student); rejected rows do not block a new request.
    """
    klass = models.ForeignKey(Class, related_name="enrollment_requests", on_delete=models.CASCADE)
    student = models.ForeignKey(User, related_name="enrollment_requests", on_delete=models.CASCADE)
    message = models.TextField(blank=True)
    status = models.CharField(
        max_length=16, choices=EnrollmentRequestStatus.choices, default=EnrollmentRequestStatus.PENDING
    )
    response_message = models.TextField(blank=True)
    requested_at = models.DateTimeField(auto_now_add=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    responded_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name="answered_enrollment_requests"
    )

    objects = EnrollmentRequestQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["klass", "student"],
                condition=Q(status__in=["pending", "approved"]),
                name="uq_active_enrollment_request",
            ),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status != EnrollmentRequestStatus.PENDING

    def __str__(self) -> str:
        return f"EnrollmentRequest({self.student} -> {self.klass}, {self.status})"


class Attendance(models.Model):
    """Presence of one student at one class date, marked by the teacher."""
    klass = models.ForeignKey(Class, on_delete=models.CASCADE, related_name="attendance")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="attendance")
    date = models.DateField()
    status = models.CharField(max_length=16, choices=AttendanceStatus.choices)
    marked_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name="marked_attendance")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date", "student_id"]
        constraints = [
            models.UniqueConstraint(fields=["klass", "student", "date"], name="uq_attendance_day"),
        ]


class ClassMaterial(models.Model):
    """A reading document the teacher shares with everyone in the class."""
    klass = models.ForeignKey(Class, on_delete=models.CASCADE, related_name="materials")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    file = models.FileField(
        upload_to="class-materials/",
        validators=[validate_file_size, validate_material_file],
    )
    file_type = models.CharField(max_length=16)
    file_size = models.PositiveIntegerField()
    uploaded_by = models.ForeignKey(
        User, null=True, on_delete=models.SET_NULL, related_name="uploaded_materials"
    )
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-uploaded_at", "-id"]

    def __str__(self) -> str:
        return f"{self.name} ({self.klass_id})"
