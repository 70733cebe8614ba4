"""Domain service functions for classes, enrollments, enrollment requests, attendance and materials.

Rules enforced here:
- Teachers create classes for themselves; admins create classes for any teacher.
- Only admins or the owning teacher change a class or its roster.
- A class never holds more than `max_students` enrollments.
- Enrollment requests move pending -> approved | rejected, answered only by the
  teacher who owns the class. A pending or approved request (or an existing
  enrollment) blocks a new request for the same student and class.
"""
import logging
from datetime import date
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from LearningCenterApp.classes.models import Attendance, Class, ClassMaterial, Enrollment, EnrollmentRequest
from LearningCenterApp.core.access import (
    can_manage_class, is_admin, is_class_member, is_class_teacher, is_enrolled
)
from LearningCenterApp.core.choices import EnrollmentRequestStatus, NotificationType, UserRole
from LearningCenterApp.core.exceptions import (
    ClassFullError, DuplicateRequestError, InvalidTransitionError, ScheduleFormatError
)
from LearningCenterApp.core.validators import material_extension
from LearningCenterApp.domain.services import notification_service
from LearningCenterApp.scheduling.schedule import is_class_day, parse_schedule, parse_schedule_or_empty
from LearningCenterApp.users.models import User

logger = logging.getLogger(__name__)


def _ensure_manager(user: User, klass: Class) -> None:
    """Raise PermissionDenied unless user is an admin or the class's teacher."""
    if not can_manage_class(user, klass):
        raise PermissionDenied("Only the class teacher or an admin can do this")


def _ensure_student_role(user: User) -> None:
    if user.role != UserRole.STUDENT:
        raise ValidationError({"student_id": ["User is not a student"]})


def _validate_class_data(data: dict[str, Any], instance: Class | None = None) -> None:
    """Reject schedules that do not parse and inverted date ranges."""
    schedule = data.get("schedule")
    if schedule and schedule.strip():
        try:
            parse_schedule(schedule)
        except ScheduleFormatError as exc:
            logger.warning("Rejected class schedule %r: %s", schedule, exc)
            raise ValidationError({"schedule": [str(exc)]})

    start = data.get("start_date", instance.start_date if instance else None)
    end = data.get("end_date", instance.end_date if instance else None)
    if start and end and end < start:
        raise ValidationError({"end_date": ["End date must not be before start date"]})


def _locked_class(klass: Class) -> Class:
    return Class.objects.select_for_update().get(pk=klass.pk)


def _ensure_capacity(klass: Class) -> None:
    if Enrollment.objects.filter(klass=klass).count() >= klass.max_students:
        raise ClassFullError()


# ---------- Classes ----------

@transaction.atomic
def create_class(actor: User, data: dict[str, Any], teacher: User | None = None) -> Class:
    """Create a class.

    Args:
        actor: A TEACHER (always creates for themself) or an ADMIN.
        data: Validated Class fields.
        teacher: Owning teacher; required when an admin creates the class.

    Raises:
        PermissionDenied: Students, or teachers creating for someone else.
        ValidationError: Missing/non-teacher owner, bad schedule or dates.
    """
    if actor.role == UserRole.TEACHER:
        if teacher is not None and teacher.pk != actor.pk:
            raise PermissionDenied("Teachers can only create their own classes")
        teacher = actor
    elif not is_admin(actor):
        raise PermissionDenied("Teacher or admin role required")

    if teacher is None:
        raise ValidationError({"teacher_id": ["This field is required."]})
    if teacher.role != UserRole.TEACHER:
        raise ValidationError({"teacher_id": ["User is not a teacher"]})

    _validate_class_data(data)
    klass = Class.objects.create(teacher=teacher, **data)
    logger.info("Class %s created by user %s for teacher %s", klass.pk, actor.pk, teacher.pk)
    return klass


@transaction.atomic
def update_class(actor: User, klass: Class, data: dict[str, Any]) -> Class:
    _ensure_manager(actor, klass)
    _validate_class_data(data, instance=klass)
    for field, value in data.items():
        setattr(klass, field, value)
    klass.save()
    logger.info("Class %s updated by user %s", klass.pk, actor.pk)
    return klass


@transaction.atomic
def delete_class(actor: User, klass: Class) -> None:
    _ensure_manager(actor, klass)
    pk = klass.pk
    klass.delete()
    logger.info("Class %s deleted by user %s", pk, actor.pk)


def _has_tag(klass: Class, tag: str) -> bool:
    wanted = tag.strip().lower()
    return any(str(t).lower() == wanted for t in klass.tags or [])


def visible_classes(
    user: User, search: str | None = None, tag: str | None = None
) -> QuerySet[Class] | list[Class]:
    """Role-scoped classes with student counts, optionally filtered by text and tag.

    Tag filtering runs in Python because JSON containment lookups are not
    portable across the supported databases.
    """
    qs = (
        Class.objects.visible_to(user)
        .search(search)
        .with_student_count()
        .select_related("teacher")
        .order_by("start_date", "id")
    )
    if tag:
        return [klass for klass in qs if _has_tag(klass, tag)]
    return qs


def available_classes(student: User, search: str | None = None) -> QuerySet[Class]:
    """Classes a student has not joined yet."""
    return (
        Class.objects.available_to(student)
        .search(search)
        .with_student_count()
        .select_related("teacher")
        .order_by("start_date", "id")
    )


# ---------- Direct enrollment ----------

def class_students(actor: User, klass: Class) -> QuerySet[Enrollment]:
    _ensure_manager(actor, klass)
    return klass.enrollments.select_related("student").order_by("enrolled_at", "id")


@transaction.atomic
def enroll_student(actor: User, klass: Class, student: User) -> Enrollment:
    """Add a student to a class directly (admin or owning teacher)."""
    _ensure_manager(actor, klass)
    _ensure_student_role(student)
    klass = _locked_class(klass)
    if Enrollment.objects.filter(klass=klass, student=student).exists():
        raise DuplicateRequestError("Student is already enrolled in this class")
    _ensure_capacity(klass)
    enrollment = Enrollment.objects.create(klass=klass, student=student)
    logger.info("Student %s enrolled in class %s by user %s", student.pk, klass.pk, actor.pk)
    return enrollment


@transaction.atomic
def unenroll_student(actor: User, klass: Class, student: User) -> None:
    """Remove an enrollment; students may withdraw themselves."""
    if actor.pk != student.pk:
        _ensure_manager(actor, klass)
    deleted, _ = Enrollment.objects.filter(klass=klass, student=student).delete()
    if not deleted:
        raise NotFound("Enrollment not found")
    logger.info("Student %s unenrolled from class %s by user %s", student.pk, klass.pk, actor.pk)


# ---------- Enrollment requests ----------

@transaction.atomic
def request_enrollment(student: User, klass: Class, message: str = "") -> EnrollmentRequest:
    """Create a pending request to join a class.

    Raises:
        PermissionDenied: Actor is not a student.
        DuplicateRequestError: Already enrolled, or a pending/approved request exists.
    """
    if student.role != UserRole.STUDENT:
        raise PermissionDenied("Only students can request enrollment")
    if is_enrolled(student, klass):
        raise DuplicateRequestError("You are already enrolled in this class")
    if EnrollmentRequest.objects.active().filter(klass=klass, student=student).exists():
        raise DuplicateRequestError()
    try:
        with transaction.atomic():
            req = EnrollmentRequest.objects.create(klass=klass, student=student, message=message)
    except IntegrityError:
        raise DuplicateRequestError()
    logger.info("Enrollment request %s: student %s -> class %s", req.pk, student.pk, klass.pk)
    return req


def list_requests(actor: User, klass: Class, status: str | None = None) -> QuerySet[EnrollmentRequest]:
    """Requests for a class; the owning teacher and admins see all, students only their own."""
    qs = klass.enrollment_requests.select_related("student", "responded_by").order_by("-requested_at", "-id")
    if not can_manage_class(actor, klass):
        qs = qs.filter(student=actor)
    if status:
        qs = qs.filter(status=status)
    return qs


def _begin_transition(actor: User, req: EnrollmentRequest) -> EnrollmentRequest:
    req = EnrollmentRequest.objects.select_for_update().select_related("klass", "student").get(pk=req.pk)
    if not is_class_teacher(actor, req.klass):
        raise PermissionDenied("Only the class teacher can answer enrollment requests")
    if req.is_terminal:
        raise InvalidTransitionError()
    return req


def _finish_transition(actor: User, req: EnrollmentRequest, status: str, response_message: str) -> None:
    req.status = status
    req.response_message = response_message
    req.responded_at = timezone.now()
    req.responded_by = actor
    req.save(update_fields=["status", "response_message", "responded_at", "responded_by"])


@transaction.atomic
def approve_request(actor: User, req: EnrollmentRequest, note: str = "") -> EnrollmentRequest:
    """pending -> approved; enrolls the student (idempotent on the enrollment row)."""
    req = _begin_transition(actor, req)
    klass = _locked_class(req.klass)
    if not Enrollment.objects.filter(klass=klass, student=req.student).exists():
        _ensure_capacity(klass)
        Enrollment.objects.create(klass=klass, student=req.student)
    _finish_transition(actor, req, EnrollmentRequestStatus.APPROVED, note)
    notification_service.notify(
        [req.student],
        "Enrollment approved",
        f"Your request to join {klass.name} was approved.",
        kind=NotificationType.ENROLLMENT,
        related_id=klass.pk,
    )
    logger.info("Enrollment request %s approved by user %s", req.pk, actor.pk)
    return req


@transaction.atomic
def reject_request(actor: User, req: EnrollmentRequest, reason: str = "") -> EnrollmentRequest:
    """pending -> rejected; stores the reason."""
    req = _begin_transition(actor, req)
    _finish_transition(actor, req, EnrollmentRequestStatus.REJECTED, reason)
    message = f"Your request to join {req.klass.name} was declined."
    if reason:
        message = f"{message} Reason: {reason}"
    notification_service.notify(
        [req.student], "Enrollment declined", message,
        kind=NotificationType.ENROLLMENT, related_id=req.klass_id,
    )
    logger.info("Enrollment request %s rejected by user %s", req.pk, actor.pk)
    return req


# ---------- Attendance ----------

def _ensure_class_day(klass: Class, on_date: date) -> None:
    if (klass.start_date and on_date < klass.start_date) or (klass.end_date and on_date > klass.end_date):
        raise ValidationError({"date": ["Date is outside the class date range"]})
    parsed = parse_schedule_or_empty(klass.schedule)
    if parsed.days and not is_class_day(parsed, klass.start_date, klass.end_date, on_date):
        raise ValidationError({"date": ["The class does not meet on this date"]})


@transaction.atomic
def mark_attendance(actor: User, klass: Class, student: User, on_date: date, status: str) -> Attendance:
    """Upsert the attendance of one student for one class date (owning teacher only)."""
    if not is_class_teacher(actor, klass):
        raise PermissionDenied("Only the class teacher can mark attendance")
    if not is_enrolled(student, klass):
        raise ValidationError({"student_id": ["Student is not enrolled in this class"]})
    _ensure_class_day(klass, on_date)
    record, created = Attendance.objects.update_or_create(
        klass=klass,
        student=student,
        date=on_date,
        defaults={"status": status, "marked_by": actor},
    )
    logger.info(
        "Attendance %s for student %s in class %s on %s (%s)",
        status, student.pk, klass.pk, on_date, "new" if created else "updated",
    )
    return record


def class_attendance(actor: User, klass: Class, on_date: date | None = None) -> QuerySet[Attendance]:
    if not is_class_teacher(actor, klass):
        raise PermissionDenied("Only the class teacher can view attendance")
    qs = klass.attendance.select_related("student")
    if on_date:
        qs = qs.filter(date=on_date)
    return qs


# ---------- Materials ----------

def _ensure_owner(actor: User, klass: Class, doing: str) -> None:
    if not is_class_teacher(actor, klass):
        raise PermissionDenied(f"Only the class teacher can {doing}")


@transaction.atomic
def upload_material(actor: User, klass: Class, upload: Any, name: str = "", description: str = "") -> ClassMaterial:
    """Store a PDF or Word document on the class page (owning teacher only)."""
    _ensure_owner(actor, klass, "upload materials")
    material = ClassMaterial.objects.create(
        klass=klass,
        name=name or upload.name,
        description=description,
        file=upload,
        file_type=material_extension(upload).upper(),
        file_size=upload.size,
        uploaded_by=actor,
    )
    logger.info("Material %s uploaded to class %s by user %s", material.pk, klass.pk, actor.pk)
    return material


def class_materials(actor: User, klass: Class) -> QuerySet[ClassMaterial]:
    """Newest first; visible to everyone in the class."""
    if not is_class_member(actor, klass):
        raise PermissionDenied("Only class members can see its materials")
    return klass.materials.select_related("uploaded_by")


@transaction.atomic
def delete_material(actor: User, material: ClassMaterial) -> None:
    _ensure_owner(actor, material.klass, "delete materials")
    material_id, stored = material.pk, material.file
    material.delete()
    transaction.on_commit(lambda: stored.delete(save=False))
    logger.info("Material %s deleted by user %s", material_id, actor.pk)
