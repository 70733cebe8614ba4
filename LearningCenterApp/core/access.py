"""Role & object access helpers."""

from typing import Any

from LearningCenterApp.classes.models import Class, Enrollment, EnrollmentRequest, Attendance
from LearningCenterApp.learning.models import Assignment, AssignmentFile, Submission, SubmissionFile
from LearningCenterApp.core.choices import UserRole


def class_from(obj: Any) -> Class | None:
    if obj is None:
        return None
    if isinstance(obj, Class):
        return obj
    if isinstance(obj, (Enrollment, EnrollmentRequest, Attendance, Assignment)):
        return obj.klass
    if isinstance(obj, (AssignmentFile, Submission)):
        return obj.assignment.klass
    if isinstance(obj, SubmissionFile):
        return obj.submission.assignment.klass
    return getattr(obj, "klass", None)


def is_admin(user) -> bool:
    return bool(user and user.is_authenticated and user.role == UserRole.ADMIN)


def is_class_teacher(user, klass: Class | None) -> bool:
    return bool(user and klass and klass.teacher_id == user.id)


def is_enrolled(user, klass: Class | None) -> bool:
    if not (user and klass):
        return False
    return Enrollment.objects.filter(klass=klass, student=user).exists()


def can_manage_class(user, klass: Class | None) -> bool:
    """Admins manage every class; teachers manage the classes they own."""
    return is_admin(user) or is_class_teacher(user, klass)


def is_class_member(user, klass: Class | None) -> bool:
    return can_manage_class(user, klass) or is_enrolled(user, klass)


def is_submission_participant(user, submission: Submission) -> bool:
    """Submitting student, teacher of the class, or an admin."""
    if submission.student_id == user.id:
        return True
    return can_manage_class(user, class_from(submission))
