"""Domain service functions for assignments, submissions, grading and file attachments.

Enforces role/visibility rules:
- Only the class teacher (or an admin) creates, edits and grades assignments.
- Only students enrolled in the class submit.
State transitions for submissions:
    SUBMITTED -> SUBMITTED (on resubmission, previous grade cleared) -> GRADED (after grading).
There is exactly one submission row per (assignment, student); resubmitting
updates it in place.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from numbers import Real
from typing import Any

from django.db import transaction
from django.db.models import Count, Q, QuerySet
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from LearningCenterApp.classes.models import Class
from LearningCenterApp.core.access import can_manage_class, is_enrolled
from LearningCenterApp.core.choices import NotificationType, SubmissionStatus, UserRole
from LearningCenterApp.core.exceptions import InvalidGradeError
from LearningCenterApp.core.validators import probe_mime
from LearningCenterApp.domain.services import notification_service
from LearningCenterApp.learning.lifecycle import AssignmentProgress, derive_progress
from LearningCenterApp.learning.models import Assignment, AssignmentFile, Submission, SubmissionFile
from LearningCenterApp.users.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StudentAssignment:
    """One assignment as seen by one student."""
    assignment: Assignment
    submission: Submission | None
    progress: AssignmentProgress


def _ensure_manager(user: User, klass: Class) -> None:
    if not can_manage_class(user, klass):
        raise PermissionDenied("Only the class teacher or an admin can do this")


def _ensure_enrolled_student(user: User, klass: Class) -> None:
    if user.role != UserRole.STUDENT or not is_enrolled(user, klass):
        raise PermissionDenied("Not enrolled in this class")


# ---------- Assignments ----------

@transaction.atomic
def create_assignment(actor: User, klass: Class, data: dict[str, Any]) -> Assignment:
    """Create an assignment owned by the class's teacher and tell enrolled students."""
    _ensure_manager(actor, klass)
    assignment = Assignment.objects.create(klass=klass, teacher=klass.teacher, **data)
    students = User.objects.filter(enrollments__klass=klass)
    notification_service.notify(
        students,
        "New assignment",
        f"{assignment.title} was posted in {klass.name}.",
        kind=NotificationType.ASSIGNMENT,
        related_id=assignment.pk,
    )
    logger.info("Assignment %s created in class %s by user %s", assignment.pk, klass.pk, actor.pk)
    return assignment


@transaction.atomic
def update_assignment(actor: User, assignment: Assignment, data: dict[str, Any]) -> Assignment:
    _ensure_manager(actor, assignment.klass)
    for field, value in data.items():
        setattr(assignment, field, value)
    assignment.save()
    logger.info("Assignment %s updated by user %s", assignment.pk, actor.pk)
    return assignment


@transaction.atomic
def delete_assignment(actor: User, assignment: Assignment) -> None:
    _ensure_manager(actor, assignment.klass)
    pk = assignment.pk
    assignment.delete()
    logger.info("Assignment %s deleted by user %s", pk, actor.pk)


def list_student_assignments(student: User, now: datetime | None = None) -> list[StudentAssignment]:
    """Assignments of the student's classes, ordered by due date, with derived progress."""
    now = now or timezone.now()
    assignments = (
        Assignment.objects.filter(klass__enrollments__student=student)
        .select_related("klass", "teacher")
        .order_by("due_date", "id")
        .distinct()
    )
    submissions = {
        s.assignment_id: s
        for s in Submission.objects.filter(student=student, assignment__in=assignments)
    }
    result = []
    for assignment in assignments:
        submission = submissions.get(assignment.pk)
        result.append(StudentAssignment(
            assignment=assignment,
            submission=submission,
            progress=derive_progress(assignment.due_date, submission, now),
        ))
    return result


def list_teacher_assignments(teacher: User) -> QuerySet[Assignment]:
    """Assignments of the teacher's classes with submission counters."""
    return (
        Assignment.objects.filter(klass__teacher=teacher)
        .select_related("klass", "teacher")
        .annotate(
            submission_count=Count(
                "submissions",
                filter=Q(submissions__status__in=[SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED]),
            ),
            graded_count=Count("submissions", filter=Q(submissions__status=SubmissionStatus.GRADED)),
        )
        .order_by("due_date", "id")
    )


# ---------- Submissions ----------

@transaction.atomic
def submit(
    student: User,
    assignment: Assignment,
    content: str = "",
    notes: str = "",
    now: datetime | None = None,
) -> Submission:
    """Create or resubmit the student's submission for an assignment.

    Rules:
        - Student must be enrolled in the assignment's class.
        - On resubmit: content/notes are overwritten, submitted_at restamped,
          and any previous grade, feedback and grader are cleared.
    """
    _ensure_enrolled_student(student, assignment.klass)
    now = now or timezone.now()
    submission, created = Submission.objects.select_for_update().get_or_create(
        assignment=assignment,
        student=student,
        defaults={
            "content": content,
            "notes": notes,
            "status": SubmissionStatus.SUBMITTED,
            "submitted_at": now,
        },
    )
    if not created:
        submission.content = content
        submission.notes = notes
        submission.status = SubmissionStatus.SUBMITTED
        submission.submitted_at = now
        submission.grade = None
        submission.feedback = ""
        submission.graded_at = None
        submission.graded_by = None
        submission.save()

    notification_service.notify(
        [assignment.klass.teacher],
        "Submission received",
        f"{student.name or student.email} submitted {assignment.title}.",
        kind=NotificationType.SUBMISSION,
        related_id=submission.pk,
    )
    logger.info(
        "Submission %s %s for assignment %s by student %s",
        submission.pk, "created" if created else "resubmitted", assignment.pk, student.pk,
    )
    return submission


def _validate_grade(grade: Any, points: int) -> float:
    if isinstance(grade, bool) or not isinstance(grade, Real):
        raise InvalidGradeError({"grade": ["Grade must be a number"]})
    if not 0 <= grade <= points:
        raise InvalidGradeError({"grade": [f"Grade must be between 0 and {points}"]})
    return float(grade)


@transaction.atomic
def grade_submission(actor: User, submission: Submission, grade: Any, feedback: str = "") -> Submission:
    """Grade a submission (class teacher or admin).

    Validates:
        grade is a number within [0, assignment.points]; otherwise nothing is written.
    Updates submission status to GRADED and stamps graded_at / graded_by.
    """
    assignment = submission.assignment
    _ensure_manager(actor, assignment.klass)
    try:
        value = _validate_grade(grade, assignment.points)
    except InvalidGradeError:
        logger.warning("Rejected grade %r for submission %s", grade, submission.pk)
        raise

    submission = Submission.objects.select_for_update().select_related("assignment", "student").get(pk=submission.pk)
    submission.grade = value
    submission.feedback = feedback
    submission.status = SubmissionStatus.GRADED
    submission.graded_at = timezone.now()
    submission.graded_by = actor
    submission.save(update_fields=["grade", "feedback", "status", "graded_at", "graded_by", "updated_at"])

    notification_service.notify(
        [submission.student],
        "Assignment graded",
        f"{assignment.title} was graded: {value:g}/{assignment.points}.",
        kind=NotificationType.SUBMISSION,
        related_id=submission.pk,
    )
    logger.info("Submission %s graded %s by user %s", submission.pk, value, actor.pk)
    return submission


def assignment_submissions(actor: User, assignment: Assignment) -> QuerySet[Submission]:
    """All submissions for an assignment (class teacher or admin)."""
    _ensure_manager(actor, assignment.klass)
    return assignment.submissions.select_related("student", "graded_by").order_by("-submitted_at", "-id")


def list_submissions_to_grade(teacher: User) -> QuerySet[Submission]:
    """Submitted but ungraded work on the teacher's assignments, newest first."""
    return (
        Submission.objects.for_teacher(teacher)
        .filter(status=SubmissionStatus.SUBMITTED)
        .select_related("assignment__klass", "student")
        .order_by("-submitted_at", "-id")
    )


# ---------- Files ----------

def _file_metadata(upload: Any) -> dict[str, Any]:
    return {
        "file_name": getattr(upload, "name", "") or "upload",
        "file_size": upload.size,
        "file_type": probe_mime(upload) or getattr(upload, "content_type", "") or "",
    }


@transaction.atomic
def attach_assignment_file(actor: User, assignment: Assignment, upload: Any) -> AssignmentFile:
    _ensure_manager(actor, assignment.klass)
    meta = _file_metadata(upload)
    attachment = AssignmentFile.objects.create(assignment=assignment, file=upload, **meta)
    logger.info("File %s attached to assignment %s", meta["file_name"], assignment.pk)
    return attachment


@transaction.atomic
def attach_submission_file(actor: User, submission: Submission, upload: Any) -> SubmissionFile:
    """Attach a file to the actor's own submission."""
    if submission.student_id != actor.pk:
        raise PermissionDenied("Only the submitting student can attach files")
    meta = _file_metadata(upload)
    attachment = SubmissionFile.objects.create(submission=submission, file=upload, **meta)
    logger.info("File %s attached to submission %s", meta["file_name"], submission.pk)
    return attachment
