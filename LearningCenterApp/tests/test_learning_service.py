from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.utils import timezone
from model_bakery import baker
from rest_framework.exceptions import PermissionDenied

from LearningCenterApp.core.choices import AssignmentStatus, SubmissionStatus
from LearningCenterApp.core.exceptions import InvalidGradeError
from LearningCenterApp.domain.services import learning_service
from LearningCenterApp.learning.models import Submission
from LearningCenterApp.notifications.models import Notification

pytestmark = pytest.mark.django_db


def make_assignment(klass, teacher, due=None, points=100):
    return learning_service.create_assignment(teacher, klass, {
        "title": "Essay 1",
        "due_date": due or timezone.now() + timedelta(days=3),
        "points": points,
    })


def test_create_assignment_notifies_enrolled_students(klass, teacher, student, enrolled):
    assignment = make_assignment(klass, teacher)
    assert assignment.teacher == teacher
    assert Notification.objects.filter(user=student, related_id=str(assignment.pk)).exists()


def test_create_assignment_rejects_other_teacher(klass, other_teacher):
    with pytest.raises(PermissionDenied):
        make_assignment(klass, other_teacher)


def test_admin_creates_assignment_owned_by_class_teacher(klass, teacher, admin):
    assignment = make_assignment(klass, admin)
    assert assignment.teacher == teacher


def test_submit_requires_enrollment(klass, teacher, student):
    assignment = make_assignment(klass, teacher)
    with pytest.raises(PermissionDenied):
        learning_service.submit(student, assignment, content="hi")


def test_resubmission_updates_the_same_row(klass, teacher, student, enrolled):
    assignment = make_assignment(klass, teacher)
    first = learning_service.submit(student, assignment, content="v1", notes="n1")
    second = learning_service.submit(student, assignment, content="v2", notes="n2")
    assert first.pk == second.pk
    assert Submission.objects.filter(assignment=assignment, student=student).count() == 1
    second.refresh_from_db()
    assert (second.content, second.notes, second.status) == ("v2", "n2", SubmissionStatus.SUBMITTED)


def test_resubmission_clears_previous_grade(klass, teacher, student, enrolled):
    assignment = make_assignment(klass, teacher)
    sub = learning_service.submit(student, assignment, content="v1")
    learning_service.grade_submission(teacher, sub, 70, "ok")
    sub = learning_service.submit(student, assignment, content="v2")
    sub.refresh_from_db()
    assert sub.grade is None
    assert sub.feedback == ""
    assert sub.graded_at is None
    assert sub.status == SubmissionStatus.SUBMITTED


def test_grade_sets_status_and_stamps(klass, teacher, student, enrolled):
    assignment = make_assignment(klass, teacher)
    sub = learning_service.submit(student, assignment, content="answer")
    graded = learning_service.grade_submission(teacher, sub, 100, "Perfect")
    assert graded.status == SubmissionStatus.GRADED
    assert graded.grade == 100
    assert graded.graded_at is not None
    assert graded.graded_by == teacher
    assert Notification.objects.filter(user=student, title="Assignment graded").exists()


@pytest.mark.parametrize("bad", [101, -1, "85", None, True])
def test_invalid_grade_does_not_mutate(klass, teacher, student, enrolled, bad):
    assignment = make_assignment(klass, teacher, points=100)
    sub = learning_service.submit(student, assignment, content="answer")
    with pytest.raises(InvalidGradeError):
        learning_service.grade_submission(teacher, sub, bad, "nope")
    sub.refresh_from_db()
    assert sub.status == SubmissionStatus.SUBMITTED
    assert sub.grade is None
    assert sub.feedback == ""


def test_grade_respects_assignment_points(klass, teacher, student, enrolled):
    assignment = make_assignment(klass, teacher, points=20)
    sub = learning_service.submit(student, assignment, content="answer")
    with pytest.raises(InvalidGradeError):
        learning_service.grade_submission(teacher, sub, 21)
    assert learning_service.grade_submission(teacher, sub, 20).grade == 20


def test_only_class_teacher_or_admin_grades(klass, teacher, other_teacher, admin, student, enrolled):
    assignment = make_assignment(klass, teacher)
    sub = learning_service.submit(student, assignment, content="answer")
    with pytest.raises(PermissionDenied):
        learning_service.grade_submission(other_teacher, sub, 50)
    assert learning_service.grade_submission(admin, sub, 50).graded_by == admin


def test_late_submission_scenario(klass, teacher, student, enrolled):
    due = datetime(2024, 1, 10, tzinfo=dt_timezone.utc)
    assignment = make_assignment(klass, teacher, due=due, points=100)
    submitted_at = datetime(2024, 1, 12, tzinfo=dt_timezone.utc)
    sub = learning_service.submit(student, assignment, content="late", now=submitted_at)

    [row] = learning_service.list_student_assignments(student, now=submitted_at)
    assert row.progress.status == AssignmentStatus.SUBMITTED
    assert row.progress.is_late is True

    learning_service.grade_submission(teacher, sub, 85)
    [row] = learning_service.list_student_assignments(student, now=submitted_at)
    assert row.progress.status == AssignmentStatus.COMPLETED
    assert row.progress.is_late is True
    assert row.submission.grade == 85


def test_student_assignment_list_statuses(klass, teacher, student, enrolled):
    now = timezone.now()
    past = make_assignment(klass, teacher, due=now - timedelta(days=1))
    future = make_assignment(klass, teacher, due=now + timedelta(days=2))
    baker.make("learning.Assignment", teacher=teacher, due_date=now)  # another class

    rows = learning_service.list_student_assignments(student, now=now)
    assert [r.assignment.pk for r in rows] == [past.pk, future.pk]
    assert rows[0].progress.status == AssignmentStatus.OVERDUE
    assert rows[1].progress.status == AssignmentStatus.PENDING
    assert rows[1].progress.days_remaining == 2


def test_submissions_to_grade_queue(klass, teacher, other_teacher, student, enrolled):
    a1 = make_assignment(klass, teacher)
    a2 = make_assignment(klass, teacher)
    s1 = learning_service.submit(student, a1, content="x")
    s2 = learning_service.submit(student, a2, content="y")
    learning_service.grade_submission(teacher, s1, 10)

    assert list(learning_service.list_submissions_to_grade(teacher)) == [s2]
    assert not learning_service.list_submissions_to_grade(other_teacher).exists()


def test_teacher_assignment_counters(klass, teacher, student, other_student, enrolled):
    baker.make("classes.Enrollment", klass=klass, student=other_student)
    assignment = make_assignment(klass, teacher)
    learning_service.grade_submission(teacher, learning_service.submit(student, assignment, content="a"), 5)
    learning_service.submit(other_student, assignment, content="b")

    row = learning_service.list_teacher_assignments(teacher).get(pk=assignment.pk)
    assert row.submission_count == 2
    assert row.graded_count == 1
