from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from LearningCenterApp.core.choices import AssignmentStatus, SubmissionStatus
from LearningCenterApp.learning.lifecycle import days_remaining, derive_progress, derive_status

DUE = datetime(2024, 1, 10, tzinfo=timezone.utc)


@dataclass
class Sub:
    status: str = SubmissionStatus.SUBMITTED
    grade: float | None = None
    submitted_at: datetime | None = None


def test_no_submission_before_due_is_pending():
    assert derive_status(DUE, None, DUE - timedelta(hours=1)) == AssignmentStatus.PENDING


def test_no_submission_after_due_is_overdue():
    for late in (timedelta(seconds=1), timedelta(days=3), timedelta(days=400)):
        assert derive_status(DUE, None, DUE + late) == AssignmentStatus.OVERDUE


def test_grade_means_completed_whatever_the_raw_status():
    for status in (SubmissionStatus.PENDING, SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED):
        sub = Sub(status=status, grade=0.0, submitted_at=DUE)
        assert derive_status(DUE, sub, DUE + timedelta(days=30)) == AssignmentStatus.COMPLETED


def test_graded_status_without_grade_is_completed():
    sub = Sub(status=SubmissionStatus.GRADED, submitted_at=DUE)
    assert derive_status(DUE, sub, DUE) == AssignmentStatus.COMPLETED


def test_late_submission_then_grading_scenario():
    submitted_at = datetime(2024, 1, 12, tzinfo=timezone.utc)
    sub = Sub(status=SubmissionStatus.SUBMITTED, submitted_at=submitted_at)
    progress = derive_progress(DUE, sub, submitted_at)
    assert progress.status == AssignmentStatus.SUBMITTED
    assert progress.is_late is True

    sub.status, sub.grade = SubmissionStatus.GRADED, 85
    progress = derive_progress(DUE, sub, submitted_at + timedelta(days=1))
    assert progress.status == AssignmentStatus.COMPLETED
    assert progress.is_late is True


def test_on_time_submission_is_not_late():
    sub = Sub(submitted_at=DUE)
    assert derive_progress(DUE, sub, DUE).is_late is False
    assert derive_progress(DUE, None, DUE + timedelta(days=1)).is_late is False


def test_days_remaining_rounds_up_and_clamps():
    assert days_remaining(DUE, DUE - timedelta(days=2)) == 2
    assert days_remaining(DUE, DUE - timedelta(days=1, minutes=1)) == 2
    assert days_remaining(DUE, DUE - timedelta(minutes=1)) == 1
    assert days_remaining(DUE, DUE) == 0
    assert days_remaining(DUE, DUE + timedelta(days=5)) == 0
