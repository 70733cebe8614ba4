"""Assignment status derivation.

Status precedence for one student's view of an assignment:
    completed  - a submission exists and it is graded (status GRADED or a grade is set)
    submitted  - a submission exists
    overdue    - no submission and the due date has passed
    pending    - otherwise
Lateness is reported separately: a graded submission can still be late.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from LearningCenterApp.core.choices import AssignmentStatus, SubmissionStatus

ONE_DAY = timedelta(days=1)


class SubmissionLike(Protocol):
    """The fields of a submission that status derivation reads."""
    status: str
    grade: float | None
    submitted_at: datetime | None


@dataclass(frozen=True)
class AssignmentProgress:
    status: AssignmentStatus
    is_late: bool
    days_remaining: int


def days_remaining(due_date: datetime, now: datetime) -> int:
    """Whole days left until the due date, rounded up, never negative."""
    return max(0, math.ceil((due_date - now) / ONE_DAY))


def is_late(due_date: datetime, submission: SubmissionLike | None) -> bool:
    if submission is None or submission.submitted_at is None:
        return False
    return submission.submitted_at > due_date


def derive_status(due_date: datetime, submission: SubmissionLike | None, now: datetime) -> AssignmentStatus:
    if submission is not None:
        if submission.status == SubmissionStatus.GRADED or submission.grade is not None:
            return AssignmentStatus.COMPLETED
        return AssignmentStatus.SUBMITTED
    if now > due_date:
        return AssignmentStatus.OVERDUE
    return AssignmentStatus.PENDING


def derive_progress(due_date: datetime, submission: SubmissionLike | None, now: datetime) -> AssignmentProgress:
    """Status, lateness and days remaining for one assignment as seen by one student."""
    return AssignmentProgress(
        status=derive_status(due_date, submission, now),
        is_late=is_late(due_date, submission),
        days_remaining=days_remaining(due_date, now),
    )
