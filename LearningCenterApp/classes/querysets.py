"""Custom querysets encapsulating role-based visibility for classes and learning objects."""

from django.db.models import QuerySet, Q, Count
from typing import Self

from LearningCenterApp.core.choices import UserRole, EnrollmentRequestStatus

class ClassQuerySet(QuerySet):
    """QuerySet with helpers for class visibility and ownership."""

    def for_teacher(self, user) -> Self:
        """Classes taught by the given user."""
        return self.filter(teacher=user)

    def where_enrolled(self, user) -> Self:
        """Classes the user is enrolled in as a student.

        Matched through a subquery so a later student count sees every enrollment.
        """
        return self.filter(pk__in=self.model.objects.filter(enrollments__student=user).values("pk"))

    def available_to(self, user) -> Self:
        """Classes the student is not enrolled in yet."""
        return self.exclude(enrollments__student=user)

    def with_student_count(self) -> Self:
        return self.annotate(total_students=Count("enrollments", distinct=True))

    def search(self, term: str | None) -> Self:
        """Case-insensitive match on name or description."""
        if not term:
            return self
        return self.filter(Q(name__icontains=term) | Q(description__icontains=term))

    def visible_to(self, user) -> Self:
        """Classes visible to user:
        - Admin: all
        - Teacher: classes they teach
        - Student: classes they are enrolled in
        """
        if not user or not user.is_authenticated:
            return self.none()
        if user.role == UserRole.ADMIN:
            return self.all()
        if user.role == UserRole.TEACHER:
            return self.for_teacher(user)
        return self.where_enrolled(user)


class EnrollmentRequestQuerySet(QuerySet):
    def active(self) -> Self:
        """Requests that block a new request for the same pair."""
        return self.filter(status__in=[EnrollmentRequestStatus.PENDING, EnrollmentRequestStatus.APPROVED])

    def pending(self) -> Self:
        return self.filter(status=EnrollmentRequestStatus.PENDING)


class AssignmentQuerySet(QuerySet):
    """QuerySet helpers for assignment visibility."""

    def visible_to(self, user) -> Self:
        """Assignments visible to user:
        - Admin: all
        - Teacher: assignments of classes they teach
        - Student: assignments of classes they are enrolled in
        """
        if not user or not user.is_authenticated:
            return self.none()
        if user.role == UserRole.ADMIN:
            return self.all()
        if user.role == UserRole.TEACHER:
            return self.filter(klass__teacher=user)
        return self.filter(klass__enrollments__student=user).distinct()


class SubmissionQuerySet(QuerySet):
    """QuerySet helpers for filtering submissions by role."""

    def for_teacher(self, user):
        """Submissions on assignments of classes the user teaches."""
        return self.filter(assignment__klass__teacher=user)

    def for_student(self, user):
        """Submissions belonging to the student."""
        return self.filter(student=user)

    def visible_to(self, user):
        if not user or not user.is_authenticated:
            return self.none()
        if user.role == UserRole.ADMIN:
            return self.all()
        if user.role == UserRole.TEACHER:
            return self.for_teacher(user)
        return self.for_student(user)
