"""Custom DRF permission classes for role, class, submission and meeting access control."""

from typing import Any

from django.shortcuts import get_object_or_404
from rest_framework.permissions import BasePermission, SAFE_METHODS
from rest_framework.request import Request

from LearningCenterApp.classes.models import Class
from LearningCenterApp.core.choices import UserRole
from LearningCenterApp.core.access import (
    class_from, is_admin, can_manage_class, is_class_member, is_submission_participant
)


class IsAdmin(BasePermission):
    """Allow access only to ADMIN users."""

    def has_permission(self, request: Request, view: Any) -> bool:
        return is_admin(request.user)


class IsTeacherOrAdmin(BasePermission):
    def has_permission(self, request: Request, view: Any) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.role in (UserRole.TEACHER, UserRole.ADMIN))


class IsAdminOrSelf(BasePermission):
    """Admins see every user; anyone else only their own record."""

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        return is_admin(request.user) or obj.pk == request.user.pk


class IsClassManager(BasePermission):
    """
    Write access limited to the owning teacher or an admin (GET allowed to members).
    Resolves the class from a nested `class_pk` route when present.
    """

    def _class_from_view(self, view: Any) -> Class | None:
        klass = getattr(view, "_resolved_class", None)
        if klass:
            return klass
        kw = getattr(view, "kwargs", {})
        if "class_pk" in kw:
            klass = get_object_or_404(Class, pk=kw["class_pk"])
            view._resolved_class = klass
        return klass

    def has_permission(self, request: Request, view: Any) -> bool:
        klass = self._class_from_view(view)
        if not klass:
            return True
        if request.method in SAFE_METHODS:
            return is_class_member(request.user, klass)
        return can_manage_class(request.user, klass)

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        klass = class_from(obj)
        if request.method in SAFE_METHODS:
            return is_class_member(request.user, klass)
        return can_manage_class(request.user, klass)


class SubmissionParticipant(BasePermission):
    """Submitting student, class teacher or admin."""

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        return is_submission_participant(request.user, obj)


class IsMeetingParticipant(BasePermission):
    """Host teacher, booked student, joined participant or admin."""

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        user = request.user
        if is_admin(user) or obj.teacher_id == user.id or obj.student_id == user.id:
            return True
        return obj.participants.filter(user=user).exists()
