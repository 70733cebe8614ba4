"""User administration: admins manage accounts, everyone else only edits their own profile."""

import logging
from typing import Any

from django.db import transaction
from django.db.models import ProtectedError, QuerySet
from rest_framework.exceptions import PermissionDenied, ValidationError

from LearningCenterApp.core.access import is_admin
from LearningCenterApp.core.choices import UserRole
from LearningCenterApp.core.exceptions import DuplicateEmailError
from LearningCenterApp.users.models import User

logger = logging.getLogger(__name__)


def _ensure_admin(actor: User) -> None:
    if not is_admin(actor):
        raise PermissionDenied("Admin role required")


def _ensure_email_free(email: str, exclude_pk: int | None = None) -> None:
    qs = User.objects.filter(email__iexact=email)
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    if qs.exists():
        raise DuplicateEmailError()


@transaction.atomic
def create_user(actor: User, data: dict[str, Any]) -> User:
    """Create an account (admin only); the email doubles as the username."""
    _ensure_admin(actor)
    data = dict(data)
    password = data.pop("password", None)
    email = User.objects.normalize_email(data.pop("email"))
    _ensure_email_free(email)
    user = User(email=email, username=email, **data)
    if password:
        user.set_password(password)
    else:
        user.set_unusable_password()
    user.save()
    logger.info("User %s (%s) created by admin %s", user.pk, user.role, actor.pk)
    return user


@transaction.atomic
def update_user(actor: User, user: User, data: dict[str, Any]) -> User:
    """Update a profile. Only admins may change roles."""
    if not (is_admin(actor) or actor.pk == user.pk):
        raise PermissionDenied("You can only edit your own profile")
    data = dict(data)
    if "role" in data and data["role"] != user.role and not is_admin(actor):
        raise PermissionDenied("Only admins can change roles")
    if "email" in data:
        email = User.objects.normalize_email(data["email"])
        _ensure_email_free(email, exclude_pk=user.pk)
        data["email"] = email
        data["username"] = email
    password = data.pop("password", None)
    for field, value in data.items():
        setattr(user, field, value)
    if password:
        user.set_password(password)
    user.save()
    logger.info("User %s updated by user %s", user.pk, actor.pk)
    return user


@transaction.atomic
def delete_user(actor: User, user: User) -> None:
    _ensure_admin(actor)
    if actor.pk == user.pk:
        raise ValidationError({"id": ["You cannot delete your own account"]})
    pk = user.pk
    try:
        user.delete()
    except ProtectedError:
        raise ValidationError({"id": ["User still owns classes or assignments"]})
    logger.info("User %s deleted by admin %s", pk, actor.pk)


def users_with_role(role: str) -> QuerySet[User]:
    return User.objects.filter(role=role).order_by("name", "id")


def students(actor: User, class_id: int | None = None) -> QuerySet[User]:
    """Student list for admins and teachers, optionally limited to one class's roster."""
    if actor.role not in (UserRole.ADMIN, UserRole.TEACHER):
        raise PermissionDenied("Teacher or admin role required")
    qs = users_with_role(UserRole.STUDENT)
    if class_id is not None:
        qs = qs.filter(enrollments__klass_id=class_id)
    return qs
