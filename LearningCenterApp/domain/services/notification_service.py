"""In-app notifications: fan-out on domain events and the per-user inbox."""

import logging
from typing import Iterable

from django.db import transaction
from django.db.models import QuerySet
from rest_framework.exceptions import NotFound

from LearningCenterApp.core.choices import NotificationType
from LearningCenterApp.notifications.models import Notification
from LearningCenterApp.users.models import User

logger = logging.getLogger(__name__)

INBOX_LIMIT = 50


def notify(
    users: Iterable[User],
    title: str,
    message: str,
    kind: str = NotificationType.SYSTEM,
    related_id: object | None = None,
) -> list[Notification]:
    """Create one notification per user in a single bulk insert."""
    rows = [
        Notification(
            user=user,
            title=title,
            message=message,
            type=kind,
            related_id=str(related_id) if related_id is not None else None,
        )
        for user in users
    ]
    if not rows:
        return []
    created = Notification.objects.bulk_create(rows)
    logger.info("Sent %s notification to %d user(s): %s", kind, len(created), title)
    return created


def list_notifications(user: User, limit: int = INBOX_LIMIT) -> QuerySet[Notification]:
    return Notification.objects.filter(user=user)[:limit]


def unread_count(user: User) -> int:
    return Notification.objects.filter(user=user, is_read=False).count()


@transaction.atomic
def mark_read(user: User, notification_id: int) -> Notification:
    """Mark one of the user's notifications read; other users' rows are not found."""
    try:
        notification = Notification.objects.select_for_update().get(pk=notification_id, user=user)
    except Notification.DoesNotExist:
        raise NotFound("Notification not found")
    if not notification.is_read:
        notification.is_read = True
        notification.save(update_fields=["is_read"])
    return notification


def mark_all_read(user: User) -> int:
    """Returns the number of rows that changed."""
    return Notification.objects.filter(user=user, is_read=False).update(is_read=True)
