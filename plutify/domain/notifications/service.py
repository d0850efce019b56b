"""Notification service - In-app notifications for workflow events"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import Notification, User
from ...responses import api_error
from .repository import NotificationRepository

logger = logging.getLogger(__name__)


def notification_to_dict(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data or {},
        "senderId": notification.sender_id,
        "read": notification.read,
        "readAt": notification.read_at,
        "createdAt": notification.created_at,
    }


def create_notification(
    db: Session,
    recipient_id: int,
    notification_type: str,
    title: str,
    message: str,
    data: Optional[dict] = None,
    sender_id: Optional[int] = None,
) -> Optional[Notification]:
    """
    Store an in-app notification.

    Failures are logged and swallowed so a notification problem never fails
    the request that triggered it.
    """
    try:
        notification = NotificationRepository.create(
            db,
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=notification_type,
            title=title,
            message=message,
            data=data or {},
        )
        logger.info(f"🔔 {notification_type} notification created for user {recipient_id}")
        return notification
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to create {notification_type} notification for user {recipient_id}: {e}")
        return None


class NotificationService:
    """Service layer for the current user's notification inbox"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = NotificationRepository()

    def list_notifications(self, user: User, page: int, limit: int, unread_only: bool) -> dict:
        items, total = self.repo.list_for_user(self.db, user.id, unread_only, (page - 1) * limit, limit)
        return {
            "notifications": [notification_to_dict(n) for n in items],
            "pagination": {
                "currentPage": page,
                "totalPages": (total + limit - 1) // limit,
                "totalItems": total,
                "itemsPerPage": limit,
            },
            "unreadCount": self.repo.unread_count(self.db, user.id),
        }

    def unread_count(self, user: User) -> int:
        return self.repo.unread_count(self.db, user.id)

    def _get_own(self, notification_id: int, user: User) -> Notification:
        notification = self.repo.get_for_user(self.db, notification_id, user.id)
        if not notification:
            raise api_error(404, "Notification not found")
        return notification

    def mark_read(self, notification_id: int, user: User) -> dict:
        notification = self._get_own(notification_id, user)
        if not notification.read:
            notification.read = True
            notification.read_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification_to_dict(notification)

    def mark_all_read(self, user: User) -> int:
        return self.repo.mark_all_read(self.db, user.id)

    def delete(self, notification_id: int, user: User) -> None:
        notification = self._get_own(notification_id, user)
        self.db.delete(notification)
        self.db.commit()
