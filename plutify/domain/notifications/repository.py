"""Notification repository - Database operations for in-app notifications"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Notification


class NotificationRepository:
    """Repository for notification database operations"""

    @staticmethod
    def create(db: Session, **fields) -> Notification:
        notification = Notification(**fields)
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    @staticmethod
    def list_for_user(
        db: Session, user_id: int, unread_only: bool, offset: int, limit: int
    ) -> tuple[list[Notification], int]:
        query = db.query(Notification).filter(Notification.recipient_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        total = query.count()
        items = query.order_by(Notification.id.desc()).offset(offset).limit(limit).all()
        return items, total

    @staticmethod
    def get_for_user(db: Session, notification_id: int, user_id: int) -> Optional[Notification]:
        return (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.recipient_id == user_id)
            .first()
        )

    @staticmethod
    def unread_count(db: Session, user_id: int) -> int:
        return (
            db.query(Notification)
            .filter(Notification.recipient_id == user_id, Notification.read.is_(False))
            .count()
        )

    @staticmethod
    def mark_all_read(db: Session, user_id: int) -> int:
        updated = (
            db.query(Notification)
            .filter(Notification.recipient_id == user_id, Notification.read.is_(False))
            .update({"read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
        )
        db.commit()
        return updated
