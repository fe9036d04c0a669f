"""Notification service - Listing and read-state for a user's notifications"""

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...errors import NotFoundError
from ...models import Notification, User

logger = logging.getLogger(__name__)

notifications_table = Notification.__table__


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def list_notifications(self, user: User) -> list[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user.id)
            .order_by(Notification.created_at.desc())
            .all()
        )

    def mark_all_read(self, user: User) -> int:
        """Flip every unread notification; is_read never goes back to false"""
        result = self.db.execute(
            update(notifications_table)
            .where(notifications_table.c.user_id == user.id, notifications_table.c.is_read.is_(False))
            .values(is_read=True)
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise NotFoundError("No unread notifications")
        self.db.commit()
        logger.info(f"✅ Marked {result.rowcount} notifications read for user {user.id}")
        return result.rowcount

    def mark_read(self, user: User, notification_id: str) -> Notification:
        notification = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user.id)
            .first()
        )
        if not notification:
            raise NotFoundError("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            self.db.commit()
            self.db.refresh(notification)
        return notification
