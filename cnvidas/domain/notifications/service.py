"""Notification service - in-app notifications shared by every domain"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Notification, User
from .repository import NotificationRepository

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    type: str,
    related_id: Optional[int] = None,
    link: Optional[str] = None,
) -> Notification:
    """
    Add a notification to the current session.

    The caller owns the transaction, so the notification is committed
    together with the business change that triggered it.
    """
    notification = NotificationRepository.add(db, user_id, title, message, type, related_id, link)
    logger.debug(f"🔔 Notification staged for user {user_id}: {title}")
    return notification


class NotificationService:
    """Service layer for reading and acknowledging notifications"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = NotificationRepository()

    def list_notifications(self, user: User, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        return self.repo.list_for_user(self.db, user.id, unread_only, limit)

    def unread_count(self, user: User) -> int:
        return self.repo.count_unread(self.db, user.id)

    def mark_read(self, notification_id: int, user: User) -> Notification:
        notification = self.repo.get_for_user(self.db, notification_id, user.id)
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")

        if not notification.is_read:
            notification.is_read = True
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_read(self, user: User) -> dict:
        updated = self.repo.mark_all_read(self.db, user.id)
        logger.info(f"✅ Marked {updated} notifications as read for user {user.id}")
        return {"updated": updated}
