"""Notification repository - Database operations for in-app notifications"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Notification


class NotificationRepository:
    """Repository for notification database operations"""

    @staticmethod
    def add(
        db: Session,
        user_id: int,
        title: str,
        message: str,
        type: str,
        related_id: Optional[int] = None,
        link: Optional[str] = None,
    ) -> Notification:
        """Stage a notification in the current transaction (caller commits)"""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            related_id=related_id,
            link=link,
        )
        db.add(notification)
        return notification

    @staticmethod
    def list_for_user(db: Session, user_id: int, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    @staticmethod
    def count_unread(db: Session, user_id: int) -> int:
        return (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
            .count()
        )

    @staticmethod
    def get_for_user(db: Session, notification_id: int, user_id: int) -> Optional[Notification]:
        return (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )

    @staticmethod
    def mark_all_read(db: Session, user_id: int) -> int:
        """Mark every unread notification as read. Returns number of rows updated"""
        updated = (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
            .update({"is_read": True}, synchronize_session=False)
        )
        db.commit()
        return updated
