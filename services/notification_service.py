"""
Notification Service - In-app notifications.

This service handles:
- Creating notifications for users (SLA breaches and other alerts)
- Listing and marking notifications as read
- Cleaning up old read notifications
"""

import logging
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy import func

from database.models import Notification, utcnow

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for managing notifications of one account."""

    def __init__(self, session, account_id: str):
        self.session = session
        self.account_id = account_id

    def create_notification(self, title: str, message: str,
                            notification_type: str = 'info',
                            priority: str = 'normal',
                            user_id: str = None,
                            entity_type: str = None,
                            entity_id: str = None) -> Notification:
        """
        Create a new notification.

        Args:
            title: Notification title
            message: Notification message
            notification_type: Type (info, warning, alert, reminder)
            priority: Priority level (low, normal, high, urgent)
            user_id: Specific user to notify (None = everyone in the account)
            entity_type: Related entity type
            entity_id: Related entity ID
        """
        notification = Notification(
            account_id=self.account_id,
            user_id=user_id,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            entity_type=entity_type,
            entity_id=entity_id,
            is_read=False
        )
        self.session.add(notification)
        self.session.flush()

        logger.info(f"Created notification: {title}")
        return notification

    def _visible_to(self, user_id: Optional[str]):
        query = self.session.query(Notification).filter(
            Notification.account_id == self.account_id
        )
        if user_id:
            # the user's own notifications plus account-wide broadcasts
            query = query.filter(
                (Notification.user_id == user_id) | (Notification.user_id.is_(None))
            )
        return query

    def get_notifications(self, user_id: str = None, unread_only: bool = False,
                          limit: int = 50) -> List[Dict]:
        query = self._visible_to(user_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712

        notifications = query.order_by(Notification.created_at.desc()).limit(limit).all()
        return [n.to_dict() for n in notifications]

    def get_unread_count(self, user_id: str = None) -> int:
        query = self.session.query(func.count(Notification.id)).filter(
            Notification.account_id == self.account_id,
            Notification.is_read == False  # noqa: E712
        )
        if user_id:
            query = query.filter(
                (Notification.user_id == user_id) | (Notification.user_id.is_(None))
            )
        return query.scalar() or 0

    def mark_as_read(self, notification_id: str, user_id: str = None) -> bool:
        """Mark a notification as read. False if it is not visible to the user."""
        notification = self._visible_to(user_id).filter(
            Notification.id == notification_id
        ).first()

        if not notification:
            return False

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            self.session.flush()

        return True

    def cleanup_old_notifications(self, days: int = 30) -> int:
        """Delete read notifications older than specified days."""
        cutoff = utcnow() - timedelta(days=days)

        count = self.session.query(Notification).filter(
            Notification.account_id == self.account_id,
            Notification.is_read == True,  # noqa: E712
            Notification.created_at < cutoff
        ).delete(synchronize_session=False)
        self.session.flush()

        if count:
            logger.info(f"Removed {count} old notifications for account {self.account_id}")
        return count
