"""
Notification Service — In-app notifications for therapy and leave events.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.exceptions import NotFoundError
from app.models.notification import Notification
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates and reads notifications. Creation joins the caller's transaction."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        related_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
        )
        self.db.add(notification)
        logger.info("[NOTIFY] %s -> %s: %s", type, user_id, title)
        return notification

    def notify_therapy_assigned(self, user_id: str, therapy_type: str, room: Optional[str], therapy_id: str) -> Notification:
        return self.create(
            user_id,
            "THERAPY_ASSIGNED",
            "New Therapy Assigned",
            f"You have been assigned {therapy_type} therapy. Room: {room or 'TBD'}",
            therapy_id,
        )

    def notify_therapy_completed(self, user_id: str, therapy_type: str, therapy_id: str) -> Notification:
        return self.create(
            user_id,
            "THERAPY_COMPLETED",
            "Therapy Completed",
            f"Your {therapy_type} therapy has been completed",
            therapy_id,
        )

    def send_therapy_reminder(self, user_id: str, therapy_id: str, when: str, room: Optional[str]) -> Notification:
        return self.create(
            user_id,
            "SESSION_REMINDER",
            "Upcoming Therapy Session",
            f"Your next therapy session is scheduled for {when}. Room: {room or 'TBD'}",
            therapy_id,
        )

    def notify_leave_approved(self, user_id: str, from_date, to_date, leave_id: str) -> Notification:
        return self.create(
            user_id,
            "LEAVE_APPROVED",
            "Leave Request Approved",
            f"Your leave request from {from_date} to {to_date} has been approved",
            leave_id,
        )

    def notify_leave_rejected(self, user_id: str, from_date, to_date, leave_id: str) -> Notification:
        return self.create(
            user_id,
            "LEAVE_REJECTED",
            "Leave Request Rejected",
            f"Your leave request from {from_date} to {to_date} has been rejected",
            leave_id,
        )

    def list_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        q = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            q = q.filter(Notification.read.is_(False))
        return q.order_by(Notification.created_at.desc()).all()

    def mark_read(self, notification_id: str, user_id: str) -> Notification:
        """Mark one of the user's own notifications as read."""
        notification = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )
        if not notification:
            raise NotFoundError("Notification not found")

        if not notification.read:
            notification.read = True
            notification.read_at = utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification
