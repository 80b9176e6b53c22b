"""
Notification Model — In-app messages shown on a user's dashboard.
"""
import uuid
from sqlalchemy import Column, String, DateTime, Boolean, Text, ForeignKey

from app.database import Base
from app.utils.dates import utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, index=True, default=lambda: f"n_{uuid.uuid4().hex[:12]}")
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    type = Column(String(32), nullable=False)
    # Types: SESSION_REMINDER, THERAPY_ASSIGNED, LEAVE_APPROVED, LEAVE_REJECTED
    title = Column(String(128))
    message = Column(Text)
    related_id = Column(String(36))     # therapy / leave id

    read = Column(Boolean, default=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
