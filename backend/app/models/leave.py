"""
Leave Model — Staff leave requests reviewed by an admin.
Only APPROVED leaves affect rosters and trigger reassignment.
"""
import uuid
from sqlalchemy import Column, String, Date, DateTime, Boolean, Text, ForeignKey

from app.database import Base
from app.utils.dates import utcnow


class LeaveStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Leave(Base):
    __tablename__ = "leaves"

    id = Column(String(36), primary_key=True, index=True, default=lambda: f"l_{uuid.uuid4().hex[:12]}")
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    user_role = Column(String(16), default="")  # DOCTOR | PRACTITIONER

    from_date = Column(Date, nullable=False)
    to_date = Column(Date, nullable=False)
    reason = Column(Text, default="")
    emergency_cover_required = Column(Boolean, default=False)

    status = Column(String(16), default=LeaveStatus.PENDING, index=True)
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
