"""
Audit Log Model — Immutable, tamper-evident audit trail.
Every entry's hash covers its own fields plus the previous entry's hash.
"""
from sqlalchemy import Column, String, Integer, Text

from app.database import Base


class AuditLogEntry(Base):
    __tablename__ = "audit_logs"

    # Log position, assigned by AuditLog under its chain lock
    seq = Column(Integer, primary_key=True, autoincrement=False)
    id = Column(String(36), unique=True, nullable=False, index=True)

    user_id = Column(String(36), nullable=False, index=True)
    user_role = Column(String(16), nullable=False)
    action = Column(String(64), nullable=False, index=True)
    # Actions: USER_LOGIN, PATIENT_CREATED, DOCTOR_ASSIGNED, THERAPY_ASSIGNED,
    #          SESSION_RECORDED, LEAVE_APPROVED, PRAC_REASSIGNED, ...
    resource_id = Column(String(36), nullable=True)
    details = Column(Text, default="")

    timestamp = Column(String(32), nullable=False, index=True)   # ISO-8601 UTC, e.g. 2026-01-05T09:30:00.000Z
    hash = Column(String(64), nullable=False)

    def chain_fields(self) -> dict:
        """Fields covered by the chain hash."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_role": self.user_role,
            "action": self.action,
            "resource_id": self.resource_id,
            "details": self.details,
            "timestamp": self.timestamp,
        }
