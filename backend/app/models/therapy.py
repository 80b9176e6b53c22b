"""
Therapy Model — A course of treatment assigned by a doctor.
Status lifecycle: SCHEDULED → ONGOING → COMPLETED, or CANCELLED from either of the first two.
"""
import uuid
from sqlalchemy import Column, String, Integer, Date, DateTime, JSON, Text, ForeignKey
from sqlalchemy.orm import relationship

from app.database import Base
from app.utils.dates import utcnow


class TherapyStatus:
    SCHEDULED = "SCHEDULED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    CANCELLABLE = (SCHEDULED, ONGOING)


class Therapy(Base):
    __tablename__ = "therapies"

    id = Column(String(36), primary_key=True, index=True, default=lambda: f"t_{uuid.uuid4().hex[:12]}")
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("users.id"), index=True)
    primary_practitioner_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)

    type = Column(String(64), nullable=False)   # Virechana, Basti, Nasya, ...
    phase = Column(String(24))                  # PURVAKARMA | PRADHANAKARMA | PASCHATKARMA
    start_date = Column(Date)
    duration_days = Column(Integer)
    end_date = Column(DateTime, nullable=True)
    room = Column(String(16))
    herbs = Column(JSON, default=list)

    status = Column(String(16), default=TherapyStatus.SCHEDULED, index=True)
    notes = Column(Text, default="")
    progress_percent = Column(Integer, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    sessions = relationship(
        "TherapySession",
        back_populates="therapy",
        order_by="TherapySession.created_at",
    )

    @property
    def session_ids(self) -> list[str]:
        return [s.id for s in self.sessions]
