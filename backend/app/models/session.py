"""
Therapy Session Model — One recorded visit under a Therapy.
Maps to the 'sessions' table. Written once by a practitioner, never updated.
"""
import uuid
from sqlalchemy import Column, String, Integer, DateTime, Boolean, JSON, Text, ForeignKey
from sqlalchemy.orm import relationship

from app.database import Base
from app.utils.dates import utcnow


class TherapySession(Base):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, index=True, default=lambda: f"s_{uuid.uuid4().hex[:12]}")
    therapy_id = Column(String(36), ForeignKey("therapies.id"), nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id"), index=True)
    practitioner_id = Column(String(36), ForeignKey("users.id"), index=True)

    date = Column(DateTime, nullable=False, default=utcnow)
    notes = Column(Text, default="")
    progress_percent = Column(Integer, default=0)   # 0-100
    attended = Column(Boolean, default=True)

    vitals = Column(JSON, default=dict)         # pulse, bp, temperature, respiration
    attachments = Column(JSON, default=list)
    symptoms = Column(JSON, default=list)

    created_at = Column(DateTime, default=utcnow)

    therapy = relationship("Therapy", back_populates="sessions")
