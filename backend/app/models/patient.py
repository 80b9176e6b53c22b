"""
Patient Model — Clinical profile plus staff assignment.
assigned_doctor_id / assigned_practitioner_id are what staff load is counted from.
"""
import uuid
from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text, ForeignKey

from app.database import Base
from app.utils.dates import utcnow


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, index=True, default=lambda: f"p_{uuid.uuid4().hex[:12]}")
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)

    name = Column(String(128), nullable=False)
    dob = Column(String(10))            # YYYY-MM-DD
    age = Column(Integer)
    gender = Column(String(10))         # Male | Female | Other
    dosha = Column(String(16), default="")  # Vata | Pitta | Kapha | Tridosha
    preferred_language = Column(String(8), default="en")
    abha = Column(String(32), default="")   # ABHA health ID
    phone = Column(String(32), default="")
    email = Column(String(128), default="")
    address = Column(String(512), default="")

    assigned_doctor_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    assigned_practitioner_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)

    emergency_contact = Column(String(64), default="")
    medical_history = Column(Text, default="")
    is_emergency = Column(Boolean, default=False)
    visit_token = Column(String(64))
    checked_in_at = Column(DateTime, nullable=True)
    registration_type = Column(String(16), default="NEW")   # NEW | RETURNING

    created_at = Column(DateTime, default=utcnow)
