"""
User Model — Staff and patient login accounts.
Maps to the 'users' table. Holds credential material; never serialized directly.
"""
import uuid
from sqlalchemy import Column, String, DateTime, Boolean, Integer

from app.database import Base
from app.utils.dates import utcnow


class Role:
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    PRACTITIONER = "PRACTITIONER"
    RECEPTION = "RECEPTION"
    PATIENT = "PATIENT"
    SYSTEM = "SYSTEM"   # audit attribution only, never a login role

    STAFF = (DOCTOR, PRACTITIONER, RECEPTION)
    ALL = (ADMIN, DOCTOR, PRACTITIONER, RECEPTION, PATIENT)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True, default=lambda: f"u_{uuid.uuid4().hex[:12]}")
    username = Column(String(64), unique=True, nullable=False, index=True)
    password_hash = Column(String(128), nullable=False)

    name = Column(String(128), nullable=False)
    role = Column(String(16), nullable=False, index=True)
    specialty = Column(String(64))     # doctors & practitioners
    contact = Column(String(32), default="")
    email = Column(String(128), default="")
    language = Column(String(8), default="en")

    enabled = Column(Boolean, default=True)
    deleted = Column(Boolean, default=False)

    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    enrolled_seq = Column(Integer, index=True)   # insertion order, breaks created_at ties
