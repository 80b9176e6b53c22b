"""
Patient Service — Registration, staff assignment, and check-in.
"""
import logging
import uuid
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.exceptions import NotFoundError, ValidationFailedError
from app.models.patient import Patient
from app.models.user import Role
from app.services.assignment_engine import AssignmentEngine
from app.services.audit_service import AuditLog
from app.services.user_service import UserService, get_active_staff
from app.utils.dates import utcnow
from app.utils.validators import validate_abha, validate_email, validate_phone

logger = logging.getLogger(__name__)

PATIENT_FIELDS = (
    "name", "dob", "age", "gender", "dosha", "preferred_language", "abha", "phone",
    "email", "address", "emergency_contact", "medical_history", "is_emergency",
    "registration_type",
)


def check_identifiers(data: Dict):
    """Reject malformed phone, email or ABHA values; empty ones are allowed."""
    if data.get("phone") and not validate_phone(data["phone"]):
        raise ValidationFailedError(f"Invalid phone number: {data['phone']}")
    if data.get("email") and not validate_email(data["email"]):
        raise ValidationFailedError(f"Invalid email: {data['email']}")
    if data.get("abha") and not validate_abha(data["abha"]):
        raise ValidationFailedError("ABHA number must have 14 digits")


class PatientService:
    def __init__(self, db: Session, audit: AuditLog):
        self.db = db
        self.audit = audit

    def get_patient(self, patient_id: str) -> Patient:
        patient = self.db.get(Patient, patient_id)
        if not patient:
            raise NotFoundError("Patient not found")
        return patient

    def get_patient_for_user(self, user_id: str) -> Patient:
        patient = self.db.query(Patient).filter(Patient.user_id == user_id).first()
        if not patient:
            raise NotFoundError("No patient profile linked to this account")
        return patient

    def list_patients(
        self,
        search: Optional[str] = None,
        doctor_id: Optional[str] = None,
        practitioner_id: Optional[str] = None,
    ) -> list[Patient]:
        q = self.db.query(Patient)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(Patient.name.ilike(like), Patient.phone.ilike(like), Patient.id == search))
        if doctor_id:
            q = q.filter(Patient.assigned_doctor_id == doctor_id)
        if practitioner_id:
            q = q.filter(Patient.assigned_practitioner_id == practitioner_id)
        return q.order_by(Patient.created_at.asc()).all()

    def create_patient(self, data: Dict, creator_id: str, creator_role: str) -> Patient:
        check_identifiers(data)
        with self.audit.transaction(self.db):
            patient = Patient(
                created_at=utcnow(),
                **{k: v for k, v in data.items() if k in PATIENT_FIELDS and v is not None},
            )
            self.db.add(patient)
            self.db.flush()
            self.audit.append(
                self.db, creator_id, creator_role, "PATIENT_CREATED", patient.id,
                f"Created patient {patient.name}",
            )
        return patient

    def register_patient(self, data: Dict, receptionist_id: str) -> dict:
        """Reception desk registration.

        Creates the patient, routes them to a doctor by load (or to the
        emergency doctor), and opens a PATIENT login with a temporary
        password. Runs as one transaction: if no doctor is available nothing
        is created.

        Returns:
            dict with 'patient', 'assigned_doctor', 'username', 'password'.
        """
        data = dict(data)
        data.setdefault("dosha", "Tridosha")
        data["registration_type"] = "NEW"

        with self.audit.transaction(self.db):
            patient = self.create_patient(data, receptionist_id, Role.RECEPTION)

            doctor = AssignmentEngine(self.db, self.audit).assign_doctor_by_load(bool(data.get("is_emergency")))
            patient.assigned_doctor_id = doctor.id
            self.audit.append(
                self.db, receptionist_id, Role.RECEPTION, "DOCTOR_ASSIGNED", patient.id,
                f"Assigned doctor {doctor.id} to patient {patient.name}"
                + (" (emergency)" if data.get("is_emergency") else " (least load)"),
            )

            user, temp_password = UserService(self.db, self.audit).create_patient_account(
                name=patient.name,
                username=f"pat_{patient.id[2:10]}",
                contact=patient.phone or "",
                email=patient.email or "",
                language=patient.preferred_language or "en",
            )
            patient.user_id = user.id
            self.audit.append(
                self.db, receptionist_id, Role.RECEPTION, "PATIENT_CREDENTIALS_GENERATED", patient.id,
                f"Generated login credentials for patient {patient.name}",
            )

        logger.info("Registered patient %s -> doctor %s", patient.id, doctor.id)
        return {
            "patient": patient,
            "assigned_doctor": doctor,
            "username": user.username,
            "password": temp_password,
        }

    def update_patient(self, patient_id: str, updates: Dict, updater_id: str, updater_role: str) -> Patient:
        check_identifiers(updates)
        with self.audit.transaction(self.db):
            patient = self.get_patient(patient_id)
            changed = []
            for key, value in updates.items():
                if key in PATIENT_FIELDS and value is not None:
                    setattr(patient, key, value)
                    changed.append(key)
            self.audit.append(
                self.db, updater_id, updater_role, "PATIENT_UPDATED", patient_id,
                f"Updated patient {patient.name}: {', '.join(changed) or 'no fields'}",
            )
        return patient

    def assign_doctor(self, patient_id: str, doctor_id: str, assigned_by: str, role: str) -> Patient:
        with self.audit.transaction(self.db):
            patient = self.get_patient(patient_id)
            get_active_staff(self.db, doctor_id, Role.DOCTOR)
            patient.assigned_doctor_id = doctor_id
            self.audit.append(
                self.db, assigned_by, role, "DOCTOR_ASSIGNED", patient_id,
                f"Assigned doctor {doctor_id} to patient {patient.name}",
            )
        return patient

    def reassign_practitioner(self, patient_id: str, practitioner_id: str, reassigned_by: str, role: str) -> Patient:
        with self.audit.transaction(self.db):
            patient = self.get_patient(patient_id)
            get_active_staff(self.db, practitioner_id, Role.PRACTITIONER)
            old = patient.assigned_practitioner_id
            patient.assigned_practitioner_id = practitioner_id
            self.audit.append(
                self.db, reassigned_by, role, "PRACTITIONER_REASSIGNED", patient_id,
                f"Reassigned practitioner {old} -> {practitioner_id} for patient {patient.name}",
            )
        return patient

    def check_in(self, patient_id: str, receptionist_id: str) -> Patient:
        """Mark the patient present and issue a visit token."""
        with self.audit.transaction(self.db):
            patient = self.get_patient(patient_id)
            patient.checked_in_at = utcnow()
            patient.visit_token = f"VISIT_{uuid.uuid4().hex[:12].upper()}"
            self.audit.append(
                self.db, receptionist_id, Role.RECEPTION, "PATIENT_CHECKED_IN", patient_id,
                f"Patient {patient.name} checked in",
            )
        return patient

    def waiting_list(self) -> list[Patient]:
        """Patients still without a doctor, emergencies first."""
        waiting = self.db.query(Patient).filter(Patient.assigned_doctor_id.is_(None)).all()
        return sorted(waiting, key=lambda p: (not p.is_emergency, p.created_at))

    def reception_dashboard(self) -> dict:
        """Front-desk counts for today plus the current waiting list."""
        today_start = datetime.combine(utcnow().date(), datetime.min.time())
        waiting = self.waiting_list()
        return {
            "total_patients": self.db.query(func.count(Patient.id)).scalar() or 0,
            "waiting_patients": len(waiting),
            "checked_in_today": self.db.query(func.count(Patient.id)).filter(
                Patient.checked_in_at >= today_start
            ).scalar() or 0,
            "emergency_cases": self.db.query(func.count(Patient.id)).filter(
                Patient.is_emergency.is_(True)
            ).scalar() or 0,
            "waiting_list": waiting,
        }
