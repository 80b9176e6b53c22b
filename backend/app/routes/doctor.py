"""
Doctor Routes — Patient review, therapy planning and therapy lifecycle.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func

from app.database import get_db
from app.dependencies import get_audit_log, require_role
from app.exceptions import PermissionDeniedError
from app.models.patient import Patient
from app.models.therapy import Therapy, TherapyStatus
from app.models.user import User, Role
from app.schemas.schemas import (
    LeaveOut, LeaveRequest, PatientOut, PatientProfileResponse, PatientProgressResponse,
    ReminderRequest, SessionOut, TherapyCancelRequest, TherapyCreateRequest, TherapyOut,
    TherapyReassignRequest, TherapyUpdateRequest, to_profile_response, to_progress_response,
)
from app.services.audit_service import AuditLog
from app.services.leave_service import LeaveService
from app.services.patient_service import PatientService
from app.services.progress_engine import ProgressEngine

router = APIRouter(prefix="/api/doctor", tags=["Doctor"])

doctor_only = require_role(Role.DOCTOR)


def _own_therapy(engine: ProgressEngine, therapy_id: str, doctor: User) -> Therapy:
    therapy = engine.get_therapy(therapy_id)
    if therapy.doctor_id != doctor.id:
        raise PermissionDeniedError("Therapy belongs to another doctor")
    return therapy


@router.get("/dashboard")
def get_dashboard(doctor: User = Depends(doctor_only), db: Session = Depends(get_db)):
    """Counts for the doctor's own caseload."""
    status_counts = dict(
        db.query(Therapy.status, func.count(Therapy.id))
        .filter(Therapy.doctor_id == doctor.id)
        .group_by(Therapy.status)
        .all()
    )
    return {
        "total_patients": db.query(func.count(Patient.id)).filter(
            Patient.assigned_doctor_id == doctor.id
        ).scalar() or 0,
        "scheduled_therapies": status_counts.get(TherapyStatus.SCHEDULED, 0),
        "ongoing_therapies": status_counts.get(TherapyStatus.ONGOING, 0),
        "completed_therapies": status_counts.get(TherapyStatus.COMPLETED, 0),
        "cancelled_therapies": status_counts.get(TherapyStatus.CANCELLED, 0),
    }


@router.get("/patients", response_model=list[PatientOut])
def list_patients(
    search: Optional[str] = None,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return PatientService(db, audit).list_patients(search=search, doctor_id=doctor.id)


@router.get("/patient/{patient_id}/progress", response_model=PatientProgressResponse)
def patient_progress(
    patient_id: str,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return to_progress_response(ProgressEngine(db, audit).get_patient_progress(patient_id))


@router.get("/patient/{patient_id}/profile", response_model=PatientProfileResponse)
def patient_profile(
    patient_id: str,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Progress summary together with the assigned doctor and practitioner."""
    return to_profile_response(ProgressEngine(db, audit).get_patient_profile(patient_id))


@router.post("/assign-therapy", response_model=TherapyOut, status_code=201)
def assign_therapy(
    payload: TherapyCreateRequest,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Create a SCHEDULED therapy plan for a patient and notify them."""
    return ProgressEngine(db, audit).create_therapy(payload.model_dump(), doctor.id)


@router.get("/therapy/{therapy_id}/sessions", response_model=list[SessionOut])
def therapy_sessions(
    therapy_id: str,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return ProgressEngine(db, audit).get_therapy_sessions(therapy_id)


@router.patch("/therapy/{therapy_id}", response_model=TherapyOut)
def update_therapy(
    therapy_id: str,
    payload: TherapyUpdateRequest,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    engine = ProgressEngine(db, audit)
    _own_therapy(engine, therapy_id, doctor)
    return engine.update_therapy(therapy_id, payload.model_dump(exclude_unset=True), doctor.id)


@router.post("/therapy/{therapy_id}/complete", response_model=TherapyOut)
def complete_therapy(
    therapy_id: str,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    engine = ProgressEngine(db, audit)
    _own_therapy(engine, therapy_id, doctor)
    return engine.complete_therapy(therapy_id, doctor.id)


@router.post("/therapy/{therapy_id}/cancel", response_model=TherapyOut)
def cancel_therapy(
    therapy_id: str,
    payload: TherapyCancelRequest,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    engine = ProgressEngine(db, audit)
    _own_therapy(engine, therapy_id, doctor)
    return engine.cancel_therapy(therapy_id, doctor.id, Role.DOCTOR, payload.reason)


@router.post("/therapy/{therapy_id}/reassign", response_model=TherapyOut)
def reassign_therapy(
    therapy_id: str,
    payload: TherapyReassignRequest,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    engine = ProgressEngine(db, audit)
    _own_therapy(engine, therapy_id, doctor)
    return engine.reassign_practitioner(therapy_id, payload.new_practitioner_id, doctor.id, Role.DOCTOR)


@router.post("/therapy/{therapy_id}/remind")
def remind_patient(
    therapy_id: str,
    payload: ReminderRequest,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    notification_id = ProgressEngine(db, audit).send_reminder(therapy_id, payload.when)
    return {"sent": notification_id is not None, "notification_id": notification_id}


@router.post("/leave-request", response_model=LeaveOut, status_code=201)
def request_leave(
    payload: LeaveRequest,
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return LeaveService(db, audit).submit_leave(payload.model_dump(), doctor.id, Role.DOCTOR)


@router.get("/leaves", response_model=list[LeaveOut])
def my_leaves(
    doctor: User = Depends(doctor_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return LeaveService(db, audit).get_user_leaves(doctor.id)
