"""
Practitioner Routes — Session recording and the practitioner's own caseload.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func

from app.database import get_db
from app.dependencies import get_audit_log, require_role
from app.models.patient import Patient
from app.models.session import TherapySession
from app.models.therapy import Therapy, TherapyStatus
from app.models.user import User, Role
from app.schemas.schemas import (
    LeaveOut, LeaveRequest, PatientOut, PatientProgressResponse, SessionOut,
    SessionRecordRequest, SessionRecordResponse, TherapyOut, to_progress_response,
)
from app.services.audit_service import AuditLog
from app.services.leave_service import LeaveService
from app.services.patient_service import PatientService
from app.services.progress_engine import ProgressEngine

router = APIRouter(prefix="/api/practitioner", tags=["Practitioner"])

practitioner_only = require_role(Role.PRACTITIONER)


@router.get("/dashboard")
def get_dashboard(practitioner: User = Depends(practitioner_only), db: Session = Depends(get_db)):
    active = db.query(func.count(Therapy.id)).filter(
        Therapy.primary_practitioner_id == practitioner.id,
        Therapy.status.in_(TherapyStatus.CANCELLABLE),
    ).scalar() or 0
    return {
        "total_patients": db.query(func.count(Patient.id)).filter(
            Patient.assigned_practitioner_id == practitioner.id
        ).scalar() or 0,
        "active_therapies": active,
        "sessions_recorded": db.query(func.count(TherapySession.id)).filter(
            TherapySession.practitioner_id == practitioner.id
        ).scalar() or 0,
    }


@router.get("/patients", response_model=list[PatientOut])
def list_patients(
    practitioner: User = Depends(practitioner_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return PatientService(db, audit).list_patients(practitioner_id=practitioner.id)


@router.post("/session", response_model=SessionRecordResponse, status_code=201)
def record_session(
    payload: SessionRecordRequest,
    practitioner: User = Depends(practitioner_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Record a therapy session; the therapy's progress and status follow from it."""
    engine = ProgressEngine(db, audit)
    data = payload.model_dump(exclude={"therapy_id"})
    session = engine.record_session(payload.therapy_id, data, practitioner.id)
    return SessionRecordResponse(
        session=SessionOut.model_validate(session),
        therapy=TherapyOut.model_validate(engine.get_therapy(payload.therapy_id)),
    )


@router.get("/patient/{patient_id}/therapy", response_model=PatientProgressResponse)
def patient_therapy(
    patient_id: str,
    practitioner: User = Depends(practitioner_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return to_progress_response(ProgressEngine(db, audit).get_patient_progress(patient_id))


@router.get("/therapy/{therapy_id}/sessions", response_model=list[SessionOut])
def therapy_sessions(
    therapy_id: str,
    practitioner: User = Depends(practitioner_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return ProgressEngine(db, audit).get_therapy_sessions(therapy_id)


@router.post("/leave-request", response_model=LeaveOut, status_code=201)
def request_leave(
    payload: LeaveRequest,
    practitioner: User = Depends(practitioner_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return LeaveService(db, audit).submit_leave(payload.model_dump(), practitioner.id, Role.PRACTITIONER)


@router.get("/leaves", response_model=list[LeaveOut])
def my_leaves(
    practitioner: User = Depends(practitioner_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return LeaveService(db, audit).get_user_leaves(practitioner.id)
