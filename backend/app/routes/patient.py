"""
Patient Routes — A patient's own profile and therapy progress.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_audit_log, require_role
from app.models.user import User, Role
from app.schemas.schemas import (
    PatientOut, PatientProgressResponse, SessionOut, TherapyCalendarResponse, TherapyOut, to_progress_response,
)
from app.services.audit_service import AuditLog
from app.services.patient_service import PatientService
from app.services.progress_engine import ProgressEngine

router = APIRouter(prefix="/api/patient", tags=["Patient"])

patient_only = require_role(Role.PATIENT)


@router.get("/profile", response_model=PatientOut)
def get_profile(
    user: User = Depends(patient_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return PatientService(db, audit).get_patient_for_user(user.id)


@router.get("/therapies", response_model=list[TherapyOut])
def my_therapies(
    user: User = Depends(patient_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    patient = PatientService(db, audit).get_patient_for_user(user.id)
    return ProgressEngine(db, audit).get_patient_therapies(patient.id)


@router.get("/progress", response_model=PatientProgressResponse)
def my_progress(
    user: User = Depends(patient_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Session history and progress for every therapy of the logged-in patient."""
    patient = PatientService(db, audit).get_patient_for_user(user.id)
    return to_progress_response(ProgressEngine(db, audit).get_patient_progress(patient.id))


@router.get("/therapy-calendar", response_model=TherapyCalendarResponse)
def therapy_calendar(
    user: User = Depends(patient_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Therapies as calendar events, plus every session in date order."""
    patient = PatientService(db, audit).get_patient_for_user(user.id)
    calendar = ProgressEngine(db, audit).get_therapy_calendar(patient.id)
    return TherapyCalendarResponse(
        therapies=[TherapyOut.model_validate(t) for t in calendar["therapies"]],
        events=calendar["events"],
        sessions=[SessionOut.model_validate(s) for s in calendar["sessions"]],
    )
