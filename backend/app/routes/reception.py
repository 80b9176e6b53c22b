"""
Reception Routes — Registration, doctor routing and check-in at the front desk.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_audit_log, require_role
from app.models.user import User, Role
from app.schemas.schemas import (
    AssignDoctorRequest, CheckInRequest, CheckInResponse, PatientCreateRequest,
    PatientCredentials, PatientOut, PatientUpdateRequest, ReceptionDashboardResponse, RegistrationResponse,
    StaffWithLoad, UserView, staff_with_load, to_user_view,
)
from app.services.assignment_engine import AssignmentEngine
from app.services.audit_service import AuditLog
from app.services.patient_service import PatientService

router = APIRouter(prefix="/api/reception", tags=["Reception"])

reception_only = require_role(Role.RECEPTION)


@router.get("/dashboard", response_model=ReceptionDashboardResponse)
def get_dashboard(
    receptionist: User = Depends(reception_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    stats = PatientService(db, audit).reception_dashboard()
    stats["waiting_list"] = [PatientOut.model_validate(p) for p in stats["waiting_list"]]
    return ReceptionDashboardResponse(**stats)


@router.get("/patients-search", response_model=list[PatientOut])
def search_patients(
    search: Optional[str] = None,
    receptionist: User = Depends(reception_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return PatientService(db, audit).list_patients(search=search)


@router.get("/waiting-list", response_model=list[PatientOut])
def waiting_list(
    receptionist: User = Depends(reception_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Patients with no doctor yet, emergencies first."""
    return PatientService(db, audit).waiting_list()


@router.post("/create-patient", response_model=RegistrationResponse, status_code=201)
def create_patient(
    payload: PatientCreateRequest,
    receptionist: User = Depends(reception_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Register a walk-in patient.

    The patient is routed to the least-loaded doctor (or the emergency
    doctor) and receives a login with a temporary password, shown once.
    """
    result = PatientService(db, audit).register_patient(payload.model_dump(), receptionist.id)
    return RegistrationResponse(
        patient=PatientOut.model_validate(result["patient"]),
        assigned_doctor=to_user_view(result["assigned_doctor"]),
        credentials=PatientCredentials(username=result["username"], password=result["password"]),
    )


@router.patch("/patient/{patient_id}", response_model=PatientOut)
def update_patient(
    patient_id: str,
    payload: PatientUpdateRequest,
    receptionist: User = Depends(reception_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return PatientService(db, audit).update_patient(
        patient_id, payload.model_dump(exclude_unset=True), receptionist.id, Role.RECEPTION,
    )


@router.post("/assign-doctor", response_model=PatientOut)
def assign_doctor(
    payload: AssignDoctorRequest,
    receptionist: User = Depends(reception_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return PatientService(db, audit).assign_doctor(
        payload.patient_id, payload.doctor_id, receptionist.id, Role.RECEPTION,
    )


@router.get("/doctors-load", response_model=list[StaffWithLoad])
def doctors_load(
    receptionist: User = Depends(reception_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return [staff_with_load(d, load) for d, load in AssignmentEngine(db, audit).doctors_with_load()]


@router.post("/check-in", response_model=CheckInResponse)
def check_in(
    payload: CheckInRequest,
    receptionist: User = Depends(reception_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    patient = PatientService(db, audit).check_in(payload.patient_id, receptionist.id)
    return CheckInResponse(
        patient=PatientOut.model_validate(patient),
        visit_token=patient.visit_token,
        checked_in_at=patient.checked_in_at,
    )


@router.get("/emergency-doctors", response_model=list[UserView])
def emergency_doctors(
    receptionist: User = Depends(reception_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Enabled doctors in emergency routing order; the first one takes emergencies."""
    return [to_user_view(d) for d in AssignmentEngine(db, audit).enabled_staff(Role.DOCTOR)]
