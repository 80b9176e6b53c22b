"""
Admin Routes — Staff accounts, clinic dashboard, audit trail, leaves and roster.
"""
from datetime import date, datetime
from typing import Optional, Union

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func

from app.database import get_db
from app.dependencies import get_audit_log, require_role
from app.models.leave import Leave, LeaveStatus
from app.models.patient import Patient
from app.models.session import TherapySession
from app.models.therapy import Therapy, TherapyStatus
from app.models.user import User, Role
from app.schemas.schemas import (
    AdminDashboardResponse, AuditLogEntryOut, AuditLogListResponse, AutoAssignRequest,
    AutoAssignResponse, IntegrityReport, LeaveDecisionRequest, LeaveDecisionResponse,
    LeaveOut, OnCallRosterResponse, PasswordChangeRequest, PatientOut,
    PatientProgressResponse, PractitionerAvailability, ReassignPractitionerRequest,
    TherapyOut, TherapyReassignRequest, UserCreateRequest, UserToggleRequest, UserView,
    staff_with_load, to_progress_response, to_user_view,
)
from app.services.assignment_engine import AssignmentEngine
from app.services.audit_service import AuditLog
from app.services.leave_service import LeaveService
from app.services.patient_service import PatientService
from app.services.progress_engine import ProgressEngine, average_progress
from app.services.user_service import UserService
from app.utils.dates import utcnow

router = APIRouter(prefix="/api/admin", tags=["Admin"])

admin_only = require_role(Role.ADMIN)

DateOrDateTime = Optional[Union[date, datetime]]


# ─── Users ───────────────────────────────────────────────────────────

@router.post("/users", response_model=UserView, status_code=201)
def create_user(
    payload: UserCreateRequest,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    user = UserService(db, audit).create_user(payload.model_dump(), admin.id)
    return to_user_view(user)


@router.get("/users", response_model=list[UserView])
def list_users(
    role: Optional[str] = None,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return [to_user_view(u) for u in UserService(db, audit).list_users(role)]


@router.patch("/users/{user_id}", response_model=UserView)
def toggle_user(
    user_id: str,
    payload: UserToggleRequest,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Enable or disable an account."""
    return to_user_view(UserService(db, audit).set_enabled(user_id, payload.enabled, admin.id))


@router.patch("/users/{user_id}/password", response_model=UserView)
def change_password(
    user_id: str,
    payload: PasswordChangeRequest,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return to_user_view(UserService(db, audit).change_password(user_id, payload.new_password, admin.id))


@router.delete("/users/{user_id}")
def delete_user(
    user_id: str,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    UserService(db, audit).delete_user(user_id, admin.id)
    return {"success": True, "message": "User deleted successfully"}


# ─── Audit trail ─────────────────────────────────────────────────────

@router.get("/logs", response_model=AuditLogListResponse)
def get_logs(
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    start_date: DateOrDateTime = None,
    end_date: DateOrDateTime = None,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Filtered audit entries, together with an integrity check of the whole chain."""
    logs = audit.query(db, user_id=user_id, action=action, start_date=start_date, end_date=end_date)
    return AuditLogListResponse(
        logs=[AuditLogEntryOut.model_validate(entry) for entry in logs],
        count=len(logs),
        integrity=IntegrityReport(**audit.verify_integrity(db)),
    )


@router.get("/logs/verify", response_model=IntegrityReport)
def verify_logs(
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Recompute the hash chain and report the first tampered entry, if any."""
    return IntegrityReport(**audit.verify_integrity(db))


# ─── Dashboard ───────────────────────────────────────────────────────

@router.get("/dashboard/overview", response_model=AdminDashboardResponse)
def get_dashboard(
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Aggregated clinic metrics."""
    engine = AssignmentEngine(db, audit)
    doctors = engine.doctors_with_load()
    practitioners = engine.practitioners_with_load()

    status_counts = dict(
        db.query(Therapy.status, func.count(Therapy.id)).group_by(Therapy.status).all()
    )
    completed = status_counts.get(TherapyStatus.COMPLETED, 0)
    total_therapies = sum(status_counts.values())
    success_rate = round(completed / total_therapies * 100) if total_therapies else 0

    today_start = datetime.combine(utcnow().date(), datetime.min.time())

    return AdminDashboardResponse(
        total_patients=db.query(func.count(Patient.id)).scalar() or 0,
        total_doctors=len(doctors),
        total_practitioners=len(practitioners),
        scheduled_therapies=status_counts.get(TherapyStatus.SCHEDULED, 0),
        ongoing_therapies=status_counts.get(TherapyStatus.ONGOING, 0),
        completed_therapies=completed,
        success_rate=success_rate,
        avg_doctor_load=average_progress(load for _, load in doctors),
        avg_practitioner_load=average_progress(load for _, load in practitioners),
        pending_leave_requests=db.query(func.count(Leave.id)).filter(
            Leave.status == LeaveStatus.PENDING
        ).scalar() or 0,
        sessions_today=db.query(func.count(TherapySession.id)).filter(
            TherapySession.date >= today_start
        ).scalar() or 0,
        checked_in_today=db.query(func.count(Patient.id)).filter(
            Patient.checked_in_at >= today_start
        ).scalar() or 0,
        emergency_cases=db.query(func.count(Patient.id)).filter(
            Patient.is_emergency.is_(True)
        ).scalar() or 0,
    )


# ─── Leaves ──────────────────────────────────────────────────────────

@router.get("/leaves", response_model=list[LeaveOut])
def list_leaves(
    status: Optional[str] = None,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return LeaveService(db, audit).list_leaves(status)


@router.patch("/leaves/{leave_id}", response_model=LeaveDecisionResponse)
def decide_leave(
    leave_id: str,
    payload: LeaveDecisionRequest,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Approve or reject a pending leave request.

    Approving a practitioner's leave also moves their patients to the
    least-loaded colleagues; if nobody is available the approval still
    stands and the failure is reported in ``reassignment_error``.
    """
    service = LeaveService(db, audit)
    if payload.action == "reject":
        leave = service.reject_leave(leave_id, payload.reason or "", admin.id)
        return LeaveDecisionResponse(leave=LeaveOut.model_validate(leave))

    result = service.approve_leave(leave_id, admin.id)
    return LeaveDecisionResponse(
        leave=LeaveOut.model_validate(result["leave"]),
        reassigned=result["reassigned"],
        reassignment_error=result["reassignment_error"],
    )


# ─── Roster ──────────────────────────────────────────────────────────

@router.post("/roster/auto-assign", response_model=AutoAssignResponse)
def auto_assign(
    payload: AutoAssignRequest,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Move all patients of a practitioner to the least-loaded available practitioners."""
    return AssignmentEngine(db, audit).auto_assign_on_leave(
        payload.user_id, payload.available_practitioner_ids,
    )


@router.get("/roster/on-call", response_model=OnCallRosterResponse)
def on_call_roster(
    on_date: Optional[date] = None,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    roster = AssignmentEngine(db, audit).get_on_call_roster(on_date)
    return OnCallRosterResponse(
        date=roster["date"],
        available_doctors=[staff_with_load(u, load) for u, load in roster["available_doctors"]],
        available_practitioners=[staff_with_load(u, load) for u, load in roster["available_practitioners"]],
    )


@router.get("/roster/availability", response_model=list[PractitionerAvailability])
def practitioner_availability(
    start_date: date,
    end_date: date,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return AssignmentEngine(db, audit).get_practitioner_availability(start_date, end_date)


@router.post("/practitioner/reassign", response_model=PatientOut)
def reassign_practitioner(
    payload: ReassignPractitionerRequest,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Manually move one patient to another practitioner."""
    return PatientService(db, audit).reassign_practitioner(
        payload.patient_id, payload.new_practitioner_id, admin.id, Role.ADMIN,
    )


@router.post("/therapy/{therapy_id}/reassign", response_model=TherapyOut)
def reassign_therapy(
    therapy_id: str,
    payload: TherapyReassignRequest,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return ProgressEngine(db, audit).reassign_practitioner(
        therapy_id, payload.new_practitioner_id, admin.id, Role.ADMIN,
    )


# ─── Patients ────────────────────────────────────────────────────────

@router.get("/patients", response_model=list[PatientOut])
def list_patients(
    search: Optional[str] = None,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return PatientService(db, audit).list_patients(search=search)


@router.get("/patients/{patient_id}", response_model=PatientProgressResponse)
def patient_progress(
    patient_id: str,
    admin: User = Depends(admin_only),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    return to_progress_response(ProgressEngine(db, audit).get_patient_progress(patient_id))
