"""
Pydantic Schemas — Request & Response models for API validation.
"""
from datetime import date, datetime
from typing import Optional, Dict, List, Literal
from pydantic import BaseModel, Field


# ──────────────── Users / Auth ────────────────

class UserView(BaseModel):
    """Public projection of a user. Never carries credential material."""
    id: str
    username: str
    name: str
    role: str
    specialty: Optional[str] = None
    contact: str = ""
    email: str = ""
    language: str = "en"
    enabled: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


def to_user_view(user) -> UserView:
    """Map an internal User record onto its public view."""
    return UserView(
        id=user.id,
        username=user.username,
        name=user.name,
        role=user.role,
        specialty=user.specialty,
        contact=user.contact or "",
        email=user.email or "",
        language=user.language or "en",
        enabled=bool(user.enabled),
        last_login=user.last_login,
        created_at=user.created_at,
    )


class StaffWithLoad(UserView):
    patient_load: int


def staff_with_load(user, load: int) -> StaffWithLoad:
    return StaffWithLoad(**to_user_view(user).model_dump(), patient_load=load)


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserView


class PatientSignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    password: str = Field(..., min_length=6)
    name: str
    age: Optional[int] = Field(None, ge=0, le=150)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    dosha: Optional[str] = None
    preferred_language: Optional[str] = None


class UserCreateRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    password: str = Field(..., min_length=6)
    name: str
    role: str = Field(..., description="ADMIN | DOCTOR | PRACTITIONER | RECEPTION")
    specialty: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None
    language: Optional[str] = None


class UserToggleRequest(BaseModel):
    enabled: bool


class PasswordChangeRequest(BaseModel):
    new_password: str = Field(..., min_length=6)


# ──────────────── Patients ────────────────

class PatientCreateRequest(BaseModel):
    name: str
    age: Optional[int] = Field(None, ge=0, le=150)
    dob: Optional[str] = None
    gender: Optional[str] = None
    dosha: Optional[str] = Field(None, description="Vata | Pitta | Kapha | Tridosha")
    preferred_language: Optional[str] = None
    abha: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    medical_history: Optional[str] = None
    is_emergency: bool = False


class PatientUpdateRequest(BaseModel):
    name: Optional[str] = None
    age: Optional[int] = Field(None, ge=0, le=150)
    dob: Optional[str] = None
    gender: Optional[str] = None
    dosha: Optional[str] = None
    preferred_language: Optional[str] = None
    abha: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    medical_history: Optional[str] = None
    is_emergency: Optional[bool] = None


class PatientOut(BaseModel):
    id: str
    user_id: Optional[str] = None
    name: str
    dob: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    dosha: Optional[str] = None
    preferred_language: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    assigned_doctor_id: Optional[str] = None
    assigned_practitioner_id: Optional[str] = None
    medical_history: Optional[str] = None
    is_emergency: bool = False
    checked_in_at: Optional[datetime] = None
    registration_type: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PatientCredentials(BaseModel):
    username: str
    password: str
    message: str = "Patient must change password on first login"


class RegistrationResponse(BaseModel):
    patient: PatientOut
    assigned_doctor: UserView
    credentials: PatientCredentials


class SignupResponse(TokenResponse):
    patient: PatientOut


class ReceptionDashboardResponse(BaseModel):
    total_patients: int
    waiting_patients: int
    checked_in_today: int
    emergency_cases: int
    waiting_list: List[PatientOut]


class AssignDoctorRequest(BaseModel):
    patient_id: str
    doctor_id: str


class ReassignPractitionerRequest(BaseModel):
    patient_id: str
    new_practitioner_id: str


class CheckInRequest(BaseModel):
    patient_id: str


class CheckInResponse(BaseModel):
    patient: PatientOut
    visit_token: str
    checked_in_at: datetime


# ──────────────── Therapies & Sessions ────────────────

class TherapyCreateRequest(BaseModel):
    patient_id: str
    type: str = Field(..., description="Virechana, Basti, Nasya, ...")
    phase: Optional[str] = Field(None, description="PURVAKARMA | PRADHANAKARMA | PASCHATKARMA")
    start_date: Optional[date] = None
    duration_days: Optional[int] = Field(None, ge=1)
    room: Optional[str] = None
    herbs: List[str] = []
    notes: str = ""
    primary_practitioner_id: Optional[str] = None


class TherapyOut(BaseModel):
    id: str
    patient_id: str
    doctor_id: Optional[str] = None
    primary_practitioner_id: Optional[str] = None
    type: str
    phase: Optional[str] = None
    start_date: Optional[date] = None
    duration_days: Optional[int] = None
    end_date: Optional[datetime] = None
    room: Optional[str] = None
    herbs: List[str] = []
    status: str
    notes: str = ""
    progress_percent: int = 0
    session_ids: List[str] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TherapyCancelRequest(BaseModel):
    reason: str = ""


class TherapyUpdateRequest(BaseModel):
    phase: Optional[str] = None
    room: Optional[str] = None
    notes: Optional[str] = None
    primary_practitioner_id: Optional[str] = None


class TherapyReassignRequest(BaseModel):
    new_practitioner_id: str


class ReminderRequest(BaseModel):
    when: datetime


class Vitals(BaseModel):
    pulse: Optional[int] = None
    bp: Optional[str] = None
    temperature: Optional[float] = None
    respiration: Optional[int] = None


class SessionRecordRequest(BaseModel):
    therapy_id: str
    date: Optional[datetime] = None
    notes: str = ""
    progress_percent: int = Field(0, ge=0, le=100)
    attended: bool = True
    vitals: Vitals = Vitals()
    attachments: List[str] = []
    symptoms: List[str] = []


class SessionOut(BaseModel):
    id: str
    therapy_id: str
    patient_id: Optional[str] = None
    practitioner_id: Optional[str] = None
    date: datetime
    notes: str = ""
    progress_percent: int = 0
    attended: bool = True
    vitals: Dict = {}
    attachments: List[str] = []
    symptoms: List[str] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionRecordResponse(BaseModel):
    session: SessionOut
    therapy: TherapyOut
    message: str = "Session progress recorded"


class TherapyProgress(BaseModel):
    therapy: TherapyOut
    sessions: List[SessionOut]
    session_count: int
    avg_progress: int


class PatientProgressResponse(BaseModel):
    patient: PatientOut
    therapies: List[TherapyProgress]
    overall_progress: int


class PatientProfileResponse(PatientProgressResponse):
    assigned_doctor: Optional[UserView] = None
    assigned_practitioner: Optional[UserView] = None


class CalendarEvent(BaseModel):
    id: str
    title: str
    start_date: date
    end_date: date
    description: str
    location: Optional[str] = None
    status: str


class TherapyCalendarResponse(BaseModel):
    therapies: List[TherapyOut]
    events: List[CalendarEvent]
    sessions: List[SessionOut]


# ──────────────── Leaves & Roster ────────────────

class LeaveRequest(BaseModel):
    from_date: date
    to_date: date
    reason: str = ""
    emergency_cover_required: bool = False


class LeaveOut(BaseModel):
    id: str
    user_id: str
    user_role: str
    from_date: date
    to_date: date
    reason: str = ""
    emergency_cover_required: bool = False
    status: str
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LeaveDecisionRequest(BaseModel):
    action: Literal["approve", "reject"]
    reason: Optional[str] = None


class Reassignment(BaseModel):
    patient_id: str
    old_practitioner_id: str
    new_practitioner_id: str


class LeaveDecisionResponse(BaseModel):
    leave: LeaveOut
    reassigned: List[Reassignment] = []
    reassignment_error: Optional[str] = None


class AutoAssignRequest(BaseModel):
    user_id: str
    available_practitioner_ids: Optional[List[str]] = None


class AutoAssignResponse(BaseModel):
    reassigned: List[Reassignment]


class OnCallRosterResponse(BaseModel):
    date: date
    available_doctors: List[StaffWithLoad]
    available_practitioners: List[StaffWithLoad]


class ConflictingLeave(BaseModel):
    leave_id: str
    from_date: date
    to_date: date


class PractitionerAvailability(BaseModel):
    practitioner_id: str
    name: str
    available: bool
    conflicting_leaves: List[ConflictingLeave] = []


# ──────────────── Notifications ────────────────

class NotificationOut(BaseModel):
    id: str
    type: str
    title: Optional[str] = None
    message: Optional[str] = None
    related_id: Optional[str] = None
    read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ──────────────── Admin / Audit ────────────────

class AuditLogEntryOut(BaseModel):
    seq: int
    id: str
    user_id: str
    user_role: str
    action: str
    resource_id: Optional[str] = None
    details: str = ""
    timestamp: str
    hash: str

    class Config:
        from_attributes = True


class IntegrityReport(BaseModel):
    valid: bool
    total_entries: int
    tampered_at: Optional[int] = None
    message: Optional[str] = None


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogEntryOut]
    count: int
    integrity: IntegrityReport


class AdminDashboardResponse(BaseModel):
    total_patients: int
    total_doctors: int
    total_practitioners: int
    scheduled_therapies: int
    ongoing_therapies: int
    completed_therapies: int
    success_rate: int
    avg_doctor_load: int
    avg_practitioner_load: int
    pending_leave_requests: int
    sessions_today: int
    checked_in_today: int
    emergency_cases: int


class PatientMetrics(BaseModel):
    total: int
    new_today: int
    avg_wait_time_minutes: int


class TherapyMetrics(BaseModel):
    total: int
    ongoing: int
    completed: int
    success_rate: int


class SessionMetrics(BaseModel):
    total: int
    today: int


class StaffLoadMetrics(BaseModel):
    doctors: int
    avg_patients_per_doctor: int
    practitioners: int
    avg_patients_per_practitioner: int


class UtilizationMetrics(BaseModel):
    room_utilization: Dict[str, int]
    avg_sessions_per_day: int


class ComplaintCount(BaseModel):
    complaint: str
    count: int


class ClinicMetricsResponse(BaseModel):
    timestamp: str
    patients: PatientMetrics
    therapies: TherapyMetrics
    sessions: SessionMetrics
    staff_load: StaffLoadMetrics
    utilization: UtilizationMetrics
    top_complaints: List[ComplaintCount]


# ──────────────── Generic ────────────────

class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    database: str
    uptime_seconds: float


class ErrorResponse(BaseModel):
    detail: str
    error_code: Optional[str] = None


def to_progress_response(progress: dict) -> PatientProgressResponse:
    """Build the API view of ProgressEngine.get_patient_progress()."""
    return PatientProgressResponse(
        patient=PatientOut.model_validate(progress["patient"]),
        therapies=[
            TherapyProgress(
                therapy=TherapyOut.model_validate(item["therapy"]),
                sessions=[SessionOut.model_validate(s) for s in item["sessions"]],
                session_count=item["session_count"],
                avg_progress=item["avg_progress"],
            )
            for item in progress["therapies"]
        ],
        overall_progress=progress["overall_progress"],
    )


def to_profile_response(profile: dict) -> PatientProfileResponse:
    """Build the API view of ProgressEngine.get_patient_profile()."""
    progress = to_progress_response(profile)
    doctor, practitioner = profile["assigned_doctor"], profile["assigned_practitioner"]
    return PatientProfileResponse(
        **progress.model_dump(),
        assigned_doctor=to_user_view(doctor) if doctor else None,
        assigned_practitioner=to_user_view(practitioner) if practitioner else None,
    )
