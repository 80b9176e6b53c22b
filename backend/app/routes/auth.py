"""
Auth Routes — Login, patient self-signup, token refresh and current-user lookup.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.dependencies import get_audit_log, get_current_user
from app.models.user import User
from app.schemas.schemas import (
    LoginRequest, PatientOut, PatientSignupRequest, SignupResponse, TokenResponse, UserView, to_user_view,
)
from app.services.audit_service import AuditLog
from app.services.user_service import UserService
from app.utils.rate_limiter import rate_limit
from app.utils.security import create_access_token

settings = get_settings()
router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    _throttle: bool = Depends(rate_limit(settings.LOGIN_RATE_LIMIT, settings.LOGIN_RATE_WINDOW, scope="login")),
):
    """Exchange username/password for a bearer token."""
    user = UserService(db, audit).authenticate(payload.username, payload.password)
    return TokenResponse(
        access_token=create_access_token(user.id, user.role),
        user=to_user_view(user),
    )


@router.post("/patient-signup", response_model=SignupResponse, status_code=201)
def patient_signup(
    payload: PatientSignupRequest,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    _throttle: bool = Depends(rate_limit(settings.LOGIN_RATE_LIMIT, settings.LOGIN_RATE_WINDOW, scope="signup")),
):
    """Create a PATIENT account with its profile and log it in."""
    user, patient = UserService(db, audit).signup_patient(payload.model_dump())
    return SignupResponse(
        access_token=create_access_token(user.id, user.role),
        user=to_user_view(user),
        patient=PatientOut.model_validate(patient),
    )


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(user: User = Depends(get_current_user)):
    """Issue a fresh token for a still-valid one."""
    return TokenResponse(access_token=create_access_token(user.id, user.role), user=to_user_view(user))


@router.get("/me", response_model=UserView)
def me(user: User = Depends(get_current_user)):
    """Profile of the authenticated user."""
    return to_user_view(user)


@router.post("/logout")
def logout(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Record the logout. Tokens are stateless; the client discards its copy."""
    audit.append(db, user.id, user.role, "USER_LOGOUT", user.id, f"{user.name} logged out")
    return {"success": True}
