"""
FastAPI Dependencies — current user, role gates, and the shared audit log.
"""
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import AuthenticationFailedError, PermissionDeniedError
from app.models.user import User
from app.services.audit_service import AuditLog
from app.utils.security import decode_token

bearer = HTTPBearer(auto_error=False)


def get_audit_log(request: Request) -> AuditLog:
    """The process-wide audit log created at startup."""
    return request.app.state.audit_log


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise AuthenticationFailedError("No token provided")

    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationFailedError("Invalid token payload")

    user = db.get(User, user_id)
    if not user or user.deleted or not user.enabled:
        raise AuthenticationFailedError("User not found or disabled")
    return user


def require_role(*roles: str):
    """Dependency factory: allow only the given roles; denied attempts are audited.

    Example: Depends(require_role(Role.ADMIN))
    """
    def checker(
        request: Request,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
        audit: AuditLog = Depends(get_audit_log),
    ) -> User:
        if user.role not in roles:
            audit.append(
                db, user.id, user.role, "UNAUTHORIZED_ACCESS_ATTEMPT", None,
                f"User attempted to access restricted {request.method} {request.url.path}",
            )
            raise PermissionDeniedError("Insufficient permissions")
        return user

    return checker
