"""
User Service — Staff accounts, patient logins and authentication.
"""
import logging
from typing import Dict, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.exceptions import (
    AuthenticationFailedError, ConflictError, NotFoundError, ValidationFailedError,
)
from app.models.patient import Patient
from app.models.user import User, Role
from app.services.audit_service import AuditLog
from app.utils.dates import utcnow
from app.utils.security import generate_temp_password, hash_password, verify_password

logger = logging.getLogger(__name__)


def get_active_staff(db: Session, user_id: str, role: str) -> User:
    """Look up an enabled, non-deleted user holding ``role``."""
    user = db.get(User, user_id)
    if not user or user.deleted or user.role != role:
        raise NotFoundError(f"{role.title()} not found")
    if not user.enabled:
        raise ValidationFailedError(f"{role.title()} {user_id} is disabled")
    return user


class UserService:
    """Account management. Every mutation is audited."""

    def __init__(self, db: Session, audit: AuditLog):
        self.db = db
        self.audit = audit

    def get_user(self, user_id: str) -> User:
        user = self.db.get(User, user_id)
        if not user or user.deleted:
            raise NotFoundError("User not found")
        return user

    def list_users(self, role: Optional[str] = None) -> list[User]:
        q = self.db.query(User).filter(User.deleted.is_(False))
        if role:
            q = q.filter(User.role == role)
        return q.order_by(User.created_at.asc(), User.enrolled_seq.asc()).all()

    def create_user(self, data: Dict, admin_id: str) -> User:
        """Create a staff (or admin) account.

        Raises:
            ConflictError: username already taken.
            ValidationFailedError: unknown role.
        """
        if data.get("role") not in Role.ALL:
            raise ValidationFailedError(f"Unknown role: {data.get('role')}")

        with self.audit.transaction(self.db):
            user = self._new_user(
                username=data["username"],
                password=data["password"],
                name=data["name"],
                role=data["role"],
                specialty=data.get("specialty"),
                contact=data.get("contact") or "",
                email=data.get("email") or "",
                language=data.get("language") or "en",
            )
            self.audit.append(
                self.db, admin_id, Role.ADMIN, "ADMIN_CREATED_USER", user.id,
                f'Created {user.role} "{user.username}" ({user.name})',
            )
        return user

    def create_patient_account(
        self,
        name: str,
        username: str,
        contact: str = "",
        email: str = "",
        language: str = "en",
    ) -> Tuple[User, str]:
        """Create a PATIENT login with a temporary password.

        Joins the caller's transaction; the caller is responsible for auditing.
        Returns the user and the plain temporary password.
        """
        temp_password = generate_temp_password()
        user = self._new_user(
            username=username,
            password=temp_password,
            name=name,
            role=Role.PATIENT,
            contact=contact,
            email=email,
            language=language,
        )
        return user, temp_password

    def signup_patient(self, data: Dict) -> Tuple[User, Patient]:
        """Self-service signup: a PATIENT login and its clinical profile, created together.

        Raises:
            ConflictError: username already taken.
            ValidationFailedError: malformed phone, email or ABHA.
        """
        from app.services.patient_service import PatientService, check_identifiers

        check_identifiers(data)
        with self.audit.transaction(self.db):
            user = self._new_user(
                username=data["username"],
                password=data["password"],
                name=data["name"],
                role=Role.PATIENT,
                contact=data.get("phone") or "",
                email=data.get("email") or "",
                language=data.get("preferred_language") or "en",
            )
            profile = {k: v for k, v in data.items() if k not in ("username", "password")}
            profile["registration_type"] = "NEW"
            patient = PatientService(self.db, self.audit).create_patient(profile, user.id, Role.PATIENT)
            patient.user_id = user.id
            self.audit.append(
                self.db, user.id, Role.PATIENT, "PATIENT_SIGNUP", patient.id,
                f"Patient {user.name} signed up",
            )
        logger.info("Patient signup %s -> %s", user.username, patient.id)
        return user, patient

    def authenticate(self, username: str, password: str) -> User:
        user = self.db.query(User).filter(User.username == username).first()
        if not user or user.deleted or not verify_password(password, user.password_hash):
            raise AuthenticationFailedError("Invalid credentials")
        if not user.enabled:
            raise AuthenticationFailedError("User account is disabled")

        with self.audit.transaction(self.db):
            user.last_login = utcnow()
            self.audit.append(self.db, user.id, user.role, "USER_LOGIN", user.id, f"{user.name} logged in")
        return user

    def set_enabled(self, user_id: str, enabled: bool, admin_id: str) -> User:
        with self.audit.transaction(self.db):
            user = self.get_user(user_id)
            user.enabled = enabled
            self.audit.append(
                self.db, admin_id, Role.ADMIN,
                "ADMIN_ENABLED_USER" if enabled else "ADMIN_DISABLED_USER",
                user_id, f"{'Enabled' if enabled else 'Disabled'} user {user.name}",
            )
        return user

    def change_password(self, user_id: str, new_password: str, admin_id: str) -> User:
        if len(new_password) < 6:
            raise ValidationFailedError("Password must be at least 6 characters")

        with self.audit.transaction(self.db):
            user = self.get_user(user_id)
            user.password_hash = hash_password(new_password)
            self.audit.append(
                self.db, admin_id, Role.ADMIN, "ADMIN_CHANGED_PASSWORD", user_id,
                f"Admin changed password for user {user.name}",
            )
        return user

    def delete_user(self, user_id: str, admin_id: str) -> User:
        """Soft delete: the account is disabled and hidden, its history kept."""
        if user_id == admin_id:
            raise ValidationFailedError("You cannot delete your own account")

        with self.audit.transaction(self.db):
            user = self.get_user(user_id)
            user.enabled = False
            user.deleted = True
            self.audit.append(
                self.db, admin_id, Role.ADMIN, "ADMIN_DELETED_USER", user_id,
                f"Soft-deleted user {user.name} ({user.username})",
            )
        return user

    def ensure_bootstrap_admin(self, username: str, password: str) -> Optional[User]:
        """Create the first ADMIN account if none exists yet."""
        if self.db.query(User).filter(User.role == Role.ADMIN).first():
            return None

        with self.audit.transaction(self.db):
            user = self._new_user(username=username, password=password, name="Admin Manager", role=Role.ADMIN)
            self.audit.append(
                self.db, "SYSTEM", Role.SYSTEM, "ADMIN_BOOTSTRAPPED", user.id,
                f'Created bootstrap admin "{username}"',
            )
        logger.info("Bootstrap admin '%s' created", username)
        return user

    def _new_user(self, username: str, password: str, name: str, role: str, **fields) -> User:
        if self.db.query(User).filter(User.username == username).first():
            raise ConflictError("Username already exists")

        user = User(
            username=username,
            password_hash=hash_password(password),
            name=name,
            role=role,
            created_at=utcnow(),
            enrolled_seq=(self.db.query(func.max(User.enrolled_seq)).scalar() or 0) + 1,
            **fields,
        )
        self.db.add(user)
        self.db.flush()
        return user
