"""
Leave Service — Staff leave requests, admin review, and on-leave checks.
"""
import logging
from datetime import date
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.exceptions import (
    InvalidTransitionError, NotFoundError, UnavailableError, ValidationFailedError,
)
from app.models.leave import Leave, LeaveStatus
from app.models.user import Role
from app.services.audit_service import AuditLog
from app.services.notification_service import NotificationService
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


class LeaveService:
    """Leave lifecycle: PENDING → APPROVED | REJECTED."""

    def __init__(self, db: Session, audit: AuditLog):
        self.db = db
        self.audit = audit

    def get_leave(self, leave_id: str) -> Leave:
        leave = self.db.get(Leave, leave_id)
        if not leave:
            raise NotFoundError("Leave request not found")
        return leave

    def list_leaves(self, status: Optional[str] = None) -> list[Leave]:
        q = self.db.query(Leave)
        if status:
            q = q.filter(Leave.status == status)
        return q.order_by(Leave.created_at.asc()).all()

    def get_pending_leaves(self) -> list[Leave]:
        return self.list_leaves(LeaveStatus.PENDING)

    def get_user_leaves(self, user_id: str) -> list[Leave]:
        return (
            self.db.query(Leave)
            .filter(Leave.user_id == user_id)
            .order_by(Leave.from_date.asc())
            .all()
        )

    def submit_leave(self, data: Dict, user_id: str, user_role: str) -> Leave:
        if data["to_date"] < data["from_date"]:
            raise ValidationFailedError("to_date must not be before from_date")

        with self.audit.transaction(self.db):
            leave = Leave(
                user_id=user_id,
                user_role=user_role,
                from_date=data["from_date"],
                to_date=data["to_date"],
                reason=data.get("reason") or "",
                emergency_cover_required=bool(data.get("emergency_cover_required")),
                status=LeaveStatus.PENDING,
                created_at=utcnow(),
            )
            self.db.add(leave)
            self.db.flush()
            self.audit.append(
                self.db, user_id, user_role, "LEAVE_REQUESTED", leave.id,
                f"{user_role} requested leave from {leave.from_date} to {leave.to_date}",
            )
        return leave

    def approve_leave(self, leave_id: str, admin_id: str) -> dict:
        """Approve a pending leave; a practitioner's patients are then reassigned.

        The approval commits first. A reassignment that finds no candidate
        practitioner is reported in the result, not raised.

        Returns:
            dict with 'leave', 'reassigned' and 'reassignment_error'.
        """
        with self.audit.transaction(self.db):
            leave = self._review(leave_id, admin_id, LeaveStatus.APPROVED)
            NotificationService(self.db).notify_leave_approved(
                leave.user_id, leave.from_date, leave.to_date, leave.id,
            )
            self.audit.append(
                self.db, admin_id, Role.ADMIN, "LEAVE_APPROVED", leave.id,
                f"Approved leave for {leave.user_id} from {leave.from_date} to {leave.to_date}",
            )

        result = {"leave": leave, "reassigned": [], "reassignment_error": None}
        if leave.user_role != Role.PRACTITIONER:
            return result

        from app.services.assignment_engine import AssignmentEngine

        try:
            with self.audit.transaction(self.db):
                outcome = AssignmentEngine(self.db, self.audit).auto_assign_on_leave(leave.user_id)
                self.audit.append(
                    self.db, admin_id, Role.ADMIN, "LEAVE_AUTO_REASSIGNED", leave.id,
                    f"Auto-reassigned {len(outcome['reassigned'])} patients from {leave.user_id}",
                )
            result["reassigned"] = outcome["reassigned"]
        except UnavailableError as e:
            logger.warning("Auto-assign after leave %s failed: %s", leave.id, e.message)
            result["reassignment_error"] = e.message
        return result

    def reject_leave(self, leave_id: str, reason: str, admin_id: str) -> Leave:
        with self.audit.transaction(self.db):
            leave = self._review(leave_id, admin_id, LeaveStatus.REJECTED)
            leave.rejection_reason = reason
            NotificationService(self.db).notify_leave_rejected(
                leave.user_id, leave.from_date, leave.to_date, leave.id,
            )
            self.audit.append(
                self.db, admin_id, Role.ADMIN, "LEAVE_REJECTED", leave.id, f"Rejected leave: {reason}",
            )
        return leave

    def is_user_on_leave(self, user_id: str, on_date: date) -> bool:
        """True if an APPROVED leave covers ``on_date`` (both ends inclusive)."""
        return self.db.query(Leave.id).filter(
            Leave.user_id == user_id,
            Leave.status == LeaveStatus.APPROVED,
            Leave.from_date <= on_date,
            Leave.to_date >= on_date,
        ).first() is not None

    def conflicting_leaves(self, user_id: str, start_date: date, end_date: date) -> list[Leave]:
        """APPROVED leaves overlapping [start_date, end_date]."""
        return (
            self.db.query(Leave)
            .filter(
                Leave.user_id == user_id,
                Leave.status == LeaveStatus.APPROVED,
                Leave.to_date >= start_date,
                Leave.from_date <= end_date,
            )
            .order_by(Leave.from_date.asc())
            .all()
        )

    def _review(self, leave_id: str, admin_id: str, status: str) -> Leave:
        leave = self.get_leave(leave_id)
        if leave.status != LeaveStatus.PENDING:
            raise InvalidTransitionError(f"Leave request already {leave.status.lower()}")
        leave.status = status
        leave.reviewed_by = admin_id
        leave.reviewed_at = utcnow()
        return leave
