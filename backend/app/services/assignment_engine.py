"""
Assignment Engine — Least-load routing of patients to doctors and practitioners.

Load is always recomputed live (COUNT of patients referencing the staff id)
instead of being kept in a counter.
"""
import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.exceptions import UnavailableError, ValidationFailedError
from app.models.patient import Patient
from app.models.user import User, Role
from app.services.audit_service import AuditLog
from app.services.leave_service import LeaveService
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


class AssignmentEngine:
    """Chooses staff for patients and redistributes patients when staff go on leave."""

    def __init__(self, db: Session, audit: AuditLog):
        self.db = db
        self.audit = audit

    # ─── Staff & load ────────────────────────────────────────────────

    def enabled_staff(self, role: str) -> list[User]:
        """Enabled staff of a role in enumeration order (creation time, then enrolment sequence)."""
        return (
            self.db.query(User)
            .filter(User.role == role, User.enabled.is_(True), User.deleted.is_(False))
            .order_by(User.created_at.asc(), User.enrolled_seq.asc())
            .all()
        )

    def doctor_load(self, doctor_id: str) -> int:
        return self.db.query(func.count(Patient.id)).filter(
            Patient.assigned_doctor_id == doctor_id
        ).scalar() or 0

    def practitioner_load(self, practitioner_id: str) -> int:
        return self.db.query(func.count(Patient.id)).filter(
            Patient.assigned_practitioner_id == practitioner_id
        ).scalar() or 0

    def doctors_with_load(self) -> list[tuple[User, int]]:
        return [(d, self.doctor_load(d.id)) for d in self.enabled_staff(Role.DOCTOR)]

    def practitioners_with_load(self) -> list[tuple[User, int]]:
        return [(p, self.practitioner_load(p.id)) for p in self.enabled_staff(Role.PRACTITIONER)]

    # ─── Assignment ──────────────────────────────────────────────────

    def assign_doctor_by_load(self, is_emergency: bool = False) -> User:
        """Pick the doctor for a new patient.

        Emergencies go to the first enabled doctor in enumeration order, a
        stand-in for a real seniority ranking. Otherwise the least-loaded
        doctor wins, ties going to the earlier one.

        Raises:
            UnavailableError: no enabled doctors.
        """
        doctors = self.enabled_staff(Role.DOCTOR)
        if not doctors:
            raise UnavailableError("No available doctors")

        if is_emergency:
            return doctors[0]

        # min() keeps the first of equal loads
        doctor, _ = min(((d, self.doctor_load(d.id)) for d in doctors), key=lambda pair: pair[1])
        return doctor

    def auto_assign_on_leave(
        self,
        leave_user_id: str,
        available_practitioner_ids: Optional[Iterable[str]] = None,
    ) -> dict:
        """Move every patient of a practitioner going on leave to other practitioners.

        Each patient goes to the currently least-loaded candidate; loads are
        recomputed after every move, so a batch spreads across the pool. The
        whole batch commits or rolls back as one unit.

        Args:
            leave_user_id: Practitioner whose patients are moved.
            available_practitioner_ids: Optional restriction of the candidate pool.

        Returns:
            {"reassigned": [{"patient_id", "old_practitioner_id", "new_practitioner_id"}]}

        Raises:
            UnavailableError: patients need moving but no candidate exists.
        """
        allowed = set(available_practitioner_ids) if available_practitioner_ids is not None else None
        reassigned = []

        with self.audit.transaction(self.db):
            affected = (
                self.db.query(Patient)
                .filter(Patient.assigned_practitioner_id == leave_user_id)
                .order_by(Patient.created_at.asc(), Patient.id.asc())
                .all()
            )
            if not affected:
                return {"reassigned": []}

            candidates = [
                p for p in self.enabled_staff(Role.PRACTITIONER)
                if p.id != leave_user_id and (allowed is None or p.id in allowed)
            ]
            if not candidates:
                raise UnavailableError("No available practitioners for reassignment")

            for patient in affected:
                chosen, _ = min(
                    ((c, self.practitioner_load(c.id)) for c in candidates),
                    key=lambda pair: pair[1],
                )
                patient.assigned_practitioner_id = chosen.id
                self.db.flush()

                self.audit.append(
                    self.db, "SYSTEM", Role.SYSTEM, "PRAC_REASSIGNED", patient.id,
                    f"Reassigned practitioner {leave_user_id} -> {chosen.id} due to leave",
                )
                reassigned.append({
                    "patient_id": patient.id,
                    "old_practitioner_id": leave_user_id,
                    "new_practitioner_id": chosen.id,
                })

        logger.info("Reassigned %s patients away from %s", len(reassigned), leave_user_id)
        return {"reassigned": reassigned}

    # ─── Rosters ─────────────────────────────────────────────────────

    def get_on_call_roster(self, on_date: Optional[date] = None) -> dict:
        """Enabled staff not on approved leave on ``on_date``, with current load."""
        on_date = on_date or utcnow().date()
        leaves = LeaveService(self.db, self.audit)

        return {
            "date": on_date,
            "available_doctors": [
                (d, load) for d, load in self.doctors_with_load()
                if not leaves.is_user_on_leave(d.id, on_date)
            ],
            "available_practitioners": [
                (p, load) for p, load in self.practitioners_with_load()
                if not leaves.is_user_on_leave(p.id, on_date)
            ],
        }

    def get_practitioner_availability(self, start_date: date, end_date: date) -> list[dict]:
        """Per-practitioner availability over an inclusive date range."""
        if end_date < start_date:
            raise ValidationFailedError("end_date must not be before start_date")

        leaves = LeaveService(self.db, self.audit)
        result = []
        for practitioner in self.enabled_staff(Role.PRACTITIONER):
            conflicts = leaves.conflicting_leaves(practitioner.id, start_date, end_date)
            result.append({
                "practitioner_id": practitioner.id,
                "name": practitioner.name,
                "available": not conflicts,
                "conflicting_leaves": [
                    {"leave_id": l.id, "from_date": l.from_date, "to_date": l.to_date}
                    for l in conflicts
                ],
            })
        return result
