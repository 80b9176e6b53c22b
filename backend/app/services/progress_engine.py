"""
Progress Engine — Therapy lifecycle and session-driven progress.

A therapy's status and progress_percent are derived from its recorded
sessions: the first session moves it from SCHEDULED to ONGOING, and an
average of 100 or more completes it. CANCELLED is only reachable through an
explicit cancel.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from app.exceptions import InvalidTransitionError, NotFoundError, ValidationFailedError
from app.models.patient import Patient
from app.models.session import TherapySession
from app.models.therapy import Therapy, TherapyStatus
from app.models.user import User, Role
from app.services.audit_service import AuditLog
from app.services.notification_service import NotificationService
from app.services.user_service import get_active_staff
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


def average_progress(values: Iterable[Optional[int]]) -> int:
    """Mean of progress values rounded half up; missing values count as 0."""
    values = [v or 0 for v in values]
    if not values:
        return 0
    total, count = sum(values), len(values)
    return (2 * total + count) // (2 * count)


class ProgressEngine:
    """Keeps each Therapy's status and progress in step with its sessions."""

    def __init__(self, db: Session, audit: AuditLog):
        self.db = db
        self.audit = audit

    # ─── Lookups ─────────────────────────────────────────────────────

    def get_therapy(self, therapy_id: str) -> Therapy:
        therapy = self.db.get(Therapy, therapy_id)
        if not therapy:
            raise NotFoundError("Therapy not found")
        return therapy

    def get_therapy_sessions(self, therapy_id: str) -> list[TherapySession]:
        self.get_therapy(therapy_id)
        return (
            self.db.query(TherapySession)
            .filter(TherapySession.therapy_id == therapy_id)
            .order_by(TherapySession.created_at.asc())
            .all()
        )

    def get_patient_therapies(self, patient_id: str) -> list[Therapy]:
        return (
            self.db.query(Therapy)
            .filter(Therapy.patient_id == patient_id)
            .order_by(Therapy.created_at.asc())
            .all()
        )

    def get_patient_progress(self, patient_id: str) -> dict:
        """Per-therapy session averages plus the patient's overall average."""
        patient = self.db.get(Patient, patient_id)
        if not patient:
            raise NotFoundError("Patient not found")

        therapies = []
        for therapy in self.get_patient_therapies(patient_id):
            sessions = self.get_therapy_sessions(therapy.id)
            therapies.append({
                "therapy": therapy,
                "sessions": sessions,
                "session_count": len(sessions),
                "avg_progress": average_progress(s.progress_percent for s in sessions),
            })

        return {
            "patient": patient,
            "therapies": therapies,
            "overall_progress": average_progress(t["avg_progress"] for t in therapies),
        }

    def get_patient_profile(self, patient_id: str) -> dict:
        """Progress summary plus the patient's assigned doctor and practitioner (or None)."""
        progress = self.get_patient_progress(patient_id)
        patient = progress["patient"]
        progress["assigned_doctor"] = self.db.get(User, patient.assigned_doctor_id) if patient.assigned_doctor_id else None
        progress["assigned_practitioner"] = (
            self.db.get(User, patient.assigned_practitioner_id) if patient.assigned_practitioner_id else None
        )
        return progress

    def get_therapy_calendar(self, patient_id: str) -> dict:
        """Calendar view of a patient's therapies.

        Each therapy becomes one event spanning its start date to its end
        date, or to start + duration_days while it is still running. Therapies
        without a start date begin on the day they were created. Sessions are
        returned in date order across all therapies.
        """
        therapies = self.get_patient_therapies(patient_id)
        events = []
        for therapy in therapies:
            start = therapy.start_date or therapy.created_at.date()
            if therapy.end_date:
                end = therapy.end_date.date()
            else:
                end = start + timedelta(days=therapy.duration_days or 0)
            events.append({
                "id": therapy.id,
                "title": therapy.type,
                "start_date": start,
                "end_date": end,
                "description": f"{therapy.type} therapy - Room {therapy.room or 'TBD'}",
                "location": therapy.room,
                "status": therapy.status,
            })

        sessions = (
            self.db.query(TherapySession)
            .filter(TherapySession.patient_id == patient_id)
            .order_by(TherapySession.date.asc())
            .all()
        )
        return {"therapies": therapies, "events": events, "sessions": sessions}

    # ─── Lifecycle ───────────────────────────────────────────────────

    def create_therapy(self, data: Dict, doctor_id: str) -> Therapy:
        """Doctor assigns a therapy plan. Starts SCHEDULED at 0%."""
        with self.audit.transaction(self.db):
            patient = self.db.get(Patient, data["patient_id"])
            if not patient:
                raise NotFoundError("Patient not found")

            practitioner_id = data.get("primary_practitioner_id") or patient.assigned_practitioner_id
            if practitioner_id:
                get_active_staff(self.db, practitioner_id, Role.PRACTITIONER)
                if not patient.assigned_practitioner_id:
                    patient.assigned_practitioner_id = practitioner_id

            therapy = Therapy(
                patient_id=patient.id,
                doctor_id=doctor_id,
                primary_practitioner_id=practitioner_id,
                type=data["type"],
                phase=data.get("phase"),
                start_date=data.get("start_date"),
                duration_days=data.get("duration_days"),
                room=data.get("room"),
                herbs=list(data.get("herbs") or []),
                notes=data.get("notes") or "",
                status=TherapyStatus.SCHEDULED,
                progress_percent=0,
                created_at=utcnow(),
            )
            self.db.add(therapy)
            self.db.flush()

            if patient.user_id:
                NotificationService(self.db).notify_therapy_assigned(
                    patient.user_id, therapy.type, therapy.room, therapy.id,
                )

            self.audit.append(
                self.db, doctor_id, Role.DOCTOR, "THERAPY_ASSIGNED", therapy.id,
                f"Assigned {therapy.type} therapy to patient {patient.id}",
            )
        return therapy

    def record_session(self, therapy_id: str, session_data: Dict, practitioner_id: str) -> TherapySession:
        """Record a practitioner visit and re-derive the therapy's progress.

        Args:
            therapy_id: Therapy the session belongs to.
            session_data: date, notes, progress_percent, attended, vitals,
                attachments, symptoms (all optional).
            practitioner_id: Practitioner recording the visit.

        Returns:
            The created TherapySession.

        Raises:
            NotFoundError: unknown therapy; nothing is written.
            InvalidTransitionError: the therapy was cancelled.
            ValidationFailedError: progress outside 0-100.
        """
        with self.audit.transaction(self.db):
            therapy = self.get_therapy(therapy_id)
            if therapy.status == TherapyStatus.CANCELLED:
                raise InvalidTransitionError("Cannot record a session on a cancelled therapy")

            progress = session_data.get("progress_percent") or 0
            if not 0 <= progress <= 100:
                raise ValidationFailedError("progress_percent must be between 0 and 100")

            attended = session_data.get("attended")
            session = TherapySession(
                therapy_id=therapy.id,
                patient_id=therapy.patient_id,
                practitioner_id=practitioner_id,
                date=session_data.get("date") or utcnow(),
                notes=session_data.get("notes") or "",
                progress_percent=progress,
                attended=attended is not False,
                vitals=dict(session_data.get("vitals") or {}),
                attachments=list(session_data.get("attachments") or []),
                symptoms=list(session_data.get("symptoms") or []),
                created_at=utcnow(),
            )
            self.db.add(session)
            self.db.flush()

            # Every session counts, attended or not
            all_progress = [
                value for (value,) in self.db.query(TherapySession.progress_percent)
                .filter(TherapySession.therapy_id == therapy.id)
            ]
            avg = average_progress(all_progress)

            previous_status = therapy.status
            if therapy.status == TherapyStatus.SCHEDULED:
                therapy.status = TherapyStatus.ONGOING
            if avg >= 100 and therapy.status != TherapyStatus.COMPLETED:
                therapy.status = TherapyStatus.COMPLETED
                therapy.end_date = utcnow()
            therapy.progress_percent = avg

            self.audit.append(
                self.db, practitioner_id, Role.PRACTITIONER, "SESSION_RECORDED", therapy.id,
                f"Recorded session {session.id} for patient {therapy.patient_id}: "
                f"progress {avg}%, status {therapy.status}",
            )

        if previous_status != therapy.status:
            logger.info("Therapy %s: %s -> %s", therapy.id, previous_status, therapy.status)
        return session

    def complete_therapy(self, therapy_id: str, completed_by: str) -> Therapy:
        """Doctor closes a therapy before sessions reach 100%."""
        with self.audit.transaction(self.db):
            therapy = self.get_therapy(therapy_id)
            if therapy.status not in TherapyStatus.CANCELLABLE:
                raise InvalidTransitionError(f"Cannot complete a {therapy.status} therapy")

            therapy.status = TherapyStatus.COMPLETED
            therapy.end_date = utcnow()

            patient = self.db.get(Patient, therapy.patient_id)
            if patient and patient.user_id:
                NotificationService(self.db).notify_therapy_completed(patient.user_id, therapy.type, therapy.id)

            self.audit.append(
                self.db, completed_by, Role.DOCTOR, "THERAPY_COMPLETED", therapy_id, "Completed therapy",
            )
        return therapy

    def update_therapy(self, therapy_id: str, updates: Dict, updated_by: str) -> Therapy:
        """Doctor edits the plan: phase, room, notes or primary practitioner.

        Status and progress are never edited here; they follow the sessions.
        """
        with self.audit.transaction(self.db):
            therapy = self.get_therapy(therapy_id)
            practitioner_id = updates.get("primary_practitioner_id")
            if practitioner_id:
                get_active_staff(self.db, practitioner_id, Role.PRACTITIONER)

            changed = []
            for key in ("phase", "room", "notes", "primary_practitioner_id"):
                if updates.get(key) is not None:
                    setattr(therapy, key, updates[key])
                    changed.append(key)
            self.audit.append(
                self.db, updated_by, Role.DOCTOR, "THERAPY_UPDATED", therapy_id,
                f"Updated therapy: {', '.join(changed) or 'no fields'}",
            )
        return therapy

    def cancel_therapy(self, therapy_id: str, cancelled_by: str, role: str, reason: str = "") -> Therapy:
        with self.audit.transaction(self.db):
            therapy = self.get_therapy(therapy_id)
            if therapy.status not in TherapyStatus.CANCELLABLE:
                raise InvalidTransitionError(f"Cannot cancel a {therapy.status} therapy")

            therapy.status = TherapyStatus.CANCELLED
            self.audit.append(
                self.db, cancelled_by, role, "THERAPY_CANCELLED", therapy_id,
                f"Cancelled therapy{': ' + reason if reason else ''}",
            )
        return therapy

    def reassign_practitioner(self, therapy_id: str, new_practitioner_id: str, reassigned_by: str, role: str) -> Therapy:
        with self.audit.transaction(self.db):
            therapy = self.get_therapy(therapy_id)
            get_active_staff(self.db, new_practitioner_id, Role.PRACTITIONER)

            old = therapy.primary_practitioner_id
            therapy.primary_practitioner_id = new_practitioner_id
            self.audit.append(
                self.db, reassigned_by, role, "THERAPY_PRACTITIONER_REASSIGNED", therapy_id,
                f"Reassigned practitioner {old} -> {new_practitioner_id}",
            )
        return therapy

    def send_reminder(self, therapy_id: str, when: datetime) -> Optional[str]:
        """Remind the patient of an upcoming session; returns the notification id."""
        therapy = self.get_therapy(therapy_id)
        patient = self.db.get(Patient, therapy.patient_id)
        if not patient or not patient.user_id:
            return None

        notification = NotificationService(self.db).send_therapy_reminder(
            patient.user_id, therapy.id, when.strftime("%Y-%m-%d %H:%M"), therapy.room,
        )
        self.db.commit()
        return notification.id
