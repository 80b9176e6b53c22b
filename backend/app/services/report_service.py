"""
Report Service — Clinic-wide KPIs for the admin reports page.
"""
from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.patient import Patient
from app.models.session import TherapySession
from app.models.therapy import Therapy, TherapyStatus
from app.models.user import User, Role
from app.utils.dates import isoformat_z, utcnow


def _ratio(numerator: int, denominator: int) -> int:
    """Integer quotient rounded half up; 0 when there is nothing to divide by."""
    if not denominator:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


class ReportService:
    """Read-only aggregates. Nothing here is audited."""

    TOP_COMPLAINTS = 5
    UTILIZATION_WINDOW_DAYS = 30

    def __init__(self, db: Session):
        self.db = db

    def _count(self, column, *criteria) -> int:
        return self.db.query(func.count(column)).filter(*criteria).scalar() or 0

    def _enabled_staff_count(self, role: str) -> int:
        return self._count(User.id, User.role == role, User.enabled.is_(True), User.deleted.is_(False))

    def clinic_metrics(self) -> dict:
        now = utcnow()
        today_start = datetime.combine(now.date(), datetime.min.time())
        tomorrow_start = today_start + timedelta(days=1)

        patients = self.db.query(Patient.created_at, Patient.assigned_doctor_id, Patient.assigned_practitioner_id).all()
        waits = [(now - created).total_seconds() / 60 for created, _, _ in patients if created]

        status_counts = dict(
            self.db.query(Therapy.status, func.count(Therapy.id)).group_by(Therapy.status).all()
        )
        completed = status_counts.get(TherapyStatus.COMPLETED, 0)
        fully_completed = self._count(
            Therapy.id, Therapy.status == TherapyStatus.COMPLETED, Therapy.progress_percent == 100,
        )

        total_sessions = self._count(TherapySession.id)
        complaints = Counter()
        for (symptoms,) in self.db.query(TherapySession.symptoms).order_by(TherapySession.created_at.asc()):
            complaints.update(symptoms or [])

        rooms = Counter(room for (room,) in self.db.query(Therapy.room).order_by(Therapy.created_at.asc()))

        doctors = self._enabled_staff_count(Role.DOCTOR)
        practitioners = self._enabled_staff_count(Role.PRACTITIONER)

        return {
            "timestamp": isoformat_z(now),
            "patients": {
                "total": len(patients),
                "new_today": self._count(Patient.id, Patient.created_at >= today_start),
                "avg_wait_time_minutes": round(sum(waits) / len(waits)) if waits else 0,
            },
            "therapies": {
                "total": sum(status_counts.values()),
                "ongoing": status_counts.get(TherapyStatus.ONGOING, 0),
                "completed": completed,
                "success_rate": _ratio(100 * fully_completed, completed),
            },
            "sessions": {
                "total": total_sessions,
                "today": self._count(
                    TherapySession.id, TherapySession.date >= today_start, TherapySession.date < tomorrow_start,
                ),
            },
            "staff_load": {
                "doctors": doctors,
                "avg_patients_per_doctor": _ratio(sum(1 for p in patients if p[1]), doctors),
                "practitioners": practitioners,
                "avg_patients_per_practitioner": _ratio(sum(1 for p in patients if p[2]), practitioners),
            },
            "utilization": {
                "room_utilization": {room or "Unassigned": count for room, count in rooms.items()},
                "avg_sessions_per_day": _ratio(total_sessions, self.UTILIZATION_WINDOW_DAYS),
            },
            "top_complaints": [
                {"complaint": complaint, "count": count}
                for complaint, count in complaints.most_common(self.TOP_COMPLAINTS)
            ],
        }
