from app.models.user import User, Role
from app.models.patient import Patient
from app.models.therapy import Therapy, TherapyStatus
from app.models.session import TherapySession
from app.models.leave import Leave, LeaveStatus
from app.models.notification import Notification
from app.models.audit import AuditLogEntry

__all__ = [
    "User", "Role", "Patient", "Therapy", "TherapyStatus", "TherapySession",
    "Leave", "LeaveStatus", "Notification", "AuditLogEntry",
]
