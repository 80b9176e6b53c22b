from app.services.audit_service import AuditLog
from app.services.progress_engine import ProgressEngine
from app.services.assignment_engine import AssignmentEngine
from app.services.leave_service import LeaveService
from app.services.patient_service import PatientService
from app.services.user_service import UserService
from app.services.notification_service import NotificationService

__all__ = [
    "AuditLog", "ProgressEngine", "AssignmentEngine", "LeaveService",
    "PatientService", "UserService", "NotificationService",
]
