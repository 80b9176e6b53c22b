from app.routes.auth import router as auth_router
from app.routes.admin import router as admin_router
from app.routes.doctor import router as doctor_router
from app.routes.practitioner import router as practitioner_router
from app.routes.reception import router as reception_router
from app.routes.patient import router as patient_router
from app.routes.notification import router as notification_router
from app.routes.reports import router as reports_router

__all__ = [
    "auth_router", "admin_router", "doctor_router", "practitioner_router",
    "reception_router", "patient_router", "notification_router", "reports_router",
]
