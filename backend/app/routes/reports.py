from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import require_role
from app.models.user import User, Role
from app.schemas.schemas import ClinicMetricsResponse
from app.services.report_service import ReportService

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.get("/clinic-metrics", response_model=ClinicMetricsResponse)
def clinic_metrics(admin: User = Depends(require_role(Role.ADMIN)), db: Session = Depends(get_db)):
    """Clinic-wide KPIs: patients, therapies, sessions, staff load, rooms, complaints."""
    return ClinicMetricsResponse(**ReportService(db).clinic_metrics())
