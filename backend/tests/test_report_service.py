"""
Clinic-wide KPIs for admin reports.
"""
import pytest

from app.models.user import Role
from app.services.progress_engine import ProgressEngine
from app.services.report_service import ReportService


@pytest.fixture
def reports(db):
    return ReportService(db)


def test_empty_clinic(reports):
    metrics = reports.clinic_metrics()

    assert metrics["patients"] == {"total": 0, "new_today": 0, "avg_wait_time_minutes": 0}
    assert metrics["therapies"]["success_rate"] == 0
    assert metrics["staff_load"]["avg_patients_per_doctor"] == 0
    assert metrics["utilization"] == {"room_utilization": {}, "avg_sessions_per_day": 0}
    assert metrics["top_complaints"] == []
    assert metrics["timestamp"].endswith("Z")


def test_clinic_metrics(db, audit, reports, make_user, make_patient):
    doctor = make_user("doc1", Role.DOCTOR)
    make_user("doc2", Role.DOCTOR)
    make_user("doc3", Role.DOCTOR, enabled=False)
    practitioner = make_user("prac1", Role.PRACTITIONER)
    asha = make_patient("Asha", doctor=doctor, practitioner=practitioner)
    ravi = make_patient("Ravi", doctor=doctor)
    make_patient("Waiting")

    engine = ProgressEngine(db, audit)
    basti = engine.create_therapy({"patient_id": asha.id, "type": "Basti", "room": "R1"}, doctor.id)
    nasya = engine.create_therapy({"patient_id": ravi.id, "type": "Nasya", "room": "R1"}, doctor.id)
    engine.create_therapy({"patient_id": ravi.id, "type": "Virechana", "room": "R2"}, doctor.id)
    engine.record_session(basti.id, {"progress_percent": 100, "symptoms": ["headache", "fatigue"]}, practitioner.id)
    engine.record_session(nasya.id, {"progress_percent": 40, "symptoms": ["fatigue"]}, practitioner.id)
    engine.complete_therapy(nasya.id, doctor.id)

    metrics = reports.clinic_metrics()

    assert metrics["patients"]["total"] == 3
    assert metrics["patients"]["new_today"] == 3
    # one of the two completed therapies reached 100%
    assert metrics["therapies"] == {"total": 3, "ongoing": 0, "completed": 2, "success_rate": 50}
    assert metrics["sessions"] == {"total": 2, "today": 2}
    assert metrics["staff_load"] == {
        "doctors": 2,
        "avg_patients_per_doctor": 1,
        "practitioners": 1,
        "avg_patients_per_practitioner": 1,
    }
    assert metrics["utilization"]["room_utilization"] == {"R1": 2, "R2": 1}
    assert metrics["top_complaints"] == [
        {"complaint": "fatigue", "count": 2},
        {"complaint": "headache", "count": 1},
    ]
