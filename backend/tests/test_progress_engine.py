"""
Therapy lifecycle driven by recorded sessions.
"""
from datetime import date, datetime

import pytest

from app.exceptions import InvalidTransitionError, NotFoundError, ValidationFailedError
from app.models.audit import AuditLogEntry
from app.models.notification import Notification
from app.models.session import TherapySession
from app.models.therapy import TherapyStatus
from app.models.user import Role
from app.services.progress_engine import ProgressEngine, average_progress


@pytest.fixture
def engine(db, audit):
    return ProgressEngine(db, audit)


@pytest.fixture
def staff(make_user):
    return {
        "doctor": make_user("doc1", Role.DOCTOR),
        "practitioner": make_user("prac1", Role.PRACTITIONER),
    }


@pytest.fixture
def therapy(engine, staff, make_patient):
    patient = make_patient("Asha", doctor=staff["doctor"], practitioner=staff["practitioner"])
    return engine.create_therapy({"patient_id": patient.id, "type": "Basti", "room": "R2"}, staff["doctor"].id)


def _record(engine, therapy, practitioner, *values, **extra):
    for value in values:
        engine.record_session(therapy.id, {"progress_percent": value, **extra}, practitioner.id)
    return engine.get_therapy(therapy.id)


class TestAverageProgress:

    def test_empty_is_zero(self):
        assert average_progress([]) == 0

    def test_rounds_half_up(self):
        assert average_progress([0, 1]) == 1
        assert average_progress([10, 20, 21]) == 17

    def test_missing_values_count_as_zero(self):
        assert average_progress([None, 50]) == 25


class TestCreateTherapy:

    def test_starts_scheduled_at_zero(self, therapy, staff):
        assert therapy.status == TherapyStatus.SCHEDULED
        assert therapy.progress_percent == 0
        assert therapy.doctor_id == staff["doctor"].id
        assert therapy.primary_practitioner_id == staff["practitioner"].id

    def test_is_audited(self, db, therapy):
        entry = db.query(AuditLogEntry).filter(AuditLogEntry.action == "THERAPY_ASSIGNED").one()
        assert entry.resource_id == therapy.id

    def test_notifies_linked_patient_account(self, db, engine, staff, make_user, make_patient):
        account = make_user("pat_ravi", Role.PATIENT)
        patient = make_patient("Ravi", user_id=account.id)
        engine.create_therapy({"patient_id": patient.id, "type": "Nasya"}, staff["doctor"].id)

        notification = db.query(Notification).one()
        assert notification.user_id == patient.user_id
        assert notification.type == "THERAPY_ASSIGNED"

    def test_unknown_patient(self, engine, staff):
        with pytest.raises(NotFoundError):
            engine.create_therapy({"patient_id": "p_missing", "type": "Basti"}, staff["doctor"].id)


class TestRecordSession:

    def test_single_full_session_completes(self, engine, therapy, staff):
        result = _record(engine, therapy, staff["practitioner"], 100)

        assert result.status == TherapyStatus.COMPLETED
        assert result.progress_percent == 100
        assert result.end_date is not None

    def test_first_session_moves_to_ongoing(self, engine, therapy, staff):
        result = _record(engine, therapy, staff["practitioner"], 10)

        assert result.status == TherapyStatus.ONGOING
        assert result.progress_percent == 10
        assert result.end_date is None

    def test_progress_is_mean_of_all_sessions(self, engine, therapy, staff):
        result = _record(engine, therapy, staff["practitioner"], 40, 70, 100)

        assert result.progress_percent == 70
        assert result.status == TherapyStatus.ONGOING
        assert len(result.session_ids) == 3

    def test_completed_therapy_stays_completed(self, engine, therapy, staff):
        completed = _record(engine, therapy, staff["practitioner"], 100)
        end_date = completed.end_date

        result = _record(engine, therapy, staff["practitioner"], 0)

        assert result.status == TherapyStatus.COMPLETED
        assert result.progress_percent == 50
        assert result.end_date == end_date

    def test_missed_sessions_pull_the_average_down(self, engine, therapy, staff):
        _record(engine, therapy, staff["practitioner"], 80)
        result = _record(engine, therapy, staff["practitioner"], 0, attended=False)

        assert result.progress_percent == 40

    def test_session_fields_are_stored(self, db, engine, therapy, staff):
        session = engine.record_session(
            therapy.id,
            {"progress_percent": 30, "notes": "Calm", "vitals": {"pulse": 72}, "symptoms": ["fatigue"]},
            staff["practitioner"].id,
        )

        assert session.patient_id == therapy.patient_id
        assert session.practitioner_id == staff["practitioner"].id
        assert session.vitals == {"pulse": 72}
        assert session.symptoms == ["fatigue"]
        assert session.attended is True

    def test_one_audit_entry_per_session(self, db, engine, therapy, staff):
        _record(engine, therapy, staff["practitioner"], 20, 40)

        entries = db.query(AuditLogEntry).filter(AuditLogEntry.action == "SESSION_RECORDED").all()
        assert len(entries) == 2
        assert all(e.user_id == staff["practitioner"].id for e in entries)

    def test_unknown_therapy_has_no_side_effects(self, db, engine, staff):
        before = db.query(AuditLogEntry).count()

        with pytest.raises(NotFoundError):
            engine.record_session("t_missing", {"progress_percent": 50}, staff["practitioner"].id)

        assert db.query(TherapySession).count() == 0
        assert db.query(AuditLogEntry).count() == before

    def test_out_of_range_progress_is_rejected(self, db, engine, therapy, staff):
        with pytest.raises(ValidationFailedError):
            engine.record_session(therapy.id, {"progress_percent": 120}, staff["practitioner"].id)

        assert db.query(TherapySession).count() == 0
        assert engine.get_therapy(therapy.id).status == TherapyStatus.SCHEDULED

    def test_cancelled_therapy_rejects_sessions(self, engine, therapy, staff):
        engine.cancel_therapy(therapy.id, staff["doctor"].id, Role.DOCTOR, "Patient travelling")

        with pytest.raises(InvalidTransitionError):
            engine.record_session(therapy.id, {"progress_percent": 50}, staff["practitioner"].id)


class TestExplicitTransitions:

    def test_cancel_from_ongoing(self, engine, therapy, staff):
        _record(engine, therapy, staff["practitioner"], 10)
        result = engine.cancel_therapy(therapy.id, staff["doctor"].id, Role.DOCTOR)
        assert result.status == TherapyStatus.CANCELLED

    def test_cannot_cancel_completed(self, engine, therapy, staff):
        _record(engine, therapy, staff["practitioner"], 100)
        with pytest.raises(InvalidTransitionError):
            engine.cancel_therapy(therapy.id, staff["doctor"].id, Role.DOCTOR)

    def test_doctor_can_complete_early(self, engine, therapy, staff):
        _record(engine, therapy, staff["practitioner"], 60)
        result = engine.complete_therapy(therapy.id, staff["doctor"].id)

        assert result.status == TherapyStatus.COMPLETED
        assert result.progress_percent == 60
        assert result.end_date is not None

    def test_reassign_practitioner(self, engine, therapy, make_user, staff):
        other = make_user("prac2", Role.PRACTITIONER)
        result = engine.reassign_practitioner(therapy.id, other.id, staff["doctor"].id, Role.DOCTOR)
        assert result.primary_practitioner_id == other.id

    def test_reassign_to_disabled_practitioner_fails(self, engine, therapy, make_user, staff):
        other = make_user("prac2", Role.PRACTITIONER, enabled=False)
        with pytest.raises(ValidationFailedError):
            engine.reassign_practitioner(therapy.id, other.id, staff["doctor"].id, Role.DOCTOR)

    def test_completion_notifies_linked_patient(self, db, engine, staff, make_user, make_patient):
        account = make_user("pat_ravi", Role.PATIENT)
        patient = make_patient("Ravi", user_id=account.id)
        therapy = engine.create_therapy({"patient_id": patient.id, "type": "Nasya"}, staff["doctor"].id)
        engine.complete_therapy(therapy.id, staff["doctor"].id)

        types = sorted(n.type for n in db.query(Notification).filter(Notification.user_id == account.id))
        assert types == ["THERAPY_ASSIGNED", "THERAPY_COMPLETED"]


class TestUpdateTherapy:

    def test_only_given_plan_fields_change(self, engine, therapy, staff):
        result = engine.update_therapy(therapy.id, {"room": "R5", "phase": "PRADHANAKARMA", "notes": None}, staff["doctor"].id)

        assert result.room == "R5"
        assert result.phase == "PRADHANAKARMA"
        assert result.notes == ""
        assert result.status == TherapyStatus.SCHEDULED

    def test_is_audited(self, db, engine, therapy, staff):
        engine.update_therapy(therapy.id, {"notes": "Increase oil dose"}, staff["doctor"].id)
        entry = db.query(AuditLogEntry).filter(AuditLogEntry.action == "THERAPY_UPDATED").one()
        assert entry.resource_id == therapy.id
        assert entry.details == "Updated therapy: notes"

    def test_new_practitioner_must_be_enabled(self, engine, therapy, make_user, staff):
        other = make_user("prac2", Role.PRACTITIONER, enabled=False)
        with pytest.raises(ValidationFailedError):
            engine.update_therapy(therapy.id, {"primary_practitioner_id": other.id}, staff["doctor"].id)
        assert engine.get_therapy(therapy.id).primary_practitioner_id == staff["practitioner"].id

    def test_unknown_therapy(self, engine, staff):
        with pytest.raises(NotFoundError):
            engine.update_therapy("t_missing", {"room": "R1"}, staff["doctor"].id)


class TestTherapyCalendar:

    def test_event_spans_planned_duration(self, engine, staff, make_patient):
        patient = make_patient("Asha")
        engine.create_therapy(
            {"patient_id": patient.id, "type": "Basti", "room": "R2", "start_date": date(2026, 5, 1), "duration_days": 7},
            staff["doctor"].id,
        )

        event = engine.get_therapy_calendar(patient.id)["events"][0]
        assert event["title"] == "Basti"
        assert event["start_date"] == date(2026, 5, 1)
        assert event["end_date"] == date(2026, 5, 8)
        assert event["description"] == "Basti therapy - Room R2"
        assert event["location"] == "R2"

    def test_completed_therapy_ends_on_completion_day(self, engine, therapy, staff):
        completed = _record(engine, therapy, staff["practitioner"], 100)
        event = engine.get_therapy_calendar(therapy.patient_id)["events"][0]
        assert event["end_date"] == completed.end_date.date()

    def test_sessions_are_in_date_order(self, engine, therapy, staff):
        practitioner_id = staff["practitioner"].id
        engine.record_session(therapy.id, {"progress_percent": 10, "date": datetime(2026, 5, 3, 9)}, practitioner_id)
        engine.record_session(therapy.id, {"progress_percent": 20, "date": datetime(2026, 5, 1, 9)}, practitioner_id)

        sessions = engine.get_therapy_calendar(therapy.patient_id)["sessions"]
        assert [s.progress_percent for s in sessions] == [20, 10]


def test_patient_progress_summary(engine, therapy, staff):
    _record(engine, therapy, staff["practitioner"], 40, 60)
    second = engine.create_therapy({"patient_id": therapy.patient_id, "type": "Nasya"}, staff["doctor"].id)
    _record(engine, second, staff["practitioner"], 100)

    progress = engine.get_patient_progress(therapy.patient_id)

    assert [t["session_count"] for t in progress["therapies"]] == [2, 1]
    assert [t["avg_progress"] for t in progress["therapies"]] == [50, 100]
    assert progress["overall_progress"] == 75


def test_patient_profile_names_assigned_staff(engine, therapy, staff):
    profile = engine.get_patient_profile(therapy.patient_id)

    assert profile["assigned_doctor"].id == staff["doctor"].id
    assert profile["assigned_practitioner"].id == staff["practitioner"].id
    assert [t["therapy"].id for t in profile["therapies"]] == [therapy.id]


def test_patient_profile_without_staff(engine, make_patient):
    profile = engine.get_patient_profile(make_patient("Waiting").id)
    assert profile["assigned_doctor"] is None
    assert profile["assigned_practitioner"] is None
