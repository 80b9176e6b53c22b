"""
Reception-side patient operations.
"""
import pytest

from app.exceptions import ConflictError, NotFoundError, UnavailableError, ValidationFailedError
from app.models.audit import AuditLogEntry
from app.models.patient import Patient
from app.models.user import Role, User
from app.services.patient_service import PatientService
from app.services.user_service import UserService
from app.utils.security import verify_password
from app.utils.validators import validate_abha, validate_email, validate_phone

DESK_ID = "u_desk"


@pytest.fixture
def service(db, audit):
    return PatientService(db, audit)


class TestRegisterPatient:

    def test_creates_patient_doctor_and_login_together(self, db, service, make_user):
        doctor = make_user("doc1", Role.DOCTOR)

        result = service.register_patient({"name": "Meera", "phone": "+91 98765 43210"}, DESK_ID)

        patient = result["patient"]
        assert patient.assigned_doctor_id == doctor.id
        assert patient.dosha == "Tridosha"
        assert patient.registration_type == "NEW"

        account = db.get(User, patient.user_id)
        assert account.role == Role.PATIENT
        assert account.username == result["username"]
        assert verify_password(result["password"], account.password_hash)

        entries = (
            db.query(AuditLogEntry)
            .filter(AuditLogEntry.resource_id == patient.id)
            .order_by(AuditLogEntry.seq.asc())
        )
        actions = [e.action for e in entries]
        assert actions == ["PATIENT_CREATED", "DOCTOR_ASSIGNED", "PATIENT_CREDENTIALS_GENERATED"]

    def test_no_doctor_means_nothing_is_created(self, db, service):
        with pytest.raises(UnavailableError):
            service.register_patient({"name": "Meera"}, DESK_ID)

        assert db.query(Patient).count() == 0
        assert db.query(User).filter(User.role == Role.PATIENT).count() == 0
        assert db.query(AuditLogEntry).count() == 0

    def test_emergency_goes_to_first_doctor(self, service, make_user, make_patient):
        first = make_user("doc1", Role.DOCTOR)
        make_user("doc2", Role.DOCTOR)
        make_patient(doctor=first)

        result = service.register_patient({"name": "Urgent", "is_emergency": True}, DESK_ID)
        assert result["assigned_doctor"].id == first.id

    def test_malformed_phone_is_rejected(self, service, make_user):
        make_user("doc1", Role.DOCTOR)
        with pytest.raises(ValidationFailedError):
            service.register_patient({"name": "Meera", "phone": "12345"}, DESK_ID)


class TestPatientUpdates:

    def test_update_only_touches_given_fields(self, service, make_patient):
        patient = make_patient("Meera", phone="9876543210")
        updated = service.update_patient(patient.id, {"dosha": "Pitta", "phone": None}, DESK_ID, Role.RECEPTION)

        assert updated.dosha == "Pitta"
        assert updated.phone == "9876543210"

    def test_assign_doctor_requires_enabled_doctor(self, service, make_user, make_patient):
        disabled = make_user("doc1", Role.DOCTOR, enabled=False)
        patient = make_patient()
        with pytest.raises(ValidationFailedError):
            service.assign_doctor(patient.id, disabled.id, DESK_ID, Role.RECEPTION)

    def test_assign_doctor_rejects_non_doctor(self, service, make_user, make_patient):
        practitioner = make_user("prac1", Role.PRACTITIONER)
        patient = make_patient()
        with pytest.raises(NotFoundError):
            service.assign_doctor(patient.id, practitioner.id, DESK_ID, Role.RECEPTION)

    def test_check_in_stamps_visit(self, service, make_patient):
        patient = service.check_in(make_patient().id, DESK_ID)
        assert patient.checked_in_at is not None
        assert patient.visit_token.startswith("VISIT_")

    def test_waiting_list_puts_emergencies_first(self, service, make_user, make_patient):
        doctor = make_user("doc1", Role.DOCTOR)
        routine = make_patient("Routine")
        urgent = make_patient("Urgent", is_emergency=True)
        make_patient("Seen", doctor=doctor)

        assert [p.id for p in service.waiting_list()] == [urgent.id, routine.id]

    def test_search_matches_name_or_phone(self, service, make_patient):
        meera = make_patient("Meera Nair", phone="9876543210")
        make_patient("Kiran Rao", phone="9123456780")

        assert [p.id for p in service.list_patients(search="meera")] == [meera.id]
        assert [p.id for p in service.list_patients(search="98765")] == [meera.id]

    def test_reception_dashboard(self, service, make_user, make_patient):
        doctor = make_user("doc1", Role.DOCTOR)
        make_patient("Seen", doctor=doctor)
        urgent = make_patient("Urgent", is_emergency=True)
        routine = make_patient("Routine")
        service.check_in(routine.id, DESK_ID)

        stats = service.reception_dashboard()
        assert stats["total_patients"] == 3
        assert stats["waiting_patients"] == 2
        assert stats["checked_in_today"] == 1
        assert stats["emergency_cases"] == 1
        assert [p.id for p in stats["waiting_list"]] == [urgent.id, routine.id]


class TestPatientSignup:

    SIGNUP = {"username": "asha", "password": "secret123", "name": "Asha", "phone": "9876543210", "dosha": "Vata"}

    def test_creates_linked_login_and_profile(self, db, audit):
        user, patient = UserService(db, audit).signup_patient(dict(self.SIGNUP))

        assert user.role == Role.PATIENT
        assert user.contact == "9876543210"
        assert patient.user_id == user.id
        assert patient.dosha == "Vata"
        assert patient.registration_type == "NEW"

        entries = db.query(AuditLogEntry).order_by(AuditLogEntry.seq.asc()).all()
        assert [e.action for e in entries] == ["PATIENT_CREATED", "PATIENT_SIGNUP"]
        assert (entries[1].user_id, entries[1].user_role, entries[1].resource_id) == (user.id, Role.PATIENT, patient.id)

    def test_taken_username_creates_nothing(self, db, audit, make_user):
        make_user("asha", Role.DOCTOR)
        entries_before = db.query(AuditLogEntry).count()

        with pytest.raises(ConflictError):
            UserService(db, audit).signup_patient(dict(self.SIGNUP))

        assert db.query(Patient).count() == 0
        assert db.query(AuditLogEntry).count() == entries_before

    def test_malformed_email_is_rejected(self, db, audit):
        with pytest.raises(ValidationFailedError):
            UserService(db, audit).signup_patient({**self.SIGNUP, "email": "asha@"})
        assert db.query(User).filter(User.role == Role.PATIENT).count() == 0


@pytest.mark.parametrize("value,expected", [
    ("91-1234-5678-9012", True),
    ("91123456789012", True),
    ("1234", False),
    (None, False),
])
def test_validate_abha(value, expected):
    assert validate_abha(value) is expected


@pytest.mark.parametrize("value,expected", [
    ("9876543210", True),
    ("+91 98765 43210", True),
    ("5876543210", False),
    ("98765", False),
])
def test_validate_phone(value, expected):
    assert validate_phone(value) is expected


def test_validate_email():
    assert validate_email("meera@example.in")
    assert not validate_email("meera@")
