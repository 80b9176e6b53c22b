"""
Hash-chained audit log: appends, integrity verification, queries.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import update

from app.models.audit import AuditLogEntry
from app.utils.dates import utcnow
from app.utils.hashing import generate_chain_hash


def _append_three(db, audit):
    return [
        audit.append(db, "u_doc", "DOCTOR", "THERAPY_ASSIGNED", "t_1", "Assigned Basti"),
        audit.append(db, "u_prac", "PRACTITIONER", "SESSION_RECORDED", "t_1", "Session 1"),
        audit.append(db, "u_doc", "DOCTOR", "THERAPY_COMPLETED", "t_1", "Completed therapy"),
    ]


def _entries(db):
    return db.query(AuditLogEntry).order_by(AuditLogEntry.seq.asc()).all()


class TestAppend:

    def test_first_entry_chains_from_empty_hash(self, db, audit):
        entry = audit.append(db, "u_1", "ADMIN", "USER_LOGIN", "u_1", "Admin logged in")

        assert entry.seq == 1
        assert entry.hash == generate_chain_hash(entry.chain_fields(), "")
        assert entry.timestamp.endswith("Z")

    def test_each_entry_links_to_its_predecessor(self, db, audit):
        first, second, third = _append_three(db, audit)

        assert [first.seq, second.seq, third.seq] == [1, 2, 3]
        assert second.hash == generate_chain_hash(second.chain_fields(), first.hash)
        assert third.hash == generate_chain_hash(third.chain_fields(), second.hash)

    def test_new_instance_continues_the_stored_chain(self, db, audit):
        from app.services.audit_service import AuditLog

        _append_three(db, audit)
        restarted = AuditLog()
        entry = restarted.append(db, "u_1", "ADMIN", "USER_LOGIN")

        assert entry.seq == 4
        assert restarted.verify_integrity(db)["valid"] is True

    def test_failed_transaction_leaves_no_entry(self, db, audit):
        audit.append(db, "u_1", "ADMIN", "USER_LOGIN")

        with pytest.raises(RuntimeError):
            with audit.transaction(db):
                audit.append(db, "u_1", "ADMIN", "PATIENT_CREATED", "p_1")
                raise RuntimeError("storage failure")

        assert len(_entries(db)) == 1
        entry = audit.append(db, "u_1", "ADMIN", "PATIENT_CREATED", "p_1")
        assert entry.seq == 2
        assert audit.verify_integrity(db)["valid"] is True


class TestVerifyIntegrity:

    def test_empty_log_is_valid(self, db, audit):
        report = audit.verify_integrity(db)
        assert report["valid"] is True
        assert report["total_entries"] == 0

    def test_untouched_chain_is_valid(self, db, audit):
        _append_three(db, audit)
        report = audit.verify_integrity(db)
        assert report == {"valid": True, "total_entries": 3, "tampered_at": None, "message": None}

    def test_edited_details_are_detected_at_their_index(self, db, audit):
        _append_three(db, audit)
        entries = _entries(db)
        entries[1].details = "Session 1 (edited)"
        db.commit()

        report = audit.verify_integrity(db)
        assert report["valid"] is False
        assert report["tampered_at"] == 1
        assert report["total_entries"] == 3
        assert "index 1" in report["message"]

    def test_edited_timestamp_is_detected(self, db, audit):
        _append_three(db, audit)
        entries = _entries(db)
        entries[0].timestamp = "2020-01-01T00:00:00.000Z"
        db.commit()

        assert audit.verify_integrity(db)["tampered_at"] == 0

    def test_swapped_field_values_are_detected(self, db, audit):
        _append_three(db, audit)
        first, second, _ = _entries(db)
        first.details, second.details = second.details, first.details
        first.action, second.action = second.action, first.action
        db.commit()

        report = audit.verify_integrity(db)
        assert report["valid"] is False
        assert report["tampered_at"] == 0

    def test_reordered_rows_are_detected(self, db, audit):
        _append_three(db, audit)
        table = AuditLogEntry.__table__
        # exchange the log positions of the first two rows
        for old, new in ((1, -1), (2, 1), (-1, 2)):
            db.execute(update(table).where(table.c.seq == old).values(seq=new))
        db.commit()
        db.expunge_all()

        assert [e.action for e in _entries(db)][:2] == ["SESSION_RECORDED", "THERAPY_ASSIGNED"]
        report = audit.verify_integrity(db)
        assert report["valid"] is False
        assert report["tampered_at"] == 0
        assert "index 0" in report["message"]


class TestQuery:

    def test_filters_by_user_and_action(self, db, audit):
        _append_three(db, audit)

        by_doctor = audit.query(db, user_id="u_doc")
        assert [e.action for e in by_doctor] == ["THERAPY_ASSIGNED", "THERAPY_COMPLETED"]

        completed = audit.query(db, user_id="u_doc", action="THERAPY_COMPLETED")
        assert len(completed) == 1

    def test_date_bounds_are_inclusive_whole_days(self, db, audit):
        _append_three(db, audit)
        today = utcnow().date()

        assert len(audit.query(db, start_date=today, end_date=today)) == 3
        assert audit.query(db, end_date=today - timedelta(days=1)) == []
        assert audit.query(db, start_date=today + timedelta(days=1)) == []

    def test_datetime_bounds(self, db, audit):
        _append_three(db, audit)
        assert len(audit.query(db, start_date=utcnow() - timedelta(minutes=5))) == 3
        assert audit.query(db, end_date=utcnow() - timedelta(minutes=5)) == []

    def test_sub_millisecond_bounds(self, db, audit):
        entry = audit.append(db, "u_1", "ADMIN", "USER_LOGIN")
        entry.timestamp = "2026-03-01T10:00:00.999Z"
        db.commit()
        halfway = datetime(2026, 3, 1, 10, 0, 0, 999500)

        assert audit.query(db, start_date=halfway) == []
        assert [e.id for e in audit.query(db, end_date=halfway)] == [entry.id]
        assert [e.id for e in audit.query(db, start_date=datetime(2026, 3, 1, 10, 0, 0, 999000))] == [entry.id]


def test_reset_truncates_and_restarts_the_chain(db, audit):
    _append_three(db, audit)

    assert audit.reset(db) == 3
    assert _entries(db) == []

    entry = audit.append(db, "u_1", "ADMIN", "USER_LOGIN")
    assert entry.seq == 1
    assert entry.hash == generate_chain_hash(entry.chain_fields(), "")
