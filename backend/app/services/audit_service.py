"""
Audit Service — Manages the immutable, hash-chained audit trail.
"""
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Optional, Tuple, Union

from sqlalchemy.orm import Session

from app.models.audit import AuditLogEntry
from app.utils.dates import ceil_to_millisecond, isoformat_z, to_utc_bound, utcnow
from app.utils.hashing import generate_chain_hash

logger = logging.getLogger(__name__)

DateFilter = Union[date, datetime, None]


class AuditLog:
    """Creates tamper-evident audit log entries with hash chaining.

    One instance lives for the whole process. It owns the chain tail
    (last sequence number and hash) and serializes every append behind a
    re-entrant lock, so two appends can never link to the same predecessor.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._tail: Optional[Tuple[int, str]] = None
        self._depth = 0

    @contextmanager
    def transaction(self, db: Session) -> Iterator[Session]:
        """Run one top-level action atomically with the audit entries it emits.

        The chain lock is held until the outermost block commits. On any
        failure the session is rolled back and the cached tail is dropped, so
        the next append re-reads it from storage.
        """
        with self._lock:
            self._depth += 1
            try:
                yield db
                if self._depth == 1:
                    db.commit()
            except Exception:
                if self._depth == 1:
                    db.rollback()
                    self._tail = None
                raise
            finally:
                self._depth -= 1

    def append(
        self,
        db: Session,
        user_id: str,
        user_role: str,
        action: str,
        resource_id: Optional[str] = None,
        details: str = "",
    ) -> AuditLogEntry:
        """Create an audit log entry chained to the current tail.

        Args:
            db: Database session.
            user_id: Acting user, or "SYSTEM" for automatic actions.
            user_role: Role of the acting user.
            action: Action identifier (e.g. SESSION_RECORDED, PRAC_REASSIGNED).
            resource_id: Record the action touched, if any.
            details: Human-readable description.

        Returns:
            The created AuditLogEntry.
        """
        with self.transaction(db):
            last_seq, previous_hash = self._load_tail(db)

            entry = AuditLogEntry(
                seq=last_seq + 1,
                id=str(uuid.uuid4()),
                user_id=user_id,
                user_role=user_role,
                action=action,
                resource_id=resource_id,
                details=details or "",
                timestamp=isoformat_z(utcnow()),
            )
            entry.hash = generate_chain_hash(entry.chain_fields(), previous_hash)

            db.add(entry)
            db.flush()
            self._tail = (entry.seq, entry.hash)

        logger.debug("audit #%s %s by %s/%s", entry.seq, action, user_role, user_id)
        return entry

    def query(
        self,
        db: Session,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        start_date: DateFilter = None,
        end_date: DateFilter = None,
    ) -> list[AuditLogEntry]:
        """Entries matching every supplied filter, in log order.

        Stored timestamps are whole milliseconds, so the start bound is rounded
        up and the end bound down to keep sub-millisecond bounds exact.
        """
        q = db.query(AuditLogEntry)
        if user_id:
            q = q.filter(AuditLogEntry.user_id == user_id)
        if action:
            q = q.filter(AuditLogEntry.action == action)
        if start_date is not None:
            q = q.filter(AuditLogEntry.timestamp >= isoformat_z(ceil_to_millisecond(to_utc_bound(start_date))))
        if end_date is not None:
            q = q.filter(AuditLogEntry.timestamp <= isoformat_z(to_utc_bound(end_date, end=True)))
        return q.order_by(AuditLogEntry.seq.asc()).all()

    def verify_integrity(self, db: Session) -> dict:
        """Verify the integrity of the whole audit chain.

        Each entry's hash is recomputed from its own fields and the previous
        entry's stored hash. Stops at the first mismatch.

        Returns:
            dict with 'valid' (bool), 'total_entries', and on failure
            'tampered_at' (0-based log index) and 'message'.
        """
        entries = db.query(AuditLogEntry).order_by(AuditLogEntry.seq.asc()).all()

        previous_hash = ""
        for index, entry in enumerate(entries):
            expected = generate_chain_hash(entry.chain_fields(), previous_hash)
            if entry.hash != expected:
                logger.warning("Audit chain broken at index %s (entry %s)", index, entry.id)
                return {
                    "valid": False,
                    "total_entries": len(entries),
                    "tampered_at": index,
                    "message": f"Log tampering detected at index {index}",
                }
            previous_hash = entry.hash

        return {"valid": True, "total_entries": len(entries), "tampered_at": None, "message": None}

    def reset(self, db: Session) -> int:
        """Truncate the log. Maintenance only; never reached from request handling."""
        with self._lock:
            removed = db.query(AuditLogEntry).delete()
            db.commit()
            self._tail = (0, "")
        logger.warning("Audit log reset, %s entries removed", removed)
        return removed

    def _load_tail(self, db: Session) -> Tuple[int, str]:
        if self._tail is None:
            last = db.query(AuditLogEntry).order_by(AuditLogEntry.seq.desc()).first()
            self._tail = (last.seq, last.hash) if last else (0, "")
        return self._tail
