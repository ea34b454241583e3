from __future__ import annotations

import itertools
import threading
import weakref
from dataclasses import replace
from datetime import datetime
from typing import Dict, Optional, Sequence, Tuple

from ..core.enums import AttendanceStatus, InsertOutcome, SessionState
from .model import AttendanceRecord, AttendanceSession, NewSession, OverrideInfo
from .repository import SessionRepository

RecordKey = Tuple[int, int]


class InMemorySessionRepository(SessionRepository):
    """Process-local store.

    Locking is per session for state changes and per (session, student) for
    record writes; `_guard` only protects creation of those locks and the
    dict structure, never a record write itself. Lock maps hold weak values,
    so a lock lives only while some writer holds it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._ids = itertools.count(1)
        self._sessions: Dict[int, AttendanceSession] = {}
        self._records: Dict[RecordKey, AttendanceRecord] = {}
        self._session_locks: weakref.WeakValueDictionary[int, threading.Lock] = weakref.WeakValueDictionary()
        self._record_locks: weakref.WeakValueDictionary[RecordKey, threading.Lock] = weakref.WeakValueDictionary()

    def _session_lock(self, session_id: int) -> threading.Lock:
        with self._guard:
            return self._session_locks.setdefault(session_id, threading.Lock())

    def _record_lock(self, key: RecordKey) -> threading.Lock:
        with self._guard:
            return self._record_locks.setdefault(key, threading.Lock())

    def create_session(self, new: NewSession) -> AttendanceSession:
        with self._guard:
            session_id = next(self._ids)
            session = AttendanceSession(
                session_id=session_id,
                course_id=new.course_id,
                instructor_id=new.instructor_id,
                window=new.window,
                fence=new.fence,
                state=new.state,
                roster=frozenset(new.roster),
                late_after_minutes=new.late_after_minutes,
                created_at=new.created_at,
            )
            self._sessions[session_id] = session
            return session

    def get_session(self, session_id: int) -> Optional[AttendanceSession]:
        return self._sessions.get(session_id)

    def close_session(self, session_id: int, *, closed_at: datetime) -> bool:
        with self._session_lock(session_id):
            session = self._sessions.get(session_id)
            if session is None or session.state == SessionState.CLOSED:
                return False
            self._sessions[session_id] = replace(session, state=SessionState.CLOSED, closed_at=closed_at)
            return True

    def delete_session(self, session_id: int) -> bool:
        with self._session_lock(session_id):
            with self._guard:
                removed = self._sessions.pop(session_id, None)
                for key in [k for k in tuple(self._records) if k[0] == session_id]:
                    del self._records[key]
                for key in [k for k in tuple(self._record_locks.keys()) if k[0] == session_id]:
                    self._record_locks.pop(key, None)
                self._session_locks.pop(session_id, None)
            return removed is not None

    def insert_record_if_absent(self, record: AttendanceRecord) -> InsertOutcome:
        key = (record.session_id, record.student_id)
        with self._record_lock(key):
            if key in self._records:
                return InsertOutcome.ALREADY_EXISTS
            self._records[key] = record
            return InsertOutcome.INSERTED

    def save_override(
        self,
        *,
        session_id: int,
        student_id: int,
        status: AttendanceStatus,
        override: OverrideInfo,
    ) -> AttendanceRecord:
        key = (session_id, student_id)
        with self._record_lock(key):
            current = self._records.get(key) or AttendanceRecord.implicit_absent(session_id, student_id)
            updated = replace(current, status=status, override=override)
            self._records[key] = updated
            return updated

    def get_record(self, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        return self._records.get((session_id, student_id))

    def list_records(self, session_id: int) -> Sequence[AttendanceRecord]:
        return [r for (sid, _), r in tuple(self._records.items()) if sid == session_id]

    def ping(self) -> bool:
        return True
