from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus, InsertOutcome
from .model import AttendanceRecord, AttendanceSession, NewSession, OverrideInfo


class SessionRepository(Protocol):
    def create_session(self, new: NewSession) -> AttendanceSession:
        raise NotImplementedError

    def get_session(self, session_id: int) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def close_session(self, session_id: int, *, closed_at: datetime) -> bool:
        """Compare-and-set to CLOSED. Returns False when it was already closed."""

        raise NotImplementedError

    def delete_session(self, session_id: int) -> bool:
        raise NotImplementedError

    def insert_record_if_absent(self, record: AttendanceRecord) -> InsertOutcome:
        """Atomic first-write-wins per (session_id, student_id)."""

        raise NotImplementedError

    def save_override(
        self,
        *,
        session_id: int,
        student_id: int,
        status: AttendanceStatus,
        override: OverrideInfo,
    ) -> AttendanceRecord:
        """Last-writer-wins upsert; keeps any self-mark provenance on the row."""

        raise NotImplementedError

    def get_record(self, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_records(self, session_id: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError
