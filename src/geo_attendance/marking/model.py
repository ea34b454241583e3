from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role
from ..sessions.model import AttendanceRecord


@dataclass(frozen=True)
class Caller:
    """Validated identity handed over by the authentication gateway."""

    user_id: int
    role: Role


@dataclass(frozen=True)
class MarkResult:
    record: AttendanceRecord
    distance_m: float


@dataclass(frozen=True)
class SessionReport:
    """Read-model: every roster student, unmarked ones as implicit ABSENT."""

    session_id: int
    records: list[AttendanceRecord]
    marked_count: int

    @property
    def total(self) -> int:
        return len(self.records)

    def for_student(self, student_id: int) -> Optional[AttendanceRecord]:
        return next((r for r in self.records if r.student_id == student_id), None)
