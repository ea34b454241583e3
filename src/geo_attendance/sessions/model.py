from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import FrozenSet, Optional

from ..core.enums import AttendanceStatus, SessionState
from ..geo.distance import Coordinate
from ..geo.geofence import Geofence


@dataclass(frozen=True)
class SessionWindow:
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, moment: datetime) -> bool:
        """Half-open: [start, end)."""
        return self.start <= moment < self.end


@dataclass(frozen=True)
class AttendanceSession:
    """Domain entity: a time-bounded, geofenced attendance session.

    `roster` is the course enrollment captured when the session was created;
    `state` is the persisted state, which may lag behind wall-clock expiry until
    the lifecycle controller observes and persists the transition.
    """

    session_id: int
    course_id: int
    instructor_id: int
    window: SessionWindow
    fence: Geofence
    state: SessionState
    roster: FrozenSet[int] = field(default_factory=frozenset)
    late_after_minutes: Optional[int] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class OverrideInfo:
    by: int
    reason: str
    at: datetime


@dataclass(frozen=True)
class AttendanceRecord:
    """One student's attendance within a session.

    A record with `marked_at=None` and no override is the implicit ABSENT
    default materialized for reports; it is never stored.
    """

    session_id: int
    student_id: int
    status: AttendanceStatus
    marked_at: Optional[datetime] = None
    location: Optional[Coordinate] = None
    override: Optional[OverrideInfo] = None

    @classmethod
    def implicit_absent(cls, session_id: int, student_id: int) -> "AttendanceRecord":
        return cls(session_id=session_id, student_id=student_id, status=AttendanceStatus.ABSENT)


@dataclass(frozen=True)
class NewSession:
    """Validated input for the store's create operation (no id yet)."""

    course_id: int
    instructor_id: int
    window: SessionWindow
    fence: Geofence
    state: SessionState
    roster: FrozenSet[int]
    late_after_minutes: Optional[int] = None
    created_at: Optional[datetime] = None
