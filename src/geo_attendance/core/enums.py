from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller roles supplied by the identity gateway."""

    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"


class SessionState(str, Enum):
    """Lifecycle state of an attendance session. CLOSED is terminal."""

    SCHEDULED = "SCHEDULED"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class InsertOutcome(str, Enum):
    """Result of an insert-if-absent write on a (session, student) record."""

    INSERTED = "INSERTED"
    ALREADY_EXISTS = "ALREADY_EXISTS"
