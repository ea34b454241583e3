"""Authorization predicates for session operations."""
from __future__ import annotations

from ..core.enums import Role
from ..sessions.model import AttendanceSession
from .model import Caller

ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPERADMIN})


def is_admin(caller: Caller) -> bool:
    return caller.role in ADMIN_ROLES


def is_faculty(caller: Caller) -> bool:
    return caller.role == Role.FACULTY


def owns_session(caller: Caller, session: AttendanceSession) -> bool:
    return is_faculty(caller) and caller.user_id == session.instructor_id


def can_close(caller: Caller, session: AttendanceSession) -> bool:
    # Early close belongs to the owning faculty member only.
    return owns_session(caller, session)


def can_override(caller: Caller, session: AttendanceSession) -> bool:
    return owns_session(caller, session) or is_admin(caller)


def can_cancel(caller: Caller, session: AttendanceSession) -> bool:
    return owns_session(caller, session) or is_admin(caller)


def can_read_all(caller: Caller, session: AttendanceSession) -> bool:
    return owns_session(caller, session) or is_admin(caller)


def can_read_own(caller: Caller, session: AttendanceSession) -> bool:
    return caller.role == Role.STUDENT and caller.user_id in session.roster
