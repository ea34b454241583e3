from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..common.datetime_utils import now_utc
from ..common.validators import require_reason
from ..core.constants import DEFAULT_SESSION_MINUTES
from ..core.enums import AttendanceStatus, InsertOutcome, Role, SessionState
from ..core.exceptions import (
    AlreadyMarked,
    AlreadySessionClosed,
    Forbidden,
    InvalidWindow,
    NotEnrolled,
    OutsideGeofence,
    SessionNotFound,
    ValidationError,
)
from ..courses.directory import CourseDirectory
from ..geo.distance import Coordinate, validate_coordinate
from ..geo.geofence import Geofence, check_point
from ..sessions.lifecycle import SessionLifecycle
from ..sessions.model import AttendanceRecord, AttendanceSession, NewSession, OverrideInfo, SessionWindow
from ..sessions.repository import SessionRepository
from . import permissions
from .factory import MarkingStrategyFactory
from .model import Caller, MarkResult, SessionReport

logger = logging.getLogger(__name__)


class AttendanceMarkingService:
    """Entry point for every attendance session operation.

    Each call resolves `now`, loads the session and persists a pending
    expiry before evaluating the operation against the lifecycle.
    """

    def __init__(
        self,
        sessions: SessionRepository,
        courses: CourseDirectory,
        *,
        lifecycle: SessionLifecycle | None = None,
        strategy_factory: MarkingStrategyFactory | None = None,
        clock: Callable[[], datetime] = now_utc,
        default_duration_minutes: int = DEFAULT_SESSION_MINUTES,
    ):
        self._sessions = sessions
        self._courses = courses
        self._lifecycle = lifecycle or SessionLifecycle()
        self._factory = strategy_factory or MarkingStrategyFactory()
        self._clock = clock
        self._default_duration = int(default_duration_minutes)

    def _load(self, session_id: int, now: datetime) -> AttendanceSession:
        session = self._sessions.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)

        if self._lifecycle.needs_close_persisted(session, now):
            if self._sessions.close_session(session_id, closed_at=session.window.end):
                logger.info("Session %s expired at %s; marked closed", session_id, session.window.end)
            return replace(session, state=SessionState.CLOSED, closed_at=session.closed_at or session.window.end)

        return replace(session, state=self._lifecycle.evaluate(session, now))

    def _resolve_instructor(self, caller: Caller, course_id: int, instructor_id: Optional[int]) -> int:
        if permissions.is_faculty(caller):
            if instructor_id is not None and instructor_id != caller.user_id:
                raise Forbidden("Faculty can only open sessions for themselves")
            instructor_id = caller.user_id
        elif permissions.is_admin(caller):
            if instructor_id is None:
                raise ValidationError("instructor_id is required when an admin opens a session")
        else:
            raise Forbidden("Only faculty or admins can open attendance sessions")

        if not self._courses.is_instructor(course_id, instructor_id):
            raise Forbidden(f"User {instructor_id} does not teach course {course_id}")
        return instructor_id

    def open_session(
        self,
        caller: Caller,
        *,
        course_id: int,
        latitude: float,
        longitude: float,
        radius_m: float,
        start_time: datetime | None = None,
        duration_minutes: int | None = None,
        end_time: datetime | None = None,
        instructor_id: int | None = None,
        late_after_minutes: int | None = None,
        now: datetime | None = None,
    ) -> AttendanceSession:
        now = now or self._clock()
        instructor_id = self._resolve_instructor(caller, course_id, instructor_id)

        start = start_time or now
        if end_time is None:
            minutes = self._default_duration if duration_minutes is None else int(duration_minutes)
            end_time = start + timedelta(minutes=minutes)
        if end_time <= start:
            raise InvalidWindow(f"Session end {end_time.isoformat()} must be after start {start.isoformat()}")
        if end_time <= now:
            raise InvalidWindow(f"Session window already ended at {end_time.isoformat()}")

        fence = Geofence(center=Coordinate(latitude=latitude, longitude=longitude), radius_m=radius_m)

        if late_after_minutes is not None:
            late_after_minutes = int(late_after_minutes)
            if late_after_minutes < 0 or start + timedelta(minutes=late_after_minutes) >= end_time:
                raise ValidationError("late_after_minutes must fall inside the session window")

        session = self._sessions.create_session(
            NewSession(
                course_id=course_id,
                instructor_id=instructor_id,
                window=SessionWindow(start=start, end=end_time),
                fence=fence,
                state=self._lifecycle.initial_state(start=start, now=now),
                roster=frozenset(self._courses.get_roster(course_id)),
                late_after_minutes=late_after_minutes,
                created_at=now,
            )
        )
        logger.info(
            "Session %s opened for course %s by %s (%s, %d students, radius %.0fm)",
            session.session_id,
            course_id,
            instructor_id,
            session.state.value,
            len(session.roster),
            fence.radius_m,
        )
        return session

    def mark(
        self,
        caller: Caller,
        session_id: int,
        *,
        latitude: float,
        longitude: float,
        now: datetime | None = None,
    ) -> MarkResult:
        now = now or self._clock()
        if caller.role != Role.STUDENT:
            raise Forbidden("Only students can self-mark attendance")
        student_id = caller.user_id

        session = self._load(session_id, now)
        self._lifecycle.ensure_can_self_mark(session, now)
        if student_id not in session.roster:
            raise NotEnrolled(session_id, student_id)

        existing = self._sessions.get_record(session_id, student_id)
        if existing is not None:
            raise AlreadyMarked(session_id, student_id, existing=existing)

        point = validate_coordinate(Coordinate(latitude=latitude, longitude=longitude))
        check = check_point(point, session.fence)
        if not check.inside:
            logger.warning(
                "Rejected mark: student %s is %.1fm from session %s (radius %.0fm)",
                student_id,
                check.distance_m,
                session_id,
                check.radius_m,
            )
            raise OutsideGeofence(check.distance_m, check.radius_m)

        decision = self._factory.for_self_mark(now=now, session=session).decide_self_mark(now=now, session=session)
        record = AttendanceRecord(
            session_id=session_id,
            student_id=student_id,
            status=decision.status,
            marked_at=now,
            location=point,
        )

        if self._sessions.insert_record_if_absent(record) == InsertOutcome.ALREADY_EXISTS:
            raise AlreadyMarked(session_id, student_id, existing=self._sessions.get_record(session_id, student_id))

        logger.info(
            "Student %s marked %s in session %s at %.1fm",
            student_id,
            decision.status.value,
            session_id,
            check.distance_m,
        )
        return MarkResult(record=record, distance_m=check.distance_m)

    def override(
        self,
        caller: Caller,
        session_id: int,
        student_id: int,
        *,
        status: AttendanceStatus | str,
        reason: str,
        now: datetime | None = None,
    ) -> AttendanceRecord:
        now = now or self._clock()
        session = self._load(session_id, now)
        if not permissions.can_override(caller, session):
            raise Forbidden("Only the owning faculty or an admin can override attendance")

        reason = require_reason(reason)
        try:
            status = AttendanceStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown attendance status: {status!r}") from None

        self._lifecycle.ensure_can_override(session, now)
        if student_id not in session.roster:
            raise NotEnrolled(session_id, student_id)

        record = self._sessions.save_override(
            session_id=session_id,
            student_id=student_id,
            status=status,
            override=OverrideInfo(by=caller.user_id, reason=reason, at=now),
        )
        logger.info(
            "Override by %s: student %s -> %s in session %s (%s)",
            caller.user_id,
            student_id,
            status.value,
            session_id,
            reason,
        )
        return record

    def close_early(self, caller: Caller, session_id: int, *, now: datetime | None = None) -> AttendanceSession:
        now = now or self._clock()
        session = self._load(session_id, now)
        if not permissions.can_close(caller, session):
            raise Forbidden("Only the owning faculty can close this session")

        self._lifecycle.ensure_can_close(session, now)
        if not self._sessions.close_session(session_id, closed_at=now):
            raise AlreadySessionClosed(session_id)

        logger.info("Session %s closed early by %s", session_id, caller.user_id)
        return replace(session, state=SessionState.CLOSED, closed_at=now)

    def cancel_session(self, caller: Caller, session_id: int, *, now: datetime | None = None) -> None:
        now = now or self._clock()
        session = self._load(session_id, now)
        if not permissions.can_cancel(caller, session):
            raise Forbidden("Only the owning faculty or an admin can cancel this session")

        self._lifecycle.ensure_can_cancel(session, now)
        self._sessions.delete_session(session_id)
        logger.info("Scheduled session %s cancelled by %s", session_id, caller.user_id)

    def get_session(self, caller: Caller, session_id: int, *, now: datetime | None = None) -> AttendanceSession:
        now = now or self._clock()
        session = self._load(session_id, now)
        if not (permissions.can_read_all(caller, session) or permissions.can_read_own(caller, session)):
            raise Forbidden("Not allowed to view this session")
        return session

    def report(self, caller: Caller, session_id: int, *, now: datetime | None = None) -> SessionReport:
        now = now or self._clock()
        session = self._load(session_id, now)
        if not permissions.can_read_all(caller, session):
            raise Forbidden("Only the owning faculty or an admin can view the full report")

        stored = {r.student_id: r for r in self._sessions.list_records(session_id)}
        records = [
            stored.get(student_id) or AttendanceRecord.implicit_absent(session_id, student_id)
            for student_id in sorted(session.roster)
        ]
        marked = sum(1 for student_id in session.roster if student_id in stored)
        return SessionReport(session_id=session_id, records=records, marked_count=marked)

    def student_record(self, caller: Caller, session_id: int, *, now: datetime | None = None) -> AttendanceRecord:
        now = now or self._clock()
        session = self._load(session_id, now)
        if not permissions.can_read_own(caller, session):
            raise Forbidden("Students can only view their own attendance")

        record = self._sessions.get_record(session_id, caller.user_id)
        return record or AttendanceRecord.implicit_absent(session_id, caller.user_id)
