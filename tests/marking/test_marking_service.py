from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from geo_attendance.core.enums import AttendanceStatus, Role, SessionState
from geo_attendance.core.exceptions import (
    AlreadyMarked,
    AlreadySessionClosed,
    Forbidden,
    InvalidCoordinate,
    InvalidFence,
    InvalidWindow,
    NotEnrolled,
    OutsideGeofence,
    ReasonRequired,
    SessionClosed,
    SessionNotCancellable,
    SessionNotFound,
    SessionNotStarted,
    ValidationError,
)
from geo_attendance.courses.memory_course_directory import InMemoryCourseDirectory
from geo_attendance.marking.model import Caller
from geo_attendance.marking.service import AttendanceMarkingService
from geo_attendance.sessions.memory_session_repository import InMemorySessionRepository

T0 = datetime(2026, 3, 2, 9, 0, 0)
COURSE = 10
FACULTY = Caller(user_id=100, role=Role.FACULTY)
OTHER_FACULTY = Caller(user_id=101, role=Role.FACULTY)
ADMIN = Caller(user_id=1, role=Role.ADMIN)
SUPERADMIN = Caller(user_id=2, role=Role.SUPERADMIN)
NEAR = {"latitude": 12.9716, "longitude": 77.5950}
FAR = {"latitude": 12.9800, "longitude": 77.6000}


def student(user_id: int) -> Caller:
    return Caller(user_id=user_id, role=Role.STUDENT)


def build(students=(501, 502, 503)):
    repo = InMemorySessionRepository()
    courses = InMemoryCourseDirectory()
    courses.enroll(COURSE, *students)
    courses.assign_instructor(COURSE, FACULTY.user_id)
    courses.assign_instructor(COURSE, OTHER_FACULTY.user_id)
    service = AttendanceMarkingService(repo, courses, clock=lambda: T0)
    return service, repo, courses


def open_default(service, **kwargs):
    params = dict(course_id=COURSE, latitude=12.9716, longitude=77.5946, radius_m=100, start_time=T0, now=T0)
    params.update(kwargs)
    return service.open_session(FACULTY, **params)


def test_open_session_defaults_to_sixty_minute_open_window():
    service, _, _ = build()

    session = open_default(service)

    assert session.state == SessionState.OPEN
    assert session.window.end - session.window.start == timedelta(minutes=60)
    assert session.instructor_id == FACULTY.user_id
    assert session.roster == frozenset({501, 502, 503})


def test_open_session_in_future_is_scheduled():
    service, _, _ = build()

    session = open_default(service, start_time=T0 + timedelta(hours=1), duration_minutes=90)

    assert session.state == SessionState.SCHEDULED
    assert session.window.duration == timedelta(minutes=90)


def test_open_session_rejects_end_before_start_without_creating_anything():
    service, repo, _ = build()

    with pytest.raises(InvalidWindow):
        open_default(service, end_time=T0)
    with pytest.raises(InvalidWindow):
        open_default(service, duration_minutes=0)

    assert repo.get_session(1) is None


def test_open_session_rejects_bad_fence():
    service, _, _ = build()

    with pytest.raises(InvalidFence):
        open_default(service, radius_m=0)
    with pytest.raises(InvalidCoordinate):
        open_default(service, latitude=123)


def test_open_session_permissions():
    service, _, courses = build()

    with pytest.raises(Forbidden):
        service.open_session(student(501), course_id=COURSE, latitude=0, longitude=0, radius_m=50, now=T0)
    with pytest.raises(Forbidden):
        service.open_session(
            Caller(user_id=999, role=Role.FACULTY), course_id=COURSE, latitude=0, longitude=0, radius_m=50, now=T0
        )
    with pytest.raises(Forbidden):
        open_default(service, instructor_id=OTHER_FACULTY.user_id)
    with pytest.raises(ValidationError):
        service.open_session(ADMIN, course_id=COURSE, latitude=0, longitude=0, radius_m=50, now=T0)

    session = service.open_session(
        ADMIN, course_id=COURSE, instructor_id=FACULTY.user_id, latitude=0, longitude=0, radius_m=50, now=T0
    )
    assert session.instructor_id == FACULTY.user_id


def test_late_threshold_must_fall_inside_window():
    service, _, _ = build()

    with pytest.raises(ValidationError):
        open_default(service, late_after_minutes=60)
    with pytest.raises(ValidationError):
        open_default(service, late_after_minutes=-1)


def test_mark_inside_fence_is_present():
    service, repo, _ = build()
    session = open_default(service)

    result = service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=3), **NEAR)

    assert result.record.status == AttendanceStatus.PRESENT
    assert result.record.marked_at == T0 + timedelta(minutes=3)
    assert 40 < result.distance_m < 48
    assert repo.get_record(session.session_id, 501) == result.record


def test_mark_outside_fence_reports_distance_and_creates_no_record():
    service, repo, _ = build()
    session = open_default(service)

    with pytest.raises(OutsideGeofence) as exc:
        service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=3), **FAR)

    assert 1050 < exc.value.distance_m < 1150
    assert exc.value.radius_m == 100
    assert repo.get_record(session.session_id, 501) is None


def test_mark_after_window_is_closed_and_expiry_is_persisted():
    service, repo, _ = build()
    session = open_default(service)

    with pytest.raises(SessionClosed):
        service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=61), **NEAR)

    stored = repo.get_session(session.session_id)
    assert stored.state == SessionState.CLOSED
    assert stored.closed_at == session.window.end


def test_mark_failures():
    service, _, _ = build()
    session = open_default(service)
    now = T0 + timedelta(minutes=1)

    with pytest.raises(SessionNotFound):
        service.mark(student(501), 404, now=now, **NEAR)
    with pytest.raises(NotEnrolled):
        service.mark(student(777), session.session_id, now=now, **NEAR)
    with pytest.raises(Forbidden):
        service.mark(FACULTY, session.session_id, now=now, **NEAR)
    with pytest.raises(InvalidCoordinate):
        service.mark(student(501), session.session_id, now=now, latitude=91, longitude=0)


def test_mark_before_start_is_rejected():
    service, _, _ = build()
    session = open_default(service, start_time=T0 + timedelta(minutes=30))

    with pytest.raises(SessionNotStarted):
        service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=5), **NEAR)


def test_second_mark_is_already_marked():
    service, _, _ = build()
    session = open_default(service)
    service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=1), **NEAR)

    with pytest.raises(AlreadyMarked) as exc:
        service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=2), **NEAR)

    assert exc.value.existing.marked_at == T0 + timedelta(minutes=1)


def test_enrollment_is_snapshotted_at_creation():
    service, _, courses = build()
    session = open_default(service)
    courses.enroll(COURSE, 900)

    with pytest.raises(NotEnrolled):
        service.mark(student(900), session.session_id, now=T0 + timedelta(minutes=1), **NEAR)


def test_late_marks_after_threshold():
    service, _, _ = build()
    session = open_default(service, late_after_minutes=10)

    on_time = service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=9, seconds=59), **NEAR)
    late = service.mark(student(502), session.session_id, now=T0 + timedelta(minutes=10), **NEAR)

    assert on_time.record.status == AttendanceStatus.PRESENT
    assert late.record.status == AttendanceStatus.LATE


def test_override_wins_over_self_mark():
    service, _, _ = build()
    session = open_default(service)
    service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=1), **NEAR)

    record = service.override(
        FACULTY,
        session.session_id,
        501,
        status=AttendanceStatus.ABSENT,
        reason="left after roll call",
        now=T0 + timedelta(minutes=20),
    )

    assert record.status == AttendanceStatus.ABSENT
    assert record.override.by == FACULTY.user_id
    assert record.override.reason == "left after roll call"
    assert record.override.at == T0 + timedelta(minutes=20)


def test_override_is_repeatable_and_last_write_wins():
    service, _, _ = build()
    session = open_default(service)

    service.override(FACULTY, session.session_id, 502, status="PRESENT", reason="GPS down", now=T0)
    record = service.override(ADMIN, session.session_id, 502, status="LATE", reason="arrived 20m late", now=T0)

    assert record.status == AttendanceStatus.LATE
    assert record.override.by == ADMIN.user_id


def test_override_blocks_later_self_mark():
    service, _, _ = build()
    session = open_default(service)
    service.override(FACULTY, session.session_id, 503, status="ABSENT", reason="excused", now=T0)

    with pytest.raises(AlreadyMarked):
        service.mark(student(503), session.session_id, now=T0 + timedelta(minutes=1), **NEAR)


def test_override_failures():
    service, _, _ = build()
    session = open_default(service)

    with pytest.raises(Forbidden):
        service.override(OTHER_FACULTY, session.session_id, 501, status="PRESENT", reason="x", now=T0)
    with pytest.raises(Forbidden):
        service.override(student(501), session.session_id, 501, status="PRESENT", reason="x", now=T0)
    with pytest.raises(ReasonRequired):
        service.override(FACULTY, session.session_id, 501, status="PRESENT", reason="   ", now=T0)
    with pytest.raises(ValidationError):
        service.override(FACULTY, session.session_id, 501, status="EXCUSED", reason="x", now=T0)
    with pytest.raises(NotEnrolled):
        service.override(FACULTY, session.session_id, 777, status="PRESENT", reason="x", now=T0)
    with pytest.raises(SessionNotFound):
        service.override(FACULTY, 404, 501, status="PRESENT", reason="x", now=T0)


def test_superadmin_can_override():
    service, _, _ = build()
    session = open_default(service)

    record = service.override(SUPERADMIN, session.session_id, 501, status="PRESENT", reason="audit", now=T0)

    assert record.override.by == SUPERADMIN.user_id


def test_close_early_then_mark_then_override():
    service, _, _ = build()
    session = open_default(service)

    closed = service.close_early(FACULTY, session.session_id, now=T0 + timedelta(minutes=10))
    assert closed.state == SessionState.CLOSED
    assert closed.closed_at == T0 + timedelta(minutes=10)

    with pytest.raises(SessionClosed):
        service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=11), **NEAR)

    record = service.override(
        FACULTY, session.session_id, 501, status="PRESENT", reason="phone died", now=T0 + timedelta(minutes=15)
    )
    assert record.status == AttendanceStatus.PRESENT


def test_close_early_failures():
    service, _, _ = build()
    session = open_default(service)

    with pytest.raises(Forbidden):
        service.close_early(ADMIN, session.session_id, now=T0)
    with pytest.raises(Forbidden):
        service.close_early(OTHER_FACULTY, session.session_id, now=T0)

    service.close_early(FACULTY, session.session_id, now=T0 + timedelta(minutes=5))
    with pytest.raises(AlreadySessionClosed):
        service.close_early(FACULTY, session.session_id, now=T0 + timedelta(minutes=6))


def test_close_after_expiry_is_already_closed():
    service, _, _ = build()
    session = open_default(service)

    with pytest.raises(AlreadySessionClosed):
        service.close_early(FACULTY, session.session_id, now=T0 + timedelta(minutes=90))


def test_report_materializes_absent_for_unmarked_students():
    service, _, _ = build(students=range(1, 11))
    session = open_default(service)
    for student_id in (2, 5, 7):
        service.mark(student(student_id), session.session_id, now=T0 + timedelta(minutes=1), **NEAR)
    service.close_early(FACULTY, session.session_id, now=T0 + timedelta(minutes=30))

    report = service.report(FACULTY, session.session_id, now=T0 + timedelta(minutes=31))

    assert report.total == 10
    assert report.marked_count == 3
    statuses = {r.student_id: r.status for r in report.records}
    assert [sid for sid, s in statuses.items() if s == AttendanceStatus.PRESENT] == [2, 5, 7]
    assert sum(1 for s in statuses.values() if s == AttendanceStatus.ABSENT) == 7
    assert report.for_student(1).marked_at is None


def test_report_permissions():
    service, _, _ = build()
    session = open_default(service)

    assert service.report(ADMIN, session.session_id, now=T0).total == 3
    with pytest.raises(Forbidden):
        service.report(student(501), session.session_id, now=T0)
    with pytest.raises(Forbidden):
        service.report(OTHER_FACULTY, session.session_id, now=T0)
    with pytest.raises(SessionNotFound):
        service.report(ADMIN, 404, now=T0)


def test_student_reads_only_own_record():
    service, _, _ = build()
    session = open_default(service)
    service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=1), **NEAR)

    mine = service.student_record(student(501), session.session_id, now=T0 + timedelta(minutes=2))
    other = service.student_record(student(502), session.session_id, now=T0 + timedelta(minutes=2))

    assert mine.status == AttendanceStatus.PRESENT
    assert other.status == AttendanceStatus.ABSENT
    with pytest.raises(Forbidden):
        service.student_record(student(777), session.session_id, now=T0)


def test_get_session_reports_effective_state():
    service, _, _ = build()
    session = open_default(service, start_time=T0 + timedelta(minutes=10))

    assert service.get_session(FACULTY, session.session_id, now=T0).state == SessionState.SCHEDULED
    assert service.get_session(student(501), session.session_id, now=T0 + timedelta(minutes=15)).state == SessionState.OPEN
    with pytest.raises(Forbidden):
        service.get_session(student(777), session.session_id, now=T0)


def test_cancel_only_while_scheduled():
    service, repo, _ = build()
    scheduled = open_default(service, start_time=T0 + timedelta(hours=1))
    running = open_default(service)

    with pytest.raises(Forbidden):
        service.cancel_session(student(501), scheduled.session_id, now=T0)
    with pytest.raises(SessionNotCancellable):
        service.cancel_session(FACULTY, running.session_id, now=T0 + timedelta(minutes=1))

    service.cancel_session(FACULTY, scheduled.session_id, now=T0)
    assert repo.get_session(scheduled.session_id) is None


def test_clock_is_used_when_now_is_omitted():
    service, _, _ = build()
    session = open_default(service)

    result = service.mark(student(501), session.session_id, **NEAR)

    assert result.record.marked_at == T0


def test_open_session_rejects_window_that_already_ended():
    service, repo, _ = build()

    with pytest.raises(InvalidWindow):
        open_default(service, start_time=T0 - timedelta(hours=3))
    with pytest.raises(InvalidWindow):
        open_default(service, start_time=T0 - timedelta(minutes=60))

    assert repo.get_session(1) is None


def test_open_session_started_earlier_but_still_running_is_open():
    service, _, _ = build()

    session = open_default(service, start_time=T0 - timedelta(minutes=30))

    assert session.state == SessionState.OPEN


def test_retry_after_mark_with_drifted_gps_is_already_marked():
    service, _, _ = build()
    session = open_default(service)
    service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=1), **NEAR)

    with pytest.raises(AlreadyMarked):
        service.mark(student(501), session.session_id, now=T0 + timedelta(minutes=2), **FAR)


def test_override_reason_must_be_text_and_bounded():
    service, _, _ = build()
    session = open_default(service)

    with pytest.raises(ReasonRequired):
        service.override(FACULTY, session.session_id, 501, status="PRESENT", reason=123, now=T0)
    with pytest.raises(ReasonRequired):
        service.override(FACULTY, session.session_id, 501, status="PRESENT", reason=None, now=T0)
    with pytest.raises(ValidationError):
        service.override(FACULTY, session.session_id, 501, status="PRESENT", reason="x" * 501, now=T0)

    record = service.override(FACULTY, session.session_id, 501, status="PRESENT", reason="x" * 500, now=T0)
    assert len(record.override.reason) == 500
