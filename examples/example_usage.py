"""Example: drive the service layer directly (no Flask).

Controllers are a thin layer; the attendance rules live in the marking service.
"""

from datetime import timedelta

from geo_attendance.common.datetime_utils import now_utc
from geo_attendance.container import build_container
from geo_attendance.core.enums import Role
from geo_attendance.core.exceptions import OutsideGeofence
from geo_attendance.courses.memory_course_directory import InMemoryCourseDirectory
from geo_attendance.marking.model import Caller


def main():
    courses = InMemoryCourseDirectory()
    courses.enroll(10, 501, 502)
    courses.assign_instructor(10, 100)
    container = build_container(backend="memory", course_directory=courses)
    service = container.marking_service

    faculty = Caller(user_id=100, role=Role.FACULTY)
    t0 = now_utc()
    session = service.open_session(faculty, course_id=10, latitude=12.9716, longitude=77.5946, radius_m=100, now=t0)

    result = service.mark(Caller(501, Role.STUDENT), session.session_id, latitude=12.9716, longitude=77.5950)
    print(f"501 -> {result.record.status.value} at {result.distance_m:.0f}m")

    try:
        service.mark(Caller(502, Role.STUDENT), session.session_id, latitude=12.98, longitude=77.60)
    except OutsideGeofence as e:
        print(f"502 rejected: {e}")

    service.close_early(faculty, session.session_id, now=t0 + timedelta(minutes=10))
    for record in service.report(faculty, session.session_id).records:
        print(record.student_id, record.status.value)


if __name__ == "__main__":
    main()
