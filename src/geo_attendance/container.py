from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .core.constants import DEFAULT_SESSION_MINUTES
from .courses.directory import CourseDirectory
from .courses.memory_course_directory import InMemoryCourseDirectory
from .courses.mysql_course_directory import MySQLCourseDirectory
from .database.connection import DBConfig, DatabaseConnection
from .marking.service import AttendanceMarkingService
from .sessions.memory_session_repository import InMemorySessionRepository
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.repository import SessionRepository


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    sessions_repo: SessionRepository
    course_directory: CourseDirectory

    marking_service: AttendanceMarkingService

    def health_check(self) -> dict:
        store_ok = bool(self.sessions_repo.ping())
        return {
            "status": "healthy" if store_ok else "degraded",
            "store": "up" if store_ok else "down",
        }


def build_container(
    *,
    db_config: dict | None = None,
    backend: str = "mysql",
    default_duration_minutes: int = DEFAULT_SESSION_MINUTES,
    course_directory: CourseDirectory | None = None,
) -> Container:
    conn: Optional[DatabaseConnection] = None

    if backend == "memory":
        sessions_repo: SessionRepository = InMemorySessionRepository()
        courses = course_directory or InMemoryCourseDirectory()
    elif backend == "mysql":
        if db_config is None:
            raise ValueError("db_config is required for the mysql backend")
        conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
        sessions_repo = MySQLSessionRepository(conn)
        courses = course_directory or MySQLCourseDirectory(conn)
    else:
        raise ValueError(f"Unknown store backend: {backend!r}")

    marking_service = AttendanceMarkingService(
        sessions_repo,
        courses,
        default_duration_minutes=default_duration_minutes,
    )

    return Container(
        conn=conn,
        sessions_repo=sessions_repo,
        course_directory=courses,
        marking_service=marking_service,
    )
