from __future__ import annotations

from typing import Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .directory import CourseDirectory


class MySQLCourseDirectory(CourseDirectory):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_roster(self, course_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT student_id FROM course_enrollments WHERE course_id=%s ORDER BY student_id",
                (course_id,),
            )
            return [int(r["student_id"]) for r in fetchall(cur)]

    def is_instructor(self, course_id: int, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT 1 AS ok FROM course_instructors WHERE course_id=%s AND instructor_id=%s",
                (course_id, user_id),
            )
            return fetchone(cur) is not None
