from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

import mysql.connector

from ..core.enums import AttendanceStatus, InsertOutcome, SessionState
from ..database.connection import DatabaseConnection
from ..database.mysql_base import DUPLICATE_KEY_ERRNO, db_cursor, fetchall, fetchone, normalize_mysql_datetime
from ..geo.distance import Coordinate
from ..geo.geofence import Geofence
from .model import AttendanceRecord, AttendanceSession, NewSession, OverrideInfo, SessionWindow
from .repository import SessionRepository

_SESSION_COLUMNS = """
    session_id, course_id, instructor_id, start_time, end_time,
    center_latitude, center_longitude, radius_m, state,
    late_after_minutes, closed_at, created_at
"""

_RECORD_COLUMNS = """
    session_id, student_id, status, marked_at, latitude, longitude,
    override_by, override_reason, override_at
"""


def _row_to_record(r: Dict[str, Any]) -> AttendanceRecord:
    location = None
    if r.get("latitude") is not None and r.get("longitude") is not None:
        location = Coordinate(latitude=float(r["latitude"]), longitude=float(r["longitude"]))

    override = None
    if r.get("override_by") is not None:
        override = OverrideInfo(
            by=int(r["override_by"]),
            reason=r["override_reason"],
            at=normalize_mysql_datetime(r["override_at"]),
        )

    return AttendanceRecord(
        session_id=int(r["session_id"]),
        student_id=int(r["student_id"]),
        status=AttendanceStatus(r["status"]),
        marked_at=normalize_mysql_datetime(r.get("marked_at")),
        location=location,
        override=override,
    )


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_session(self, new: NewSession) -> AttendanceSession:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_sessions(
                    course_id, instructor_id, start_time, end_time,
                    center_latitude, center_longitude, radius_m, state,
                    late_after_minutes, created_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    new.course_id,
                    new.instructor_id,
                    new.window.start,
                    new.window.end,
                    new.fence.center.latitude,
                    new.fence.center.longitude,
                    new.fence.radius_m,
                    new.state.value,
                    new.late_after_minutes,
                    new.created_at,
                ),
            )
            session_id = int(cur.lastrowid)
            if new.roster:
                cur.executemany(
                    "INSERT INTO attendance_session_roster(session_id, student_id) VALUES(%s,%s)",
                    [(session_id, int(student_id)) for student_id in sorted(new.roster)],
                )

        return AttendanceSession(
            session_id=session_id,
            course_id=new.course_id,
            instructor_id=new.instructor_id,
            window=new.window,
            fence=new.fence,
            state=new.state,
            roster=frozenset(new.roster),
            late_after_minutes=new.late_after_minutes,
            created_at=new.created_at,
        )

    def get_session(self, session_id: int) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_SESSION_COLUMNS} FROM attendance_sessions WHERE session_id=%s", (session_id,))
            r = fetchone(cur)
            if not r:
                return None
            cur.execute("SELECT student_id FROM attendance_session_roster WHERE session_id=%s", (session_id,))
            roster = frozenset(int(row["student_id"]) for row in fetchall(cur))

        return AttendanceSession(
            session_id=int(r["session_id"]),
            course_id=int(r["course_id"]),
            instructor_id=int(r["instructor_id"]),
            window=SessionWindow(
                start=normalize_mysql_datetime(r["start_time"]),
                end=normalize_mysql_datetime(r["end_time"]),
            ),
            fence=Geofence(
                center=Coordinate(latitude=float(r["center_latitude"]), longitude=float(r["center_longitude"])),
                radius_m=float(r["radius_m"]),
            ),
            state=SessionState(r["state"]),
            roster=roster,
            late_after_minutes=r.get("late_after_minutes"),
            closed_at=normalize_mysql_datetime(r.get("closed_at")),
            created_at=normalize_mysql_datetime(r.get("created_at")),
        )

    def close_session(self, session_id: int, *, closed_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_sessions
                SET state=%s, closed_at=%s
                WHERE session_id=%s AND state<>%s
                """,
                (SessionState.CLOSED.value, closed_at, session_id, SessionState.CLOSED.value),
            )
            return cur.rowcount > 0

    def delete_session(self, session_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_sessions WHERE session_id=%s", (session_id,))
            return cur.rowcount > 0

    def insert_record_if_absent(self, record: AttendanceRecord) -> InsertOutcome:
        location = record.location
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_session_records(
                        session_id, student_id, status, marked_at, latitude, longitude
                    )
                    VALUES(%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        record.session_id,
                        record.student_id,
                        record.status.value,
                        record.marked_at,
                        location.latitude if location else None,
                        location.longitude if location else None,
                    ),
                )
        except mysql.connector.IntegrityError as e:
            if e.errno == DUPLICATE_KEY_ERRNO:
                return InsertOutcome.ALREADY_EXISTS
            raise
        return InsertOutcome.INSERTED

    def save_override(
        self,
        *,
        session_id: int,
        student_id: int,
        status: AttendanceStatus,
        override: OverrideInfo,
    ) -> AttendanceRecord:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_session_records(
                    session_id, student_id, status, override_by, override_reason, override_at
                )
                VALUES(%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    status=VALUES(status),
                    override_by=VALUES(override_by),
                    override_reason=VALUES(override_reason),
                    override_at=VALUES(override_at)
                """,
                (session_id, student_id, status.value, override.by, override.reason, override.at),
            )
            cur.execute(
                f"SELECT {_RECORD_COLUMNS} FROM attendance_session_records WHERE session_id=%s AND student_id=%s",
                (session_id, student_id),
            )
            return _row_to_record(fetchone(cur))

    def get_record(self, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_RECORD_COLUMNS} FROM attendance_session_records WHERE session_id=%s AND student_id=%s",
                (session_id, student_id),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def list_records(self, session_id: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_RECORD_COLUMNS} FROM attendance_session_records WHERE session_id=%s ORDER BY student_id",
                (session_id,),
            )
            return [_row_to_record(r) for r in fetchall(cur)]

    def ping(self) -> bool:
        return self._conn_factory.health_check()
