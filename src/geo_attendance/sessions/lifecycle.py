from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..core.enums import SessionState
from ..core.exceptions import AlreadySessionClosed, SessionClosed, SessionNotCancellable, SessionNotStarted
from .model import AttendanceSession


@dataclass
class SessionLifecycle:
    """State machine: SCHEDULED -> OPEN -> CLOSED (terminal).

    The effective state is a pure function of the stored state and `now`.
    Guards raise the domain error for operations that are illegal in that state.
    """

    def evaluate(self, session: AttendanceSession, now: datetime) -> SessionState:
        if session.state == SessionState.CLOSED:
            return SessionState.CLOSED
        if now >= session.window.end:
            return SessionState.CLOSED
        if session.window.contains(now):
            return SessionState.OPEN
        return SessionState.SCHEDULED

    def needs_close_persisted(self, session: AttendanceSession, now: datetime) -> bool:
        return session.state != SessionState.CLOSED and self.evaluate(session, now) == SessionState.CLOSED

    def initial_state(self, *, start: datetime, now: datetime) -> SessionState:
        return SessionState.SCHEDULED if now < start else SessionState.OPEN

    def ensure_can_self_mark(self, session: AttendanceSession, now: datetime) -> None:
        state = self.evaluate(session, now)
        if state == SessionState.CLOSED:
            raise SessionClosed(session.session_id)
        if state == SessionState.SCHEDULED:
            raise SessionNotStarted(session.session_id)

    def ensure_can_override(self, session: AttendanceSession, now: datetime) -> None:
        if self.evaluate(session, now) == SessionState.SCHEDULED:
            raise SessionNotStarted(session.session_id)

    def ensure_can_close(self, session: AttendanceSession, now: datetime) -> None:
        state = self.evaluate(session, now)
        if state == SessionState.CLOSED:
            raise AlreadySessionClosed(session.session_id)
        if state == SessionState.SCHEDULED:
            raise SessionNotStarted(session.session_id)

    def ensure_can_cancel(self, session: AttendanceSession, now: datetime) -> None:
        if self.evaluate(session, now) != SessionState.SCHEDULED:
            raise SessionNotCancellable(session.session_id)
