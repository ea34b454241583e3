from __future__ import annotations

from datetime import datetime

from ...core.enums import AttendanceStatus
from ...sessions.model import AttendanceSession
from .base import MarkingStrategy, StatusDecision


class LateStrategy(MarkingStrategy):
    """Self-mark after the session's late threshold."""

    def decide_self_mark(self, *, now: datetime, session: AttendanceSession) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.LATE)
