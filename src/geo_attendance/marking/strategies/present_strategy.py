from __future__ import annotations

from datetime import datetime

from ...core.enums import AttendanceStatus
from ...sessions.model import AttendanceSession
from .base import MarkingStrategy, StatusDecision


class PresentStrategy(MarkingStrategy):
    """Self-mark within the on-time part of the window."""

    def decide_self_mark(self, *, now: datetime, session: AttendanceSession) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.PRESENT)
