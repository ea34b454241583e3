from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..sessions.model import AttendanceSession
from .strategies.base import MarkingStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.present_strategy import PresentStrategy


@dataclass
class MarkingStrategyFactory:
    """Factory Pattern: choose the status strategy for a self-mark."""

    def for_self_mark(self, *, now: datetime, session: AttendanceSession) -> MarkingStrategy:
        if session.late_after_minutes is None:
            return PresentStrategy()

        late_from = session.window.start + timedelta(minutes=session.late_after_minutes)
        if now < late_from:
            return PresentStrategy()
        return LateStrategy()
