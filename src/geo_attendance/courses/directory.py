from __future__ import annotations

from typing import Protocol, Sequence


class CourseDirectory(Protocol):
    """Read-only view of course membership owned by the course service."""

    def get_roster(self, course_id: int) -> Sequence[int]:
        raise NotImplementedError

    def is_instructor(self, course_id: int, user_id: int) -> bool:
        raise NotImplementedError
