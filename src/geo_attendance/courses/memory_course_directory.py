from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Sequence, Set

from .directory import CourseDirectory


@dataclass
class InMemoryCourseDirectory(CourseDirectory):
    rosters: Dict[int, Set[int]] = field(default_factory=dict)
    instructors: Dict[int, Set[int]] = field(default_factory=dict)

    def enroll(self, course_id: int, *student_ids: int) -> None:
        self.rosters.setdefault(course_id, set()).update(student_ids)

    def assign_instructor(self, course_id: int, instructor_id: int) -> None:
        self.instructors.setdefault(course_id, set()).add(instructor_id)

    def get_roster(self, course_id: int) -> Sequence[int]:
        return sorted(self.rosters.get(course_id, ()))

    def is_instructor(self, course_id: int, user_id: int) -> bool:
        return user_id in self.instructors.get(course_id, ())
