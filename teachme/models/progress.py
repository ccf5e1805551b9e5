from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """One row per (user, course, content item).

    Many rows roll up into one course percentage; see
    ``students_service.course_progress``.
    """

    user_id: str
    course_id: int
    completion_percentage: float = 0
    status: str = "not_started"  # not_started|in_progress|completed
    content_item_id: int | None = None
    time_spent_seconds: int = 0
    last_interaction: datetime | None = None
    id: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


@dataclass(frozen=True, slots=True)
class CourseProgress:
    """Per-course line of a student's progress summary."""

    course_id: int
    progress: int
    completed_items: int
    total_items: int
    status: str


@dataclass(frozen=True, slots=True)
class ProgressSummary:
    student_id: str
    total_courses: int
    completed_courses: int
    in_progress_courses: int
    average_progress: int
    courses: tuple[CourseProgress, ...] = ()
