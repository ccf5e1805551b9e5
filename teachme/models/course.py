from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Course:
    id: int
    title: str
    description: str | None = None
    status: str = "draft"  # draft|published|archived


@dataclass(frozen=True, slots=True)
class Enrollment:
    """Join row between a user and a course."""

    user_id: str
    course_id: int
    role: str = "student"  # student|teacher
    status: str = "active"  # active|completed|withdrawn
    enrolled_at: datetime | None = None
    completed_at: datetime | None = None
    id: int | None = None


@dataclass(frozen=True, slots=True)
class StudentCourse:
    """One course entry nested under a student in roster responses."""

    id: int
    title: str
    progress: int
    status: str


@dataclass(frozen=True, slots=True)
class CompletedCourse:
    id: int
    title: str
    description: str | None
    completed_at: datetime | None
    total_content_items: int
    completed_content_items: int
    completion_percentage: int
