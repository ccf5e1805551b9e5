from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from teachme.models.course import StudentCourse


@dataclass(frozen=True, slots=True)
class Student:
    """A row of the users table, as seen by the roster endpoints.

    Identity is owned by the hosted auth provider; profile updates happen
    elsewhere.  ``deleted_at`` is the soft-delete marker.
    """

    id: str
    email: str
    full_name: str | None = None
    gender: str | None = None  # male|female|other
    phone_number: str | None = None
    profile_picture_url: str | None = None
    bio: str | None = None
    language_preference: str | None = None
    created_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name, email or bio.

        Uses lower() to agree with ILIKE in the Postgres store.
        """
        needle = query.lower()
        return any(
            needle in field.lower()
            for field in (self.full_name, self.email, self.bio)
            if field
        )


@dataclass(frozen=True, slots=True)
class StudentWithCourses:
    student: Student
    courses: tuple[StudentCourse, ...] = ()
