from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class CourseInvitation:
    """A single-use invitation into a course.

    Only the SHA-256 hash of the invitation token is kept; the raw token
    is handed to the inviting teacher once and never stored.
    """

    id: UUID
    course_id: int
    teacher_id: str
    token_hash: str
    expires_at: datetime
    created_at: datetime
    email: str | None = None
    is_used: bool = False

    @staticmethod
    def new(
        *,
        course_id: int,
        teacher_id: str,
        token_hash: str,
        expires_at: datetime,
        created_at: datetime,
        email: str | None = None,
    ) -> CourseInvitation:
        return CourseInvitation(
            id=uuid4(),
            course_id=course_id,
            teacher_id=teacher_id,
            token_hash=token_hash,
            expires_at=expires_at,
            created_at=created_at,
            email=email,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now
