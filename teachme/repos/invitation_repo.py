from __future__ import annotations

import dataclasses
from typing import Protocol
from uuid import UUID

from teachme.models.course import Enrollment
from teachme.models.invitation import CourseInvitation
from teachme.repos.student_store import InMemoryStudentStore


class InvitationRepo(Protocol):
    async def add(self, invitation: CourseInvitation) -> None: ...
    async def get_by_token_hash(self, token_hash: str) -> CourseInvitation | None: ...
    async def redeem(self, invitation_id: UUID, enrollment: Enrollment) -> bool: ...


class InMemoryInvitationRepo:
    """Enrolls into the given in-memory student store on redeem."""

    def __init__(self, students: InMemoryStudentStore) -> None:
        self._students = students
        self._by_token_hash: dict[str, CourseInvitation] = {}

    async def add(self, invitation: CourseInvitation) -> None:
        self._by_token_hash[invitation.token_hash] = invitation

    async def get_by_token_hash(self, token_hash: str) -> CourseInvitation | None:
        return self._by_token_hash.get(token_hash)

    async def redeem(self, invitation_id: UUID, enrollment: Enrollment) -> bool:
        """Mark the invitation used and create the enrollment together.

        Returns False (and changes nothing) if the invitation is unknown
        or was already used.
        """
        for token_hash, invitation in self._by_token_hash.items():
            if invitation.id != invitation_id:
                continue
            if invitation.is_used:
                return False
            self._students.add_enrollment(enrollment)
            self._by_token_hash[token_hash] = dataclasses.replace(
                invitation, is_used=True
            )
            return True
        return False

    def clear(self) -> None:
        self._by_token_hash.clear()
