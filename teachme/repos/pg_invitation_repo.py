"""PostgreSQL implementation of InvitationRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teachme.db.session import store_session
from teachme.db.tables import CourseInvitationRow, EnrollmentRow
from teachme.models.course import Enrollment
from teachme.models.invitation import CourseInvitation


class PgInvitationRepo:
    """Satisfies the InvitationRepo Protocol using PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, invitation: CourseInvitation) -> None:
        row = CourseInvitationRow(
            id=invitation.id,
            course_id=invitation.course_id,
            teacher_id=invitation.teacher_id,
            token_hash=invitation.token_hash,
            email=invitation.email,
            expires_at=invitation.expires_at,
            is_used=invitation.is_used,
            created_at=invitation.created_at,
        )
        async with store_session(
            self._session_factory, "add_invitation", write=True
        ) as session:
            session.add(row)

    async def get_by_token_hash(self, token_hash: str) -> CourseInvitation | None:
        stmt = select(CourseInvitationRow).where(
            CourseInvitationRow.token_hash == token_hash
        )
        async with store_session(self._session_factory, "get_invitation") as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_invitation(row)

    async def redeem(self, invitation_id: UUID, enrollment: Enrollment) -> bool:
        """Atomically mark the invitation used and insert the enrollment.

        The conditional UPDATE is the guard: if a concurrent accept won
        the race, rowcount is 0 and no enrollment is written.
        """
        async with store_session(
            self._session_factory, "redeem_invitation", write=True
        ) as session:
            result = await session.execute(
                update(CourseInvitationRow)
                .where(CourseInvitationRow.id == invitation_id)
                .where(CourseInvitationRow.is_used.is_(False))
                .values(is_used=True)
            )
            if result.rowcount == 0:
                return False
            session.add(
                EnrollmentRow(
                    user_id=enrollment.user_id,
                    course_id=enrollment.course_id,
                    role=enrollment.role,
                    status=enrollment.status,
                    enrolled_at=enrollment.enrolled_at,
                )
            )
        return True


def _row_to_invitation(row: CourseInvitationRow) -> CourseInvitation:
    return CourseInvitation(
        id=row.id,
        course_id=row.course_id,
        teacher_id=str(row.teacher_id),
        token_hash=row.token_hash,
        email=row.email,
        expires_at=row.expires_at,
        is_used=row.is_used,
        created_at=row.created_at,
    )
