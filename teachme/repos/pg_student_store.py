"""PostgreSQL implementation of StudentStore."""

from __future__ import annotations

import uuid

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teachme.db.session import store_session
from teachme.db.tables import CourseRow, EnrollmentRow, UserProgressRow, UserRow
from teachme.models.course import Course, Enrollment
from teachme.models.progress import ProgressRecord
from teachme.models.student import Student


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


_INT4_MAX = 2**31 - 1


def _is_int4(value: int) -> bool:
    """courses.id is a 32-bit serial; asyncpg refuses to bind anything wider."""
    return -_INT4_MAX - 1 <= value <= _INT4_MAX


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class PgStudentStore:
    """Satisfies the StudentStore Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_students(self) -> list[Student]:
        stmt = (
            select(UserRow)
            .where(UserRow.deleted_at.is_(None))
            .order_by(UserRow.created_at.desc())
        )
        async with store_session(self._session_factory, "list_students") as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_row_to_student(r) for r in rows]

    async def search_students(self, query: str) -> list[Student]:
        pattern = _like_pattern(query)
        stmt = (
            select(UserRow)
            .where(UserRow.deleted_at.is_(None))
            .where(
                or_(
                    UserRow.full_name.ilike(pattern, escape="\\"),
                    UserRow.email.ilike(pattern, escape="\\"),
                    UserRow.bio.ilike(pattern, escape="\\"),
                )
            )
            .order_by(UserRow.created_at.desc())
        )
        async with store_session(self._session_factory, "search_students") as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_row_to_student(r) for r in rows]

    async def get_student(self, student_id: str) -> Student | None:
        # The users.id column is a UUID; anything else cannot match and
        # would otherwise surface as a driver error.
        if not _is_uuid(student_id):
            return None
        stmt = (
            select(UserRow)
            .where(UserRow.id == student_id)
            .where(UserRow.deleted_at.is_(None))
        )
        async with store_session(self._session_factory, "get_student") as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        return _row_to_student(row) if row is not None else None

    async def get_course(self, course_id: int) -> Course | None:
        if not _is_int4(course_id):
            return None
        stmt = select(CourseRow).where(CourseRow.id == course_id)
        async with store_session(self._session_factory, "get_course") as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return Course(
            id=row.id, title=row.title, description=row.description, status=row.status
        )

    async def list_student_enrollments(
        self, user_id: str, *, status: str = "active"
    ) -> list[Enrollment]:
        if not _is_uuid(user_id):
            return []
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id)
            .where(EnrollmentRow.role == "student")
            .where(EnrollmentRow.status == status)
            .order_by(EnrollmentRow.enrolled_at)
        )
        async with store_session(
            self._session_factory, "list_student_enrollments"
        ) as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_course_enrollments(self, course_id: int) -> list[Enrollment]:
        if not _is_int4(course_id):
            return []
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.course_id == course_id)
            .where(EnrollmentRow.role == "student")
            .where(EnrollmentRow.status == "active")
            .order_by(EnrollmentRow.enrolled_at)
        )
        async with store_session(
            self._session_factory, "list_course_enrollments"
        ) as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def get_enrollment(self, user_id: str, course_id: int) -> Enrollment | None:
        if not _is_uuid(user_id) or not _is_int4(course_id):
            return None
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id)
            .where(EnrollmentRow.course_id == course_id)
        )
        async with store_session(self._session_factory, "get_enrollment") as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def list_progress(self, user_id: str, course_id: int) -> list[ProgressRecord]:
        if not _is_uuid(user_id) or not _is_int4(course_id):
            return []
        stmt = (
            select(UserProgressRow)
            .where(UserProgressRow.user_id == user_id)
            .where(UserProgressRow.course_id == course_id)
        )
        async with store_session(self._session_factory, "list_progress") as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_row_to_progress(r) for r in rows]

    async def remove_enrollment(self, user_id: str, course_id: int) -> bool:
        if not _is_uuid(user_id) or not _is_int4(course_id):
            return False
        async with store_session(
            self._session_factory, "remove_enrollment", write=True
        ) as session:
            result = await session.execute(
                delete(EnrollmentRow)
                .where(EnrollmentRow.user_id == user_id)
                .where(EnrollmentRow.course_id == course_id)
            )
            if result.rowcount == 0:
                return False
            await session.execute(
                delete(UserProgressRow)
                .where(UserProgressRow.user_id == user_id)
                .where(UserProgressRow.course_id == course_id)
            )
        return True


def _row_to_student(row: UserRow) -> Student:
    return Student(
        id=str(row.id),
        email=row.email,
        full_name=row.full_name,
        gender=row.gender,
        phone_number=row.phone_number,
        profile_picture_url=row.profile_picture_url,
        bio=row.bio,
        language_preference=row.language_preference,
        created_at=row.created_at,
        deleted_at=row.deleted_at,
    )


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        user_id=str(row.user_id),
        course_id=row.course_id,
        role=row.role,
        status=row.status,
        enrolled_at=row.enrolled_at,
        completed_at=row.completed_at,
    )


def _row_to_progress(row: UserProgressRow) -> ProgressRecord:
    return ProgressRecord(
        id=row.id,
        user_id=str(row.user_id),
        course_id=row.course_id,
        content_item_id=row.content_item_id,
        status=row.status,
        completion_percentage=row.completion_percentage or 0,
        time_spent_seconds=row.time_spent_seconds,
        last_interaction=row.last_interaction,
    )
