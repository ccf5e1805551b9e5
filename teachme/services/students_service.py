"""Student, course and progress aggregation.

Every operation here is a stateless read-compute-respond cycle: fetch a
few rows through the StudentStore, derive course percentages, and
return read models that the API layer reshapes into JSON.

FAN-OUT
-------
A roster of N students with M courses each needs on the order of
N x (1 + 2M) store calls.  They run concurrently, but every call goes
through one semaphore per service instance (one instance per request),
so at most ``fanout_limit`` of them are in flight at once.

PARTIAL FAILURE
---------------
The primary query of each operation propagates ``StoreError``.  Failures
below it degrade a single record instead of the whole response:

  - a student's enrollments fail   -> that student gets ``courses=()``
  - a course lookup fails/misses   -> that course entry is dropped
  - a progress lookup fails        -> that course reports progress 0
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from teachme.core.metrics import DEGRADED_RECORDS
from teachme.db.session import StoreError
from teachme.models.course import CompletedCourse, Course, Enrollment, StudentCourse
from teachme.models.progress import CourseProgress, ProgressRecord, ProgressSummary
from teachme.models.student import Student, StudentWithCourses
from teachme.repos.student_store import StudentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StudentNotFoundError(Exception):
    pass


class CourseNotFoundError(Exception):
    pass


class EnrollmentNotFoundError(Exception):
    pass


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (non-negative input)."""
    return math.floor(value + 0.5)


def course_progress(percentages: Iterable[float]) -> int:
    """Mean completion percentage of a course's progress rows.

    0 when there are no rows.  Halves round up, so a student at 75% in
    one course and 0% in another averages to 38, not 37.
    """
    values = list(percentages)
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def _latest_first(record: ProgressRecord) -> float:
    stamp = record.last_interaction
    return -stamp.timestamp() if stamp is not None else math.inf


class StudentsService:
    def __init__(self, store: StudentStore, *, fanout_limit: int = 8) -> None:
        self._store = store
        self._slots = asyncio.Semaphore(fanout_limit)

    async def _call(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        async with self._slots:
            return await fn(*args, **kwargs)

    # ------------------------------------------------------------------
    # Degrading sub-fetches
    # ------------------------------------------------------------------

    async def _course_or_none(self, course_id: int) -> Course | None:
        try:
            course = await self._call(self._store.get_course, course_id)
        except StoreError:
            DEGRADED_RECORDS.labels(kind="course").inc()
            logger.warning("Course lookup failed course=%s", course_id, exc_info=True)
            return None
        if course is None:
            logger.warning("Enrollment points at missing course=%s", course_id)
        return course

    async def _progress_or_none(
        self, user_id: str, course_id: int
    ) -> list[ProgressRecord] | None:
        try:
            return await self._call(self._store.list_progress, user_id, course_id)
        except StoreError:
            DEGRADED_RECORDS.labels(kind="progress").inc()
            logger.warning(
                "Progress lookup failed student=%s course=%s",
                user_id,
                course_id,
                exc_info=True,
            )
            return None

    async def _student_course(
        self, user_id: str, enrollment: Enrollment
    ) -> StudentCourse | None:
        course, rows = await asyncio.gather(
            self._course_or_none(enrollment.course_id),
            self._progress_or_none(user_id, enrollment.course_id),
        )
        if course is None:
            return None
        return StudentCourse(
            id=course.id,
            title=course.title,
            progress=course_progress(r.completion_percentage for r in rows or ()),
            status=enrollment.status,
        )

    async def _courses_for(
        self, user_id: str, enrollments: list[Enrollment]
    ) -> tuple[StudentCourse, ...]:
        entries = await asyncio.gather(
            *(self._student_course(user_id, e) for e in enrollments)
        )
        return tuple(e for e in entries if e is not None)

    async def _with_courses(self, student: Student) -> StudentWithCourses:
        try:
            enrollments = await self._call(
                self._store.list_student_enrollments, student.id
            )
        except StoreError:
            DEGRADED_RECORDS.labels(kind="enrollments").inc()
            logger.warning(
                "Enrollment lookup failed student=%s", student.id, exc_info=True
            )
            return StudentWithCourses(student=student, courses=())
        courses = await self._courses_for(student.id, enrollments)
        return StudentWithCourses(student=student, courses=courses)

    # ------------------------------------------------------------------
    # Roster queries
    # ------------------------------------------------------------------

    async def list_students(self) -> list[StudentWithCourses]:
        """All live students, newest first, with per-course progress."""
        students = await self._call(self._store.list_students)
        return list(await asyncio.gather(*(self._with_courses(s) for s in students)))

    async def search_students(self, query: str) -> list[StudentWithCourses]:
        """Case-insensitive substring search over name, email and bio."""
        query = query.strip()
        if not query:
            raise ValueError("search query must be non-empty")
        students = await self._call(self._store.search_students, query)
        logger.debug("Search query=%r matched %d students", query, len(students))
        return list(await asyncio.gather(*(self._with_courses(s) for s in students)))

    async def get_student(self, student_id: str) -> StudentWithCourses:
        student = await self._call(self._store.get_student, student_id)
        if student is None:
            raise StudentNotFoundError(student_id)
        # Unlike the roster, a single lookup fails loudly when the
        # enrollments cannot be read.
        enrollments = await self._call(
            self._store.list_student_enrollments, student.id
        )
        courses = await self._courses_for(student.id, enrollments)
        return StudentWithCourses(student=student, courses=courses)

    async def list_course_students(self, course_id: int) -> list[StudentWithCourses]:
        """Students actively enrolled in one course, with that course's progress."""
        course = await self._call(self._store.get_course, course_id)
        if course is None:
            raise CourseNotFoundError(course_id)

        enrollments = await self._call(self._store.list_course_enrollments, course_id)

        async def _entry(enrollment: Enrollment) -> StudentWithCourses | None:
            try:
                student = await self._call(
                    self._store.get_student, enrollment.user_id
                )
            except StoreError:
                logger.warning(
                    "Student lookup failed student=%s course=%s",
                    enrollment.user_id,
                    course_id,
                    exc_info=True,
                )
                return None
            if student is None:
                return None
            rows = await self._progress_or_none(student.id, course_id)
            return StudentWithCourses(
                student=student,
                courses=(
                    StudentCourse(
                        id=course.id,
                        title=course.title,
                        progress=course_progress(
                            r.completion_percentage for r in rows or ()
                        ),
                        status=enrollment.status,
                    ),
                ),
            )

        entries = await asyncio.gather(*(_entry(e) for e in enrollments))
        return [e for e in entries if e is not None]

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def get_progress_summary(self, student_id: str) -> ProgressSummary:
        """Roll a student's active enrollments up into summary counters."""
        enrollments = await self._call(
            self._store.list_student_enrollments, student_id
        )

        async def _line(enrollment: Enrollment) -> CourseProgress:
            rows = await self._progress_or_none(student_id, enrollment.course_id)
            if rows is None:
                return CourseProgress(
                    course_id=enrollment.course_id,
                    progress=0,
                    completed_items=0,
                    total_items=0,
                    status="not_started",
                )
            return CourseProgress(
                course_id=enrollment.course_id,
                progress=course_progress(r.completion_percentage for r in rows),
                completed_items=sum(1 for r in rows if r.is_completed),
                total_items=len(rows),
                status=enrollment.status,
            )

        lines = tuple(await asyncio.gather(*(_line(e) for e in enrollments)))
        return ProgressSummary(
            student_id=student_id,
            total_courses=len(enrollments),
            completed_courses=sum(1 for c in lines if c.progress == 100),
            in_progress_courses=sum(1 for c in lines if 0 < c.progress < 100),
            average_progress=course_progress(c.progress for c in lines),
            courses=lines,
        )

    async def list_completed_courses(self, student_id: str) -> list[CompletedCourse]:
        """Courses the student finished, with item-level completion counts."""
        student = await self._call(self._store.get_student, student_id)
        if student is None:
            raise StudentNotFoundError(student_id)

        enrollments = await self._call(
            self._store.list_student_enrollments, student.id, status="completed"
        )

        async def _completed(enrollment: Enrollment) -> CompletedCourse | None:
            course, rows = await asyncio.gather(
                self._course_or_none(enrollment.course_id),
                self._progress_or_none(student.id, enrollment.course_id),
            )
            if course is None:
                return None
            rows = rows or []
            done = sum(1 for r in rows if r.is_completed)
            return CompletedCourse(
                id=course.id,
                title=course.title,
                description=course.description,
                completed_at=enrollment.completed_at,
                total_content_items=len(rows),
                completed_content_items=done,
                completion_percentage=(
                    round_half_up(done / len(rows) * 100) if rows else 0
                ),
            )

        entries = await asyncio.gather(*(_completed(e) for e in enrollments))
        return sorted(
            (e for e in entries if e is not None),
            key=lambda c: c.completed_at.timestamp() if c.completed_at else -math.inf,
            reverse=True,
        )

    async def list_course_progress(
        self, student_id: str, course_id: int
    ) -> list[ProgressRecord]:
        """Raw progress rows for one (student, course), most recent first."""
        rows = await self._call(self._store.list_progress, student_id, course_id)
        return sorted(rows, key=_latest_first)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def remove_student(self, course_id: int, student_id: str) -> None:
        """Drop a student's enrollment and its progress rows from a course."""
        removed = await self._call(self._store.remove_enrollment, student_id, course_id)
        if not removed:
            raise EnrollmentNotFoundError(f"{student_id}:{course_id}")
        logger.info("Removed student=%s from course=%s", student_id, course_id)
