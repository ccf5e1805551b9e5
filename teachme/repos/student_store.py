from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import UTC, datetime
from typing import Protocol

from teachme.models.course import Course, Enrollment
from teachme.models.progress import ProgressRecord
from teachme.models.student import Student


class StudentStore(Protocol):
    """Read access to users, courses, enrollments and progress rows.

    Implementations raise ``teachme.db.session.StoreError`` when the
    backing store fails.  "Not found" is always None / empty, never an
    exception.
    """

    async def list_students(self) -> list[Student]: ...
    async def search_students(self, query: str) -> list[Student]: ...
    async def get_student(self, student_id: str) -> Student | None: ...
    async def get_course(self, course_id: int) -> Course | None: ...
    async def list_student_enrollments(
        self, user_id: str, *, status: str = "active"
    ) -> list[Enrollment]: ...
    async def list_course_enrollments(self, course_id: int) -> list[Enrollment]: ...
    async def get_enrollment(self, user_id: str, course_id: int) -> Enrollment | None: ...
    async def list_progress(self, user_id: str, course_id: int) -> list[ProgressRecord]: ...
    async def remove_enrollment(self, user_id: str, course_id: int) -> bool: ...


def _newest_first(student: Student) -> float:
    created = student.created_at
    return -created.timestamp() if created is not None else 0.0


class InMemoryStudentStore:
    """Dict-backed store for dev and tests (no DATABASE_URL)."""

    def __init__(self) -> None:
        self._students: dict[str, Student] = {}
        self._courses: dict[int, Course] = {}
        self._enrollments: dict[tuple[str, int], Enrollment] = {}
        self._progress: list[ProgressRecord] = []
        self._enrollment_ids = itertools.count(1)
        self._progress_ids = itertools.count(1)

    # --- seeding (sync, used by dev seed data and tests) ---

    def add_student(self, student: Student) -> Student:
        if student.created_at is None:
            student = replace(student, created_at=datetime.now(UTC))
        self._students[student.id] = student
        return student

    def add_course(self, course: Course) -> Course:
        self._courses[course.id] = course
        return course

    def add_enrollment(self, enrollment: Enrollment) -> Enrollment:
        key = (enrollment.user_id, enrollment.course_id)
        if key in self._enrollments:
            raise ValueError("enrollment already exists")
        if enrollment.id is None:
            enrollment = replace(enrollment, id=next(self._enrollment_ids))
        if enrollment.enrolled_at is None:
            enrollment = replace(enrollment, enrolled_at=datetime.now(UTC))
        self._enrollments[key] = enrollment
        return enrollment

    def add_progress(self, record: ProgressRecord) -> ProgressRecord:
        if record.id is None:
            record = replace(record, id=next(self._progress_ids))
        self._progress.append(record)
        return record

    def clear(self) -> None:
        self._students.clear()
        self._courses.clear()
        self._enrollments.clear()
        self._progress.clear()

    # --- StudentStore ---

    async def list_students(self) -> list[Student]:
        live = [s for s in self._students.values() if not s.is_deleted]
        return sorted(live, key=_newest_first)

    async def search_students(self, query: str) -> list[Student]:
        return [s for s in await self.list_students() if s.matches(query)]

    async def get_student(self, student_id: str) -> Student | None:
        student = self._students.get(student_id)
        if student is None or student.is_deleted:
            return None
        return student

    async def get_course(self, course_id: int) -> Course | None:
        return self._courses.get(course_id)

    async def list_student_enrollments(
        self, user_id: str, *, status: str = "active"
    ) -> list[Enrollment]:
        return [
            e
            for e in self._enrollments.values()
            if e.user_id == user_id and e.role == "student" and e.status == status
        ]

    async def list_course_enrollments(self, course_id: int) -> list[Enrollment]:
        return [
            e
            for e in self._enrollments.values()
            if e.course_id == course_id and e.role == "student" and e.status == "active"
        ]

    async def get_enrollment(self, user_id: str, course_id: int) -> Enrollment | None:
        return self._enrollments.get((user_id, course_id))

    async def list_progress(self, user_id: str, course_id: int) -> list[ProgressRecord]:
        return [
            p
            for p in self._progress
            if p.user_id == user_id and p.course_id == course_id
        ]

    async def remove_enrollment(self, user_id: str, course_id: int) -> bool:
        if self._enrollments.pop((user_id, course_id), None) is None:
            return False
        self._progress[:] = [
            p
            for p in self._progress
            if not (p.user_id == user_id and p.course_id == course_id)
        ]
        return True
