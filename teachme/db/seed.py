"""Sample roster loaded into the in-memory store in dev (no DATABASE_URL).

Four students across two published courses, with enough progress rows
that every read endpoint returns something non-trivial.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from teachme.models.course import Course, Enrollment
from teachme.models.progress import ProgressRecord
from teachme.models.student import Student
from teachme.repos.student_store import InMemoryStudentStore

logger = logging.getLogger(__name__)

SARAH = "6f1c2a4e-0c55-4f43-9b0e-3f2b8a1d7c01"
MICHAEL = "a2d94b7f-5e61-4c8a-8f13-7d0e6b2c9e02"
EMILY = "c83e1f20-9b4d-4e7a-a6c5-1b9f0d3e8a03"
DAVID = "e4a7b6c9-2f08-4d1e-b3a2-5c6d7e8f9a04"

ML_COURSE = 1
WEB_COURSE = 2


def seed_sample_data(store: InMemoryStudentStore) -> None:
    now = datetime.now(UTC)

    students = (
        (60, Student(id=DAVID, email="david.kim@email.com", full_name="David Kim")),
        (
            45,
            Student(
                id=MICHAEL,
                email="michael.chen@email.com",
                full_name="Michael Chen",
                bio="Backend developer learning ML",
            ),
        ),
        (
            30,
            Student(
                id=SARAH,
                email="sarah.johnson@email.com",
                full_name="Sarah Johnson",
                gender="female",
                bio="Data analyst moving into machine learning",
            ),
        ),
        (
            20,
            Student(
                id=EMILY,
                email="emily.rodriguez@email.com",
                full_name="Emily Rodriguez",
                language_preference="es",
            ),
        ),
    )
    for days_ago, student in students:
        store.add_student(replace(student, created_at=now - timedelta(days=days_ago)))

    store.add_course(
        Course(
            id=ML_COURSE,
            title="Introduction to Machine Learning",
            description="Supervised learning, model evaluation and feature engineering.",
            status="published",
        )
    )
    store.add_course(
        Course(
            id=WEB_COURSE,
            title="Modern Web Development",
            description="HTTP, APIs and front-end fundamentals.",
            status="published",
        )
    )

    store.add_enrollment(Enrollment(user_id=SARAH, course_id=ML_COURSE))
    store.add_enrollment(Enrollment(user_id=SARAH, course_id=WEB_COURSE))
    store.add_enrollment(Enrollment(user_id=MICHAEL, course_id=ML_COURSE))
    store.add_enrollment(Enrollment(user_id=EMILY, course_id=WEB_COURSE))
    store.add_enrollment(
        Enrollment(
            user_id=DAVID,
            course_id=WEB_COURSE,
            status="completed",
            completed_at=now - timedelta(days=5),
        )
    )

    for user_id, course_id, item, pct, hours_ago in (
        (SARAH, ML_COURSE, 1, 100, 72),
        (SARAH, ML_COURSE, 2, 70, 48),
        (SARAH, WEB_COURSE, 1, 100, 30),
        (MICHAEL, ML_COURSE, 1, 100, 24),
        (MICHAEL, ML_COURSE, 2, 44, 20),
        (EMILY, WEB_COURSE, 1, 45, 72),
        (DAVID, WEB_COURSE, 1, 100, 200),
        (DAVID, WEB_COURSE, 2, 100, 130),
    ):
        store.add_progress(
            ProgressRecord(
                user_id=user_id,
                course_id=course_id,
                content_item_id=item,
                completion_percentage=pct,
                status="completed" if pct == 100 else "in_progress",
                time_spent_seconds=pct * 36,
                last_interaction=now - timedelta(hours=hours_ago),
            )
        )

    logger.info("Seeded in-memory store with sample students and courses")
