from __future__ import annotations

import os
import sys
import time
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

# Ensure repo root is on sys.path so `import teachme` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are read once at import time; pin them before teachme loads.
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = ""
os.environ["JWT_SECRET"] = "test-secret-at-least-32-bytes-long!!"
os.environ["JWT_AUDIENCE"] = "authenticated"

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from teachme.main import app  # noqa: E402
from teachme.models.course import Course, Enrollment  # noqa: E402
from teachme.models.progress import ProgressRecord  # noqa: E402
from teachme.models.student import Student  # noqa: E402
from teachme.repos.audit_repo import InMemoryAuditLogRepo  # noqa: E402
from teachme.repos.student_store import InMemoryStudentStore  # noqa: E402


SECRET = os.environ["JWT_SECRET"]

ALICE = "11111111-1111-4111-8111-111111111111"
BOB = "22222222-2222-4222-8222-222222222222"
TEACHER = "33333333-3333-4333-8333-333333333333"

MATH = 1
PHYSICS = 2


@pytest.fixture
def client() -> Iterator[TestClient]:
    # Context manager form runs the lifespan: stores and audit logger
    # are attached to app.state for the duration of the test.
    with TestClient(app) as c:
        yield c


@pytest.fixture
def store(client: TestClient) -> InMemoryStudentStore:
    s: InMemoryStudentStore = app.state.student_store
    s.clear()
    return s


@pytest.fixture
def audit_repo(client: TestClient) -> InMemoryAuditLogRepo:
    repo: InMemoryAuditLogRepo = app.state.audit_repo
    repo.clear()
    return repo


def drain_audit(client: TestClient) -> None:
    """Wait for fire-and-forget audit writes scheduled by past requests."""
    client.portal.call(app.state.audit_logger.drain)


def mint_token(
    sub: str = ALICE,
    role: str | None = None,
    email: str | None = None,
    *,
    expires_in: int = 300,
    secret: str = SECRET,
    audience: str = "authenticated",
) -> str:
    """HS256 token shaped like the hosted auth provider's access tokens."""
    now = int(time.time())
    claims: dict[str, object] = {
        "sub": sub,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        "role": "authenticated",
        "session_id": f"session-{sub[:8]}",
    }
    if role is not None:
        claims["app_metadata"] = {"role": role}
    if email is not None:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm="HS256")


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def teacher_headers() -> dict[str, str]:
    return auth(mint_token(TEACHER, role="teacher", email="teacher@example.com"))


def seed_roster(store: InMemoryStudentStore) -> None:
    """Two students, two courses.

    Alice: Math at 100 and 50 (-> 75), Physics with no rows (-> 0).
    Bob: Math at 100 (-> 100), joined after Alice.
    """
    store.add_student(
        Student(
            id=ALICE,
            email="alice@example.com",
            full_name="Alice Anderson",
            bio="Loves algebra",
            created_at=_ts(1),
        )
    )
    store.add_student(
        Student(
            id=BOB,
            email="bob@example.com",
            full_name="Bob Brown",
            created_at=_ts(2),
        )
    )
    store.add_course(Course(id=MATH, title="Algebra I", status="published"))
    store.add_course(Course(id=PHYSICS, title="Physics 101", status="published"))
    store.add_enrollment(Enrollment(user_id=ALICE, course_id=MATH))
    store.add_enrollment(Enrollment(user_id=ALICE, course_id=PHYSICS))
    store.add_enrollment(Enrollment(user_id=BOB, course_id=MATH))
    store.add_progress(
        ProgressRecord(
            user_id=ALICE,
            course_id=MATH,
            content_item_id=1,
            completion_percentage=100,
            status="completed",
            last_interaction=_ts(3),
        )
    )
    store.add_progress(
        ProgressRecord(
            user_id=ALICE,
            course_id=MATH,
            content_item_id=2,
            completion_percentage=50,
            status="in_progress",
            last_interaction=_ts(4),
        )
    )
    store.add_progress(
        ProgressRecord(
            user_id=BOB,
            course_id=MATH,
            content_item_id=1,
            completion_percentage=100,
            status="completed",
            last_interaction=_ts(5),
        )
    )


@pytest.fixture
def roster(store: InMemoryStudentStore) -> InMemoryStudentStore:
    seed_roster(store)
    return store


def _ts(day: int) -> datetime:
    return datetime(2026, 1, day, 12, 0, tzinfo=UTC)
