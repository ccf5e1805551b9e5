"""Tests for the student roster endpoints."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi.testclient import TestClient

from teachme.db.session import StoreError
from teachme.main import app
from teachme.models.course import Enrollment
from teachme.models.progress import ProgressRecord
from teachme.models.student import Student
from teachme.repos.student_store import InMemoryStudentStore
from tests.conftest import ALICE, BOB, MATH, PHYSICS, auth, mint_token, seed_roster


class _FailingStore(InMemoryStudentStore):
    """Store whose listed operations raise StoreError."""

    def __init__(self, *failing: str) -> None:
        super().__init__()
        self._failing = set(failing)

    def _maybe_fail(self, operation: str) -> None:
        if operation in self._failing:
            raise StoreError(operation)

    async def list_students(self):
        self._maybe_fail("list_students")
        return await super().list_students()

    async def search_students(self, query):
        self._maybe_fail("search_students")
        return await super().search_students(query)

    async def get_student(self, student_id):
        self._maybe_fail("get_student")
        return await super().get_student(student_id)

    async def list_student_enrollments(self, user_id, *, status="active"):
        self._maybe_fail("list_student_enrollments")
        return await super().list_student_enrollments(user_id, status=status)

    async def list_progress(self, user_id, course_id):
        self._maybe_fail("list_progress")
        return await super().list_progress(user_id, course_id)


def _install(store: InMemoryStudentStore) -> InMemoryStudentStore:
    app.state.student_store = store
    return store


# ---- GET /api/students ----


def test_list_students_envelope_and_order(client: TestClient, roster) -> None:
    resp = client.get("/api/students")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert "message" not in body
    # Newest first: Bob joined after Alice
    assert [s["id"] for s in body["data"]] == [BOB, ALICE]


def test_list_students_course_progress(client: TestClient, roster) -> None:
    body = client.get("/api/students").json()
    alice = next(s for s in body["data"] if s["id"] == ALICE)
    assert alice["full_name"] == "Alice Anderson"
    assert alice["email"] == "alice@example.com"
    assert alice["courses"] == [
        {"id": MATH, "title": "Algebra I", "progress": 75, "status": "active"},
        {"id": PHYSICS, "title": "Physics 101", "progress": 0, "status": "active"},
    ]


def test_list_students_empty(client: TestClient, store) -> None:
    body = client.get("/api/students").json()
    assert body == {"success": True, "data": [], "count": 0}


def test_list_students_excludes_soft_deleted(client: TestClient, roster) -> None:
    roster.add_student(
        Student(
            id="44444444-4444-4444-8444-444444444444",
            email="gone@example.com",
            deleted_at=datetime(2026, 1, 9, tzinfo=UTC),
        )
    )
    body = client.get("/api/students").json()
    assert body["count"] == 2


def test_list_students_store_failure_is_500(client: TestClient) -> None:
    _install(_FailingStore("list_students"))
    resp = client.get("/api/students")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Failed to fetch students"}


def test_list_students_degrades_on_enrollment_failure(client: TestClient) -> None:
    store = _install(_FailingStore("list_student_enrollments"))
    seed_roster(store)
    body = client.get("/api/students").json()
    assert body["count"] == 2
    assert all(s["courses"] == [] for s in body["data"])


def test_list_students_degrades_on_progress_failure(client: TestClient) -> None:
    store = _install(_FailingStore("list_progress"))
    seed_roster(store)
    body = client.get("/api/students").json()
    alice = next(s for s in body["data"] if s["id"] == ALICE)
    assert [c["progress"] for c in alice["courses"]] == [0, 0]


# ---- GET /api/students/search ----


def test_search_matches_bio_case_insensitive(client: TestClient, roster) -> None:
    resp = client.get("/api/students/search", params={"q": "ALGEBRA"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 1
    assert body["data"][0]["id"] == ALICE
    # Search results carry the same course detail as the roster
    assert body["data"][0]["courses"][0]["title"] == "Algebra I"


def test_search_matches_name_only(client: TestClient, roster) -> None:
    # "anderson" appears in Alice's full name and nowhere in her email or bio
    body = client.get("/api/students/search", params={"q": "anderson"}).json()
    assert [s["id"] for s in body["data"]] == [ALICE]


def test_search_matches_email(client: TestClient, roster) -> None:
    body = client.get("/api/students/search", params={"q": "bob@"}).json()
    assert [s["id"] for s in body["data"]] == [BOB]


def test_search_no_match(client: TestClient, roster) -> None:
    body = client.get("/api/students/search", params={"q": "zzz"}).json()
    assert body == {"success": True, "data": [], "count": 0}


def test_search_requires_query(client: TestClient, roster) -> None:
    resp = client.get("/api/students/search")
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Search query is required"}


def test_search_rejects_blank_query(client: TestClient, roster) -> None:
    resp = client.get("/api/students/search", params={"q": "   "})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Search query is required"


def test_search_store_failure_is_500(client: TestClient) -> None:
    _install(_FailingStore("search_students"))
    resp = client.get("/api/students/search", params={"q": "a"})
    assert resp.status_code == 500
    assert resp.json()["message"] == "Failed to search students"


# ---- GET /api/students/{id} ----


def test_get_student(client: TestClient, roster) -> None:
    resp = client.get(f"/api/students/{ALICE}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert "count" not in body
    assert body["data"]["id"] == ALICE
    assert body["data"]["bio"] == "Loves algebra"
    assert [c["progress"] for c in body["data"]["courses"]] == [75, 0]


def test_get_student_not_found(client: TestClient, roster) -> None:
    resp = client.get("/api/students/99999999-9999-4999-8999-999999999999")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Student not found"}


def test_get_student_store_failure_is_500_not_404(client: TestClient) -> None:
    _install(_FailingStore("get_student"))
    resp = client.get(f"/api/students/{ALICE}")
    assert resp.status_code == 500
    assert resp.json()["message"] == "Failed to fetch student data"


def test_get_student_enrollment_failure_is_500(client: TestClient) -> None:
    store = _install(_FailingStore("list_student_enrollments"))
    seed_roster(store)
    resp = client.get(f"/api/students/{ALICE}")
    assert resp.status_code == 500


# ---- GET /api/students/{id}/progress ----


def test_progress_summary(client: TestClient, roster) -> None:
    resp = client.get(f"/api/students/{ALICE}/progress")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["student_id"] == ALICE
    assert data["total_courses"] == 2
    assert data["completed_courses"] == 0
    assert data["in_progress_courses"] == 1
    # (75 + 0) / 2 = 37.5, halves round up
    assert data["average_progress"] == 38
    math = next(c for c in data["courses"] if c["course_id"] == MATH)
    assert math == {
        "course_id": MATH,
        "progress": 75,
        "completed_items": 1,
        "total_items": 2,
        "status": "active",
    }


def test_progress_summary_unknown_student_is_empty(client: TestClient, roster) -> None:
    data = client.get("/api/students/nobody/progress").json()["data"]
    assert data["total_courses"] == 0
    assert data["average_progress"] == 0
    assert data["courses"] == []


def test_progress_summary_store_failure_is_500(client: TestClient) -> None:
    _install(_FailingStore("list_student_enrollments"))
    resp = client.get(f"/api/students/{ALICE}/progress")
    assert resp.status_code == 500
    assert resp.json()["message"] == "Failed to fetch student progress"


# ---- GET /api/students/{id}/completed-courses ----


def test_completed_courses(client: TestClient, roster) -> None:
    roster.add_enrollment(
        Enrollment(
            user_id=BOB,
            course_id=PHYSICS,
            status="completed",
            completed_at=datetime(2026, 2, 1, tzinfo=UTC),
        )
    )
    roster.add_progress(
        ProgressRecord(user_id=BOB, course_id=PHYSICS, status="completed")
    )
    roster.add_progress(
        ProgressRecord(user_id=BOB, course_id=PHYSICS, status="in_progress")
    )
    resp = client.get(f"/api/students/{BOB}/completed-courses")
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 1
    course = body["data"][0]
    assert course["id"] == PHYSICS
    assert course["title"] == "Physics 101"
    assert course["total_content_items"] == 2
    assert course["completed_content_items"] == 1
    assert course["completion_percentage"] == 50


def test_completed_courses_unknown_student(client: TestClient, roster) -> None:
    resp = client.get("/api/students/nobody/completed-courses")
    assert resp.status_code == 404
    assert resp.json()["message"] == "Student not found"


# ---- GET /api/students/{id}/courses/{course_id}/progress ----


def test_course_progress_latest_first(client: TestClient, roster) -> None:
    resp = client.get(f"/api/students/{ALICE}/courses/{MATH}/progress")
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 2
    assert [r["content_item_id"] for r in body["data"]] == [2, 1]


def test_course_progress_non_integer_course(client: TestClient, roster) -> None:
    resp = client.get(f"/api/students/{ALICE}/courses/abc/progress")
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Invalid request parameters"}


# ---- auth on open reads ----


def test_reads_accept_valid_token(client: TestClient, roster) -> None:
    resp = client.get("/api/students", headers=auth(mint_token(role="student")))
    assert resp.status_code == 200


def test_reads_reject_invalid_token(client: TestClient, roster) -> None:
    resp = client.get("/api/students", headers=auth("not-a-jwt"))
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Invalid token"}
    assert resp.headers["www-authenticate"] == "Bearer"


def test_reads_reject_expired_token(client: TestClient, roster) -> None:
    resp = client.get("/api/students", headers=auth(mint_token(expires_in=-60)))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token expired"


def test_reads_reject_wrong_audience(client: TestClient, roster) -> None:
    resp = client.get(
        "/api/students", headers=auth(mint_token(audience="someone-else"))
    )
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid token"


def test_reads_reject_forged_signature(client: TestClient, roster) -> None:
    forged = mint_token(secret="another-secret-that-is-32-bytes-long")
    resp = client.get("/api/students", headers=auth(forged))
    assert resp.status_code == 401
