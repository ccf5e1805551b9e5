"""Smoke test: walk every read endpoint of a running instance.

Run with (httpx comes from the `scripts` extra: pip install -e ".[scripts]"):
    uvicorn teachme.main:app --port 3001
    BASE_URL=http://localhost:3001 python scripts/smoke_api.py

Prints status and message (or record count) per call.  Exits non-zero
if any call answers 5xx.
"""

from __future__ import annotations

import os
import sys

import httpx

BASE_URL = os.getenv("BASE_URL", "http://localhost:3001")


def _summary(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return f"{len(r.content)} bytes"
    if not isinstance(body, dict):
        return "?"
    if "count" in body:
        return f"count={body['count']}"
    return str(body.get("message") or body.get("status") or "")


def main() -> int:
    failures = 0
    with httpx.Client(base_url=BASE_URL, timeout=10.0) as client:

        def call(label: str, path: str, **params: str) -> httpx.Response:
            nonlocal failures
            r = client.get(path, params=params or None)
            print(f"{label:<28} GET {path:<48} → {r.status_code}  {_summary(r)}")
            if r.status_code >= 500:
                failures += 1
            return r

        # ── Service ─────────────────────────────────────────────────
        call("info", "/")
        call("liveness", "/health")
        call("readiness", "/ready")

        # ── Roster ──────────────────────────────────────────────────
        r = call("students", "/api/students")
        students = (r.json().get("data") or []) if r.status_code == 200 else []
        call("search", "/api/students/search", q="a")
        call("search (blank q)", "/api/students/search", q=" ")

        if students:
            student_id = students[0]["id"]
            call("student", f"/api/students/{student_id}")
            call("progress summary", f"/api/students/{student_id}/progress")
            call("completed courses", f"/api/students/{student_id}/completed-courses")
            for course in students[0]["courses"]:
                call(
                    "course progress",
                    f"/api/students/{student_id}/courses/{course['id']}/progress",
                )
                call("course roster", f"/api/courses/{course['id']}/students")
        else:
            print("No students returned; skipping per-student endpoints")

        call("unknown student", "/api/students/00000000-0000-0000-0000-000000000000")
        call("unknown route", "/api/nope")

    print(f"\n{failures} server error(s)")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
