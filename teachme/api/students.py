"""Student roster endpoints.

All reads are open to anonymous callers; a bearer token, when sent,
must verify (see ``optional_user``) and names the actor in the audit
log.  Store failures surface as a 500 with a per-endpoint message; the
underlying error is only logged.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from teachme.api.dependencies import (
    get_request_audit,
    get_students_service,
    optional_user,
)
from teachme.api.envelope import ApiResponse
from teachme.db.session import StoreError
from teachme.models.course import CompletedCourse
from teachme.models.progress import ProgressRecord, ProgressSummary
from teachme.models.student import StudentWithCourses
from teachme.services.audit_service import RequestAudit
from teachme.services.students_service import StudentNotFoundError, StudentsService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/students",
    tags=["students"],
    dependencies=[Depends(optional_user)],
)

Service = Annotated[StudentsService, Depends(get_students_service)]
Audit = Annotated[RequestAudit, Depends(get_request_audit)]


class StudentCourseOut(BaseModel):
    id: int
    title: str
    progress: int
    status: str


class StudentOut(BaseModel):
    id: str
    email: str
    full_name: str | None
    gender: str | None
    phone_number: str | None
    profile_picture_url: str | None
    bio: str | None
    language_preference: str | None
    created_at: datetime | None
    courses: list[StudentCourseOut]


class CourseProgressOut(BaseModel):
    course_id: int
    progress: int
    completed_items: int
    total_items: int
    status: str


class ProgressSummaryOut(BaseModel):
    student_id: str
    total_courses: int
    completed_courses: int
    in_progress_courses: int
    average_progress: int
    courses: list[CourseProgressOut]


class CompletedCourseOut(BaseModel):
    id: int
    title: str
    description: str | None
    completed_at: datetime | None
    total_content_items: int
    completed_content_items: int
    completion_percentage: int


class ProgressRecordOut(BaseModel):
    id: int | None
    course_id: int
    content_item_id: int | None
    status: str
    completion_percentage: float
    time_spent_seconds: int
    last_interaction: datetime | None


def student_out(item: StudentWithCourses) -> StudentOut:
    s = item.student
    return StudentOut(
        id=s.id,
        email=s.email,
        full_name=s.full_name,
        gender=s.gender,
        phone_number=s.phone_number,
        profile_picture_url=s.profile_picture_url,
        bio=s.bio,
        language_preference=s.language_preference,
        created_at=s.created_at,
        courses=[
            StudentCourseOut(id=c.id, title=c.title, progress=c.progress, status=c.status)
            for c in item.courses
        ],
    )


def _summary_out(summary: ProgressSummary) -> ProgressSummaryOut:
    return ProgressSummaryOut(
        student_id=summary.student_id,
        total_courses=summary.total_courses,
        completed_courses=summary.completed_courses,
        in_progress_courses=summary.in_progress_courses,
        average_progress=summary.average_progress,
        courses=[
            CourseProgressOut(
                course_id=c.course_id,
                progress=c.progress,
                completed_items=c.completed_items,
                total_items=c.total_items,
                status=c.status,
            )
            for c in summary.courses
        ],
    )


def _completed_out(c: CompletedCourse) -> CompletedCourseOut:
    return CompletedCourseOut(
        id=c.id,
        title=c.title,
        description=c.description,
        completed_at=c.completed_at,
        total_content_items=c.total_content_items,
        completed_content_items=c.completed_content_items,
        completion_percentage=c.completion_percentage,
    )


def _record_out(r: ProgressRecord) -> ProgressRecordOut:
    return ProgressRecordOut(
        id=r.id,
        course_id=r.course_id,
        content_item_id=r.content_item_id,
        status=r.status,
        completion_percentage=r.completion_percentage,
        time_spent_seconds=r.time_spent_seconds,
        last_interaction=r.last_interaction,
    )


def _store_failure(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message
    )


@router.get(
    "",
    response_model=ApiResponse[list[StudentOut]],
    response_model_exclude_unset=True,
)
async def list_students(service: Service, audit: Audit) -> ApiResponse[list[StudentOut]]:
    try:
        items = await service.list_students()
    except StoreError:
        logger.exception("Error fetching students")
        raise _store_failure("Failed to fetch students") from None

    audit.log("view_students_list", table="users", details={"count": len(items)})
    return ApiResponse(
        success=True, data=[student_out(i) for i in items], count=len(items)
    )


# Registered before /{student_id} so "search" is never taken for an ID.
@router.get(
    "/search",
    response_model=ApiResponse[list[StudentOut]],
    response_model_exclude_unset=True,
)
async def search_students(
    service: Service, audit: Audit, q: str | None = None
) -> ApiResponse[list[StudentOut]]:
    if q is None or not q.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Search query is required",
        )
    try:
        items = await service.search_students(q)
    except StoreError:
        logger.exception("Error searching students q=%r", q)
        raise _store_failure("Failed to search students") from None

    audit.log(
        "search_students",
        table="users",
        details={"query": q.strip(), "results": len(items)},
    )
    return ApiResponse(
        success=True, data=[student_out(i) for i in items], count=len(items)
    )


@router.get(
    "/{student_id}",
    response_model=ApiResponse[StudentOut],
    response_model_exclude_unset=True,
)
async def get_student(
    student_id: str, service: Service, audit: Audit
) -> ApiResponse[StudentOut]:
    try:
        item = await service.get_student(student_id)
    except StudentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Student not found"
        ) from None
    except StoreError:
        logger.exception("Error fetching student=%s", student_id)
        raise _store_failure("Failed to fetch student data") from None

    audit.log("view_student", table="users", target_id=student_id)
    return ApiResponse(success=True, data=student_out(item))


@router.get(
    "/{student_id}/progress",
    response_model=ApiResponse[ProgressSummaryOut],
    response_model_exclude_unset=True,
)
async def get_student_progress(
    student_id: str, service: Service, audit: Audit
) -> ApiResponse[ProgressSummaryOut]:
    try:
        summary = await service.get_progress_summary(student_id)
    except StoreError:
        logger.exception("Error fetching progress for student=%s", student_id)
        raise _store_failure("Failed to fetch student progress") from None

    audit.log(
        "view_student_progress",
        table="user_progress",
        target_id=student_id,
        details={"total_courses": summary.total_courses},
    )
    return ApiResponse(success=True, data=_summary_out(summary))


@router.get(
    "/{student_id}/completed-courses",
    response_model=ApiResponse[list[CompletedCourseOut]],
    response_model_exclude_unset=True,
)
async def get_completed_courses(
    student_id: str, service: Service, audit: Audit
) -> ApiResponse[list[CompletedCourseOut]]:
    try:
        courses = await service.list_completed_courses(student_id)
    except StudentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Student not found"
        ) from None
    except StoreError:
        logger.exception("Error fetching completed courses for student=%s", student_id)
        raise _store_failure("Failed to fetch completed courses") from None

    audit.log(
        "view_completed_courses",
        table="enrollments",
        target_id=student_id,
        details={"count": len(courses)},
    )
    return ApiResponse(
        success=True, data=[_completed_out(c) for c in courses], count=len(courses)
    )


@router.get(
    "/{student_id}/courses/{course_id}/progress",
    response_model=ApiResponse[list[ProgressRecordOut]],
    response_model_exclude_unset=True,
)
async def get_course_progress(
    student_id: str, course_id: int, service: Service, audit: Audit
) -> ApiResponse[list[ProgressRecordOut]]:
    try:
        rows = await service.list_course_progress(student_id, course_id)
    except StoreError:
        logger.exception(
            "Error fetching progress for student=%s course=%s", student_id, course_id
        )
        raise _store_failure("Failed to fetch course progress") from None

    audit.log(
        "view_course_progress",
        table="user_progress",
        target_id=student_id,
        details={"course_id": course_id, "records": len(rows)},
    )
    return ApiResponse(
        success=True, data=[_record_out(r) for r in rows], count=len(rows)
    )
