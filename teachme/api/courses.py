from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from teachme.api.dependencies import (
    get_invitations_service,
    get_request_audit,
    get_students_service,
    optional_user,
    require_teacher,
)
from teachme.api.envelope import ApiResponse
from teachme.api.students import StudentOut, student_out
from teachme.db.session import StoreError
from teachme.models.principal import Principal
from teachme.services.audit_service import RequestAudit
from teachme.services.invitations_service import InvitationsService
from teachme.services.students_service import (
    CourseNotFoundError,
    EnrollmentNotFoundError,
    StudentsService,
)

logger = logging.getLogger(__name__)

# Course-scoped endpoints: roster (open), removal and invitations (teacher/admin)

router = APIRouter(prefix="/api/courses", tags=["courses"])

Audit = Annotated[RequestAudit, Depends(get_request_audit)]


class InvitationCreateIn(BaseModel):
    email: str | None = None


class InvitationOut(BaseModel):
    id: UUID
    course_id: int
    email: str | None
    expires_at: datetime
    invitation_token: str


@router.get(
    "/{course_id}/students",
    response_model=ApiResponse[list[StudentOut]],
    response_model_exclude_unset=True,
    dependencies=[Depends(optional_user)],
)
async def list_course_students(
    course_id: int,
    service: Annotated[StudentsService, Depends(get_students_service)],
    audit: Audit,
) -> ApiResponse[list[StudentOut]]:
    try:
        items = await service.list_course_students(course_id)
    except CourseNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Course not found"
        ) from None
    except StoreError:
        logger.exception("Error fetching students for course=%s", course_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch course students",
        ) from None

    audit.log(
        "view_course_students",
        table="enrollments",
        target_id=course_id,
        details={"count": len(items)},
    )
    return ApiResponse(
        success=True, data=[student_out(i) for i in items], count=len(items)
    )


@router.delete(
    "/{course_id}/students/{student_id}",
    response_model=ApiResponse[None],
    response_model_exclude_unset=True,
)
async def remove_student(
    course_id: int,
    student_id: str,
    teacher: Annotated[Principal, Depends(require_teacher)],
    service: Annotated[StudentsService, Depends(get_students_service)],
    audit: Audit,
) -> ApiResponse[None]:
    try:
        await service.remove_student(course_id, student_id)
    except EnrollmentNotFoundError:
        logger.warning(
            "Remove rejected: no enrollment student=%s course=%s by=%s",
            student_id,
            course_id,
            teacher.user_id,
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Enrollment not found"
        ) from None
    except StoreError:
        logger.exception(
            "Error removing student=%s from course=%s", student_id, course_id
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove student from course",
        ) from None

    audit.log(
        "remove_student",
        table="enrollments",
        target_id=student_id,
        details={"course_id": course_id},
    )
    return ApiResponse(success=True, message="Student removed from course")


@router.post(
    "/{course_id}/invitations",
    response_model=ApiResponse[InvitationOut],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_invitation(
    course_id: int,
    teacher: Annotated[Principal, Depends(require_teacher)],
    service: Annotated[InvitationsService, Depends(get_invitations_service)],
    audit: Audit,
    payload: InvitationCreateIn | None = None,
) -> ApiResponse[InvitationOut]:
    email = payload.email if payload is not None else None
    try:
        issued = await service.create_invitation(course_id, teacher, email=email)
    except CourseNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Course not found"
        ) from None
    except StoreError:
        logger.exception("Error creating invitation for course=%s", course_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create invitation",
        ) from None

    inv = issued.invitation
    audit.log(
        "create_invitation",
        table="course_invitations",
        target_id=str(inv.id),
        details={"course_id": course_id, "email": inv.email},
    )
    return ApiResponse(
        success=True,
        data=InvitationOut(
            id=inv.id,
            course_id=inv.course_id,
            email=inv.email,
            expires_at=inv.expires_at,
            invitation_token=issued.token,
        ),
    )
