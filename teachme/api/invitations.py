from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from teachme.api.dependencies import (
    get_invitations_service,
    get_request_audit,
    require_user,
)
from teachme.api.envelope import ApiResponse
from teachme.db.session import StoreError
from teachme.models.principal import Principal
from teachme.services import invitations_service
from teachme.services.audit_service import RequestAudit
from teachme.services.invitations_service import InvitationsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invitations", tags=["invitations"])


class EnrollmentOut(BaseModel):
    user_id: str
    course_id: int
    role: str
    status: str
    enrolled_at: datetime | None


# Service error -> (status, caller-facing message)
_ERRORS: dict[type[Exception], tuple[int, str]] = {
    invitations_service.InvitationNotFoundError: (
        status.HTTP_404_NOT_FOUND,
        "Invitation not found",
    ),
    invitations_service.InvitationExpiredError: (
        status.HTTP_410_GONE,
        "This invitation has expired",
    ),
    invitations_service.InvitationUsedError: (
        status.HTTP_409_CONFLICT,
        "This invitation has already been used",
    ),
    invitations_service.InvitationEmailMismatchError: (
        status.HTTP_403_FORBIDDEN,
        "This invitation was sent to a different email address",
    ),
    invitations_service.AlreadyEnrolledError: (
        status.HTTP_409_CONFLICT,
        "Already enrolled in this course",
    ),
}


@router.post(
    "/{token}/accept",
    response_model=ApiResponse[EnrollmentOut],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def accept_invitation(
    token: str,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[InvitationsService, Depends(get_invitations_service)],
    audit: Annotated[RequestAudit, Depends(get_request_audit)],
) -> ApiResponse[EnrollmentOut]:
    try:
        enrollment = await service.accept_invitation(token, principal)
    except tuple(_ERRORS) as e:
        code, message = _ERRORS[type(e)]
        logger.warning(
            "Invitation accept rejected user=%s reason=%s",
            principal.user_id,
            type(e).__name__,
        )
        raise HTTPException(status_code=code, detail=message) from None
    except StoreError:
        logger.exception("Error accepting invitation user=%s", principal.user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to accept invitation",
        ) from None

    audit.log(
        "accept_invitation",
        table="enrollments",
        target_id=enrollment.course_id,
        details={"user_id": principal.user_id},
    )
    return ApiResponse(
        success=True,
        data=EnrollmentOut(
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            role=enrollment.role,
            status=enrollment.status,
            enrolled_at=enrollment.enrolled_at,
        ),
        message="Enrolled in course",
    )
