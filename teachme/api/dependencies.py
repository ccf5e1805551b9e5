from __future__ import annotations

import logging
from datetime import timedelta
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from teachme.core.config import SETTINGS
from teachme.models.audit import AuditContext
from teachme.models.principal import Principal
from teachme.repos.invitation_repo import InvitationRepo
from teachme.repos.student_store import StudentStore
from teachme.services import token_service
from teachme.services.audit_service import RequestAudit, client_ip
from teachme.services.invitations_service import InvitationsService
from teachme.services.students_service import StudentsService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Wiring: everything comes from app.state, populated by the lifespan
# ---------------------------------------------------------------------------


def get_student_store(request: Request) -> StudentStore:
    return request.app.state.student_store


def get_invitation_repo(request: Request) -> InvitationRepo:
    return request.app.state.invitation_repo


def get_students_service(
    store: Annotated[StudentStore, Depends(get_student_store)],
) -> StudentsService:
    # One instance per request: its fan-out semaphore bounds this request only.
    return StudentsService(store, fanout_limit=SETTINGS.fanout_limit)


def get_invitations_service(
    invitations: Annotated[InvitationRepo, Depends(get_invitation_repo)],
    store: Annotated[StudentStore, Depends(get_student_store)],
) -> InvitationsService:
    return InvitationsService(
        invitations, store, ttl=timedelta(days=SETTINGS.invitation_ttl_days)
    )


def get_request_audit(request: Request) -> RequestAudit:
    ctx: AuditContext | None = getattr(request.state, "audit_context", None)
    if ctx is None:
        ctx = AuditContext(
            request_id=request.headers.get("x-request-id") or "-",
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    return RequestAudit(getattr(request.app.state, "audit_logger", None), ctx)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def optional_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Principal | None:
    """Principal for a valid bearer token, None when no token is sent.

    A token that is present but does not verify is a 401, never a silent
    downgrade to anonymous.
    """
    if credentials is None:
        return None
    try:
        claims = token_service.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = token_service.principal_from_claims(claims)
    logger.debug(
        "Token validated for user=%s role=%s", principal.user_id, principal.role
    )
    return principal


def require_user(
    principal: Annotated[Principal | None, Depends(optional_user)],
) -> Principal:
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_any_role(roles: set[str]):
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_any_role({"teacher", "admin"}))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(roles):
            logger.warning(
                "Access denied: user=%s role=%s required_any=%s",
                principal.user_id,
                principal.role,
                sorted(roles),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


require_teacher = require_any_role({"teacher", "admin"})
