"""Course invitations: a teacher invites by email, the student accepts.

Tokens are random URL-safe strings handed to the teacher exactly once.
Only their SHA-256 hash is stored, the same way one-time codes are kept
elsewhere: a leaked table cannot be replayed.

Acceptance is checked in this order and each failure has its own error
so the API can say precisely why:

  not found -> expired -> already used -> wrong email -> already enrolled

The redeem step (mark used + create enrollment) is a single store call
that is atomic in both repo implementations.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from teachme.models.course import Enrollment
from teachme.models.invitation import CourseInvitation
from teachme.models.principal import Principal
from teachme.repos.invitation_repo import InvitationRepo
from teachme.repos.student_store import StudentStore
from teachme.services.students_service import CourseNotFoundError

logger = logging.getLogger(__name__)

_TOKEN_BYTES = 24


class InvitationNotFoundError(Exception):
    pass


class InvitationExpiredError(Exception):
    pass


class InvitationUsedError(Exception):
    pass


class InvitationEmailMismatchError(Exception):
    pass


class AlreadyEnrolledError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class IssuedInvitation:
    invitation: CourseInvitation
    token: str  # raw token, returned to the teacher once


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


class InvitationsService:
    def __init__(
        self,
        invitations: InvitationRepo,
        store: StudentStore,
        *,
        ttl: timedelta = timedelta(days=7),
    ) -> None:
        self._invitations = invitations
        self._store = store
        self._ttl = ttl

    async def create_invitation(
        self, course_id: int, teacher: Principal, email: str | None = None
    ) -> IssuedInvitation:
        if await self._store.get_course(course_id) is None:
            raise CourseNotFoundError(course_id)

        token = secrets.token_urlsafe(_TOKEN_BYTES)
        now = datetime.now(UTC)
        invitation = CourseInvitation.new(
            course_id=course_id,
            teacher_id=teacher.user_id,
            token_hash=hash_token(token),
            email=_normalize_email(email),
            expires_at=now + self._ttl,
            created_at=now,
        )
        await self._invitations.add(invitation)
        logger.info(
            "Invitation created course=%s teacher=%s invitation=%s",
            course_id,
            teacher.user_id,
            invitation.id,
        )
        return IssuedInvitation(invitation=invitation, token=token)

    async def accept_invitation(self, token: str, principal: Principal) -> Enrollment:
        invitation = await self._invitations.get_by_token_hash(hash_token(token))
        if invitation is None:
            logger.warning(
                "Unknown invitation token presented by user=%s", principal.user_id
            )
            raise InvitationNotFoundError()

        now = datetime.now(UTC)
        if invitation.is_expired(now):
            logger.warning("Expired invitation=%s", invitation.id)
            raise InvitationExpiredError(str(invitation.id))
        if invitation.is_used:
            logger.warning("Reused invitation=%s", invitation.id)
            raise InvitationUsedError(str(invitation.id))
        if invitation.email is not None and invitation.email != _normalize_email(
            principal.email
        ):
            logger.warning(
                "Invitation=%s presented by user=%s with a different email",
                invitation.id,
                principal.user_id,
            )
            raise InvitationEmailMismatchError(str(invitation.id))
        if await self._store.get_enrollment(principal.user_id, invitation.course_id):
            raise AlreadyEnrolledError(f"{principal.user_id}:{invitation.course_id}")

        enrollment = Enrollment(
            user_id=principal.user_id,
            course_id=invitation.course_id,
            role="student",
            status="active",
            enrolled_at=now,
        )
        if not await self._invitations.redeem(invitation.id, enrollment):
            # Another accept won the race between our check and the redeem.
            raise InvitationUsedError(str(invitation.id))

        logger.info(
            "Invitation=%s accepted user=%s course=%s",
            invitation.id,
            principal.user_id,
            invitation.course_id,
        )
        return enrollment
