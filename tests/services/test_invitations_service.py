from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from teachme.models.principal import Principal
from teachme.repos.invitation_repo import InMemoryInvitationRepo
from teachme.repos.student_store import InMemoryStudentStore
from teachme.services import invitations_service
from teachme.services.invitations_service import InvitationsService, hash_token
from teachme.services.students_service import CourseNotFoundError
from tests.conftest import ALICE, MATH, PHYSICS, TEACHER, seed_roster

NEWCOMER = "55555555-5555-4555-8555-555555555555"
TEACHER_P = Principal(user_id=TEACHER, role="teacher")


def _service(ttl: timedelta = timedelta(days=7)) -> tuple[InvitationsService, InMemoryStudentStore]:
    store = InMemoryStudentStore()
    seed_roster(store)
    return InvitationsService(InMemoryInvitationRepo(store), store, ttl=ttl), store


def test_create_stores_only_token_hash() -> None:
    service, _ = _service()
    issued = asyncio.run(service.create_invitation(MATH, TEACHER_P))
    assert issued.invitation.token_hash == hash_token(issued.token)
    assert issued.token not in issued.invitation.token_hash
    assert issued.invitation.teacher_id == TEACHER
    assert issued.invitation.expires_at - issued.invitation.created_at == timedelta(days=7)


def test_create_unknown_course() -> None:
    service, _ = _service()
    with pytest.raises(CourseNotFoundError):
        asyncio.run(service.create_invitation(999, TEACHER_P))


def test_accept_enrolls_as_active_student() -> None:
    service, store = _service()

    async def scenario():
        issued = await service.create_invitation(PHYSICS, TEACHER_P)
        return await service.accept_invitation(issued.token, Principal(user_id=NEWCOMER))

    enrollment = asyncio.run(scenario())
    assert (enrollment.role, enrollment.status) == ("student", "active")
    stored = asyncio.run(store.get_enrollment(NEWCOMER, PHYSICS))
    assert stored is not None


def test_accept_is_single_use() -> None:
    service, _ = _service()

    async def scenario():
        issued = await service.create_invitation(PHYSICS, TEACHER_P)
        await service.accept_invitation(issued.token, Principal(user_id=NEWCOMER))
        await service.accept_invitation(issued.token, Principal(user_id="other"))

    with pytest.raises(invitations_service.InvitationUsedError):
        asyncio.run(scenario())


def test_accept_expired() -> None:
    service, _ = _service(ttl=timedelta(seconds=-1))

    async def scenario():
        issued = await service.create_invitation(PHYSICS, TEACHER_P)
        await service.accept_invitation(issued.token, Principal(user_id=NEWCOMER))

    with pytest.raises(invitations_service.InvitationExpiredError):
        asyncio.run(scenario())


def test_accept_unknown_token() -> None:
    service, _ = _service()
    with pytest.raises(invitations_service.InvitationNotFoundError):
        asyncio.run(service.accept_invitation("nope", Principal(user_id=NEWCOMER)))


def test_accept_email_mismatch() -> None:
    service, _ = _service()

    async def scenario():
        issued = await service.create_invitation(
            PHYSICS, TEACHER_P, email="invited@example.com"
        )
        await service.accept_invitation(
            issued.token, Principal(user_id=NEWCOMER, email=None)
        )

    with pytest.raises(invitations_service.InvitationEmailMismatchError):
        asyncio.run(scenario())


def test_accept_already_enrolled_leaves_invitation_unused() -> None:
    service, _ = _service()

    async def scenario():
        issued = await service.create_invitation(PHYSICS, TEACHER_P)
        with pytest.raises(invitations_service.AlreadyEnrolledError):
            await service.accept_invitation(issued.token, Principal(user_id=ALICE))
        # Still redeemable by someone who is not enrolled yet
        return await service.accept_invitation(issued.token, Principal(user_id=NEWCOMER))

    assert asyncio.run(scenario()).user_id == NEWCOMER
