from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Identity extracted from a verified access token.

    Carried through the request via FastAPI's dependency system and used
    both for role checks and for attributing audit records.

        user_id: ``sub`` claim
        role: application role (student|teacher|admin), None if unset
        email: ``email`` claim, used to match invitations
        session_id: ``session_id`` claim of the auth provider
    """

    user_id: str
    role: str | None = None
    email: str | None = None
    session_id: str | None = None

    def has_role(self, role: str) -> bool:
        return self.role == role

    def has_any_role(self, roles: set[str]) -> bool:
        return self.role in roles

    def is_admin(self) -> bool:
        return self.role == "admin"
