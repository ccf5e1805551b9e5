from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# Widths of the bounded audit_log columns (teachme.db.tables.AuditLogRow).
REQUEST_ID_MAX = 128
ACTOR_ID_MAX = 64
ROLE_MAX = 32
SESSION_ID_MAX = 128
IP_MAX = 64
TARGET_ID_MAX = 64


def _clip(value: str | None, limit: int) -> str | None:
    return value[:limit] if value is not None else None


@dataclass(frozen=True, slots=True)
class AuditContext:
    """Who is acting, resolved once per request by the AuditMiddleware.

    ``actor_*`` fields come from a verified bearer token only.  ``ip_address``
    and ``user_agent`` are whatever the client or proxy sent and are kept
    for forensics, not for attribution.
    """

    request_id: str
    actor_user_id: str | None = None
    actor_role: str | None = None
    session_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class AuditEntry:
    action: str
    request_id: str
    actor_user_id: str | None = None
    actor_role: str | None = None
    session_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    target_table: str | None = None
    target_id: str | None = None
    details: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def for_context(
        ctx: AuditContext,
        action: str,
        *,
        target_table: str | None = None,
        target_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        """Build an entry whose strings fit the audit_log columns.

        Request id, IP and target id can all originate from the client.
        """
        return AuditEntry(
            action=action,
            request_id=ctx.request_id[:REQUEST_ID_MAX],
            actor_user_id=_clip(ctx.actor_user_id, ACTOR_ID_MAX),
            actor_role=_clip(ctx.actor_role, ROLE_MAX),
            session_id=_clip(ctx.session_id, SESSION_ID_MAX),
            ip_address=_clip(ctx.ip_address, IP_MAX),
            user_agent=ctx.user_agent,
            target_table=target_table,
            target_id=_clip(target_id, TARGET_ID_MAX),
            details=details,
        )
