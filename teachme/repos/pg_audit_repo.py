"""PostgreSQL implementation of AuditLogRepo."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teachme.db.session import store_session
from teachme.db.tables import AuditLogRow
from teachme.models.audit import AuditEntry


class PgAuditLogRepo:
    """Satisfies the AuditLogRepo Protocol using PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, entry: AuditEntry) -> None:
        row = AuditLogRow(
            action=entry.action,
            request_id=entry.request_id,
            actor_user_id=entry.actor_user_id,
            actor_role=entry.actor_role,
            session_id=entry.session_id,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            target_table=entry.target_table,
            target_id=entry.target_id,
            details=entry.details,
            created_at=entry.created_at,
        )
        async with store_session(
            self._session_factory, "add_audit_entry", write=True
        ) as session:
            session.add(row)
