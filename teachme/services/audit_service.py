"""Fire-and-forget audit logging.

Every request is recorded once as ``api_call`` by the AuditMiddleware,
and read/write endpoints add a more specific action (``view_student``,
``accept_invitation``, ...).  The contract with the rest of the service:

  - ``record()`` returns immediately; the insert runs as its own task.
  - An insert failure is logged locally and counted, never raised.
    Auditing must not block or fail the request it describes.
  - ``drain()`` waits for in-flight inserts; the lifespan calls it on
    shutdown so records are not dropped on a clean stop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from starlette.requests import Request

from teachme.core.metrics import AUDIT_WRITES
from teachme.models.audit import IP_MAX, AuditContext, AuditEntry
from teachme.repos.audit_repo import AuditLogRepo

logger = logging.getLogger(__name__)


class AuditLogger:
    def __init__(self, repo: AuditLogRepo) -> None:
        self._repo = repo
        # Strong references: the event loop only keeps weak ones to tasks.
        self._pending: set[asyncio.Task[None]] = set()

    def record(self, entry: AuditEntry) -> None:
        task = asyncio.get_running_loop().create_task(self._write(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, entry: AuditEntry) -> None:
        try:
            await self._repo.add(entry)
        except Exception:
            AUDIT_WRITES.labels(result="failed").inc()
            logger.exception(
                "audit_log insert failed action=%s request_id=%s",
                entry.action,
                entry.request_id,
            )
            return
        AUDIT_WRITES.labels(result="ok").inc()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class RequestAudit:
    """An AuditLogger bound to one request's AuditContext.

    Handlers receive this through ``Depends(get_request_audit)`` and only
    name the action and target.
    """

    def __init__(self, audit_logger: AuditLogger | None, ctx: AuditContext) -> None:
        self._audit_logger = audit_logger
        self.context = ctx

    def log(
        self,
        action: str,
        *,
        table: str | None = None,
        target_id: str | int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if self._audit_logger is None:
            return
        self._audit_logger.record(
            AuditEntry.for_context(
                self.context,
                action,
                target_table=table,
                target_id=str(target_id) if target_id is not None else None,
                details=details,
            )
        )


def client_ip(request: Request) -> str | None:
    """Best-effort client address: proxy headers first, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first[:IP_MAX]
    for header in ("cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()[:IP_MAX]
    return request.client.host if request.client else None
