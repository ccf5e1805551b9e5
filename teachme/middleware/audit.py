"""Audit middleware: records every request before it is routed.

Runs inside RequestContextMiddleware so the request ID is already set.
For each request it:

  1. Resolves the actor from a verified bearer token (anonymous if the
     token is missing or does not verify; the route decides about 401)
  2. Stores the AuditContext on ``request.state`` for handlers that log
     their own, more specific actions
  3. Schedules an ``api_call`` audit record and continues immediately

Nothing here can fail the request: the audit write is fire-and-forget
and the AuditLogger swallows and logs its own errors.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from teachme.core.logging import actor_user_id_var, request_id_var
from teachme.models.audit import AuditContext, AuditEntry
from teachme.services.audit_service import AuditLogger, client_ip
from teachme.services.token_service import try_resolve_principal


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        principal = try_resolve_principal(request.headers.get("authorization"))
        ctx = AuditContext(
            request_id=request_id_var.get(),
            actor_user_id=principal.user_id if principal else None,
            actor_role=principal.role if principal else None,
            session_id=principal.session_id if principal else None,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        request.state.audit_context = ctx
        if principal is not None:
            actor_user_id_var.set(principal.user_id)

        audit_logger: AuditLogger | None = getattr(
            request.app.state, "audit_logger", None
        )
        if audit_logger is not None:
            audit_logger.record(
                AuditEntry.for_context(
                    ctx,
                    "api_call",
                    details={"method": request.method, "path": request.url.path},
                )
            )

        return await call_next(request)
