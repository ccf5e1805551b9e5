"""Request context middleware: assigns a unique ID to every request.

With many requests in flight on one event loop, log lines interleave.
Tagging every line with the request ID makes a single request's story
readable again, and the same ID is written to the audit log so the two
can be joined.

The ID lives in a ContextVar rather than a thread-local: async requests
share a thread, and each task gets its own copy of the context.  The
logging handler filter (teachme.core.logging) reads it back onto every
record.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from teachme.core.logging import actor_user_id_var, request_id_var

logger = logging.getLogger(__name__)

# Client-supplied IDs are echoed into headers, logs and audit_log.request_id.
_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9._:-]{1,128}")


def _request_id(request: Request) -> str:
    sent = request.headers.get("x-request-id")
    if sent and _REQUEST_ID_RE.fullmatch(sent):
        return sent
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID, times the request, and logs completion.

    1. Reads X-Request-ID (if the client sent a well-formed one) or
       generates a UUID
    2. Stores it in a ContextVar for the rest of the async call chain
    3. Logs one summary line (method, path, status, duration)
    4. Echoes X-Request-ID on the response
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = _request_id(request)
        request_id_var.set(req_id)
        actor_user_id_var.set(None)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id

        return response
