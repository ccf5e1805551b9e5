"""Service info, liveness and readiness.

  /        : name, version and which storage backend is in use
  /health  : liveness.  Always 200 while the process can answer; the
             ``status`` field reports "degraded" when the database does
             not respond.
  /ready   : readiness.  503 when a configured database is unreachable,
             so the load balancer stops routing here without the
             orchestrator restarting the container.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response, status

from teachme.core.config import APP_NAME, APP_VERSION
from teachme.db.engine import Database

router = APIRouter(tags=["health"])


async def _database_status(request: Request) -> str:
    database: Database | None = getattr(request.app.state, "database", None)
    if database is None:
        return "in_memory"
    return "connected" if await database.ping() else "unreachable"


@router.get("/")
async def info(request: Request) -> dict:
    return {
        "message": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
        "database": await _database_status(request),
    }


@router.get("/health")
async def health(request: Request) -> dict:
    database = await _database_status(request)
    return {
        "status": "degraded" if database == "unreachable" else "ok",
        "checks": {"database": database},
    }


@router.get("/ready")
async def ready(request: Request) -> Response:
    if await _database_status(request) == "unreachable":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
