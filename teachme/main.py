from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from teachme.api.courses import router as courses_router
from teachme.api.envelope import register_exception_handlers
from teachme.api.health import router as health_router
from teachme.api.invitations import router as invitations_router
from teachme.api.metrics_endpoint import router as metrics_router
from teachme.api.students import router as students_router
from teachme.core.config import APP_NAME, APP_VERSION, SETTINGS
from teachme.core.logging import setup_logging
from teachme.db.engine import lifespan_db
from teachme.db.seed import seed_sample_data
from teachme.middleware.audit import AuditMiddleware
from teachme.middleware.metrics import MetricsMiddleware
from teachme.middleware.request_context import RequestContextMiddleware
from teachme.repos.audit_repo import InMemoryAuditLogRepo
from teachme.repos.invitation_repo import InMemoryInvitationRepo
from teachme.repos.pg_audit_repo import PgAuditLogRepo
from teachme.repos.pg_invitation_repo import PgInvitationRepo
from teachme.repos.pg_student_store import PgStudentStore
from teachme.repos.student_store import InMemoryStudentStore
from teachme.services.audit_service import AuditLogger

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db(SETTINGS) as database:
        app.state.database = database
        if database is None:
            store = InMemoryStudentStore()
            if SETTINGS.is_dev:
                seed_sample_data(store)
            app.state.student_store = store
            app.state.invitation_repo = InMemoryInvitationRepo(store)
            app.state.audit_repo = InMemoryAuditLogRepo()
        else:
            factory = database.session_factory
            app.state.student_store = PgStudentStore(factory)
            app.state.invitation_repo = PgInvitationRepo(factory)
            app.state.audit_repo = PgAuditLogRepo(factory)

        audit_logger = AuditLogger(app.state.audit_repo)
        app.state.audit_logger = audit_logger

        if not SETTINGS.jwt_secret:
            logger.warning(
                "JWT_SECRET not set: bearer tokens are rejected and audit records are anonymous"
            )

        try:
            yield
        finally:
            # Flush fire-and-forget audit writes before the engine goes away.
            await audit_logger.drain()


app = FastAPI(
    title=APP_NAME,
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Audit → Metrics → CORS → route handler
# The request ID exists before the audit record and the summary log line.
app.add_middleware(MetricsMiddleware)
app.add_middleware(AuditMiddleware)
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(students_router)
app.include_router(courses_router)
app.include_router(invitations_router)

logger.info(
    "%s v%s started  env=%s log_level=%s port=%d docs=%s",
    APP_NAME,
    APP_VERSION,
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
