"""Uniform JSON envelope for every /api response.

    {"success": true,  "data": ..., "count": 3}
    {"success": false, "message": "Student not found"}

Routes return ``ApiResponse`` with ``response_model_exclude_unset=True``
so ``count`` and ``message`` only appear when a handler sets them.
Errors never reach the client as a stack trace: the handlers below turn
HTTP errors, validation errors and anything unexpected into the same
failure shape.
"""

from __future__ import annotations

import logging
from typing import Generic, TypeVar

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool
    data: T | None = None
    count: int | None = None
    message: str | None = None


def failure(message: str, status_code: int, headers: dict[str, str] | None = None):
    return JSONResponse(
        {"success": False, "message": message},
        status_code=status_code,
        headers=headers,
    )


async def _http_exception_handler(
    _request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = str(exc.detail)
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        # Router miss, not a handler's own 404
        message = "Endpoint not found"
    return failure(message, exc.status_code, headers=getattr(exc, "headers", None))


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning(
        "Rejected request %s %s: %s", request.method, request.url.path, exc.errors()
    )
    return failure("Invalid request parameters", status.HTTP_400_BAD_REQUEST)


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return failure("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)
