"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and handler callables that render domain,
HTTP and request validation errors as application/problem+json.
"""

from __future__ import annotations

from typing import Any, Dict
import logging
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from form_engine.http.error_mapping import lookup
from form_engine.logic.errors import (
    ConcurrencyConflict,
    FormEngineError,
    SchemaError,
    UnknownFieldError,
)

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_body(exc: FormEngineError) -> Dict[str, Any]:
    code, status, title = lookup(exc)
    body: Dict[str, Any] = {"title": title, "status": status, "detail": str(exc), "code": code}
    if isinstance(exc, SchemaError):
        body["issues"] = list(exc.issues)
    if isinstance(exc, UnknownFieldError):
        body["field_key"] = exc.field_key
        body["retryable"] = True
    if isinstance(exc, ConcurrencyConflict):
        body["expected_revision"] = exc.expected
        body["current_revision"] = exc.actual
        body["retryable"] = True
    return body


async def handle_form_engine_error(request: Request, exc: FormEngineError) -> JSONResponse:  # noqa: D401
    body = problem_body(exc)
    logger.info("error_handler.handle code=%s path=%s", body["code"], request.url.path)
    return JSONResponse(body, status_code=body["status"], media_type=PROBLEM_MEDIA_TYPE)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status = int(exc.status_code or 500)
    if isinstance(exc.detail, dict):
        detail = {"status": status, **exc.detail}
    else:
        detail = {"title": "Error", "status": status, "detail": str(exc.detail or "")}
    return JSONResponse(detail, status_code=status, media_type=PROBLEM_MEDIA_TYPE, headers=exc.headers)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    problem = {
        "title": "Invalid Request",
        "status": 422,
        "detail": "Request validation failed",
        "code": "REQUEST_INVALID",
        "errors": [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in exc.errors()
        ],
    }
    return JSONResponse(problem, status_code=422, media_type=PROBLEM_MEDIA_TYPE)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse({"title": "Internal Server Error", "status": 500}, status_code=500, media_type=PROBLEM_MEDIA_TYPE)


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_body",
    "handle_form_engine_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
