"""Domain error taxonomy and the handlers that turn it into failure envelopes."""
from __future__ import annotations

import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors that are reported to callers as structured failures."""

    error_kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)


class ValidationFailed(DomainError):
    error_kind = "validation"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationFailed(DomainError):
    error_kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(DomainError):
    error_kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DomainError):
    error_kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    error_kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


_KIND_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: ValidationFailed.error_kind,
    status.HTTP_401_UNAUTHORIZED: AuthenticationFailed.error_kind,
    status.HTTP_403_FORBIDDEN: ForbiddenError.error_kind,
    status.HTTP_404_NOT_FOUND: NotFoundError.error_kind,
    status.HTTP_409_CONFLICT: ConflictError.error_kind,
    status.HTTP_429_TOO_MANY_REQUESTS: "rate_limited",
}


def error_response(
    status_code: int,
    message: str,
    error_kind: str,
    error: Optional[Any] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "message": message, "error_kind": error_kind}
    if error is not None and not get_settings().is_production:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the failure-envelope handlers on a service app."""

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.error_kind, exc.message)
        return error_response(exc.status_code, exc.message, exc.error_kind, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg")}
            for err in exc.errors()
        ]
        logger.warning("%s %s -> validation: %s", request.method, request.url.path, errors)
        content = {
            "success": False,
            "message": "Invalid or missing fields",
            "error_kind": ValidationFailed.error_kind,
            "errors": errors,
        }
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        kind = _KIND_BY_STATUS.get(exc.status_code, "internal" if exc.status_code >= 500 else "http_error")
        return error_response(exc.status_code, str(exc.detail), kind, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception on %s %s: %s: %s\n%s",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc,
            traceback.format_exc(),
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            "internal",
            f"{type(exc).__name__}: {exc}",
        )
