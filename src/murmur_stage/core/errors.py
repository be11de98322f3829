"""Error taxonomy and the JSON error envelope.

Every error leaving the API is rendered as::

    {"success": false, "statusCode": 404, "message": "Post not found",
     "error": {"code": "POST_NOT_FOUND", "category": "not_found"}}

Services raise the ``ApiError`` subclasses below; the handlers registered by
``register_exception_handlers`` turn them (and anything unexpected) into that
envelope.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from murmur_stage.core.settings import settings

logger = logging.getLogger(__name__)

CATEGORY_VALIDATION = "validation"
CATEGORY_AUTHENTICATION = "authentication"
CATEGORY_AUTHORIZATION = "authorization"
CATEGORY_NOT_FOUND = "not_found"
CATEGORY_CONFLICT = "conflict"
CATEGORY_INTERNAL = "internal"

_CATEGORY_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: CATEGORY_VALIDATION,
    status.HTTP_401_UNAUTHORIZED: CATEGORY_AUTHENTICATION,
    status.HTTP_403_FORBIDDEN: CATEGORY_AUTHORIZATION,
    status.HTTP_404_NOT_FOUND: CATEGORY_NOT_FOUND,
    status.HTTP_409_CONFLICT: CATEGORY_CONFLICT,
}


class ApiError(HTTPException):
    """HTTP error carrying a machine readable code and category."""

    category = CATEGORY_INTERNAL
    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        detail: str,
        *,
        code: str | None = None,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Any = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code or self.default_code
        self.details = details


class ValidationFailed(ApiError):
    """Malformed or missing input (400)."""

    category = CATEGORY_VALIDATION
    default_code = "VALIDATION_ERROR"

    def __init__(self, detail: str, *, code: str | None = None, details: Any = None) -> None:
        super().__init__(
            detail,
            code=code,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class AuthenticationFailed(ApiError):
    """Missing, invalid or revoked credentials (401)."""

    category = CATEGORY_AUTHENTICATION
    default_code = "TOKEN_INVALID"

    def __init__(self, detail: str = "Could not validate credentials", *, code: str | None = None) -> None:
        super().__init__(
            detail,
            code=code,
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )


class PermissionDenied(ApiError):
    """Acting on somebody else's resource (403)."""

    category = CATEGORY_AUTHORIZATION
    default_code = "FORBIDDEN"

    def __init__(self, detail: str = "Forbidden", *, code: str | None = None) -> None:
        super().__init__(detail, code=code, status_code=status.HTTP_403_FORBIDDEN)


class NotFound(ApiError):
    """Missing or soft-deleted target (404)."""

    category = CATEGORY_NOT_FOUND
    default_code = "NOT_FOUND"

    def __init__(self, detail: str = "Resource not found", *, code: str | None = None) -> None:
        super().__init__(detail, code=code, status_code=status.HTTP_404_NOT_FOUND)


class Conflict(ApiError):
    """Duplicate like, vote, follow or registration.

    The status differs per endpoint (400, 403 or 409), so it is passed in.
    """

    category = CATEGORY_CONFLICT
    default_code = "CONFLICT"

    def __init__(
        self,
        detail: str,
        *,
        code: str | None = None,
        status_code: int = status.HTTP_409_CONFLICT,
    ) -> None:
        super().__init__(detail, code=code, status_code=status_code)


class InternalError(ApiError):
    """Datastore or transport failure (500)."""

    def __init__(self, detail: str = "Internal server error", *, code: str | None = None) -> None:
        super().__init__(detail, code=code, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_body(
    status_code: int,
    message: str,
    code: str,
    category: str,
    details: Any = None,
) -> dict[str, Any]:
    """Build the JSON error envelope."""
    body: dict[str, Any] = {
        "success": False,
        "statusCode": status_code,
        "message": message,
        "error": {"code": code, "category": category},
    }
    if details is not None:
        body["details"] = details
    return body


async def _api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(
            error_body(exc.status_code, str(exc.detail), exc.code, exc.category, exc.details)
        ),
        headers=exc.headers,
    )


async def _http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    category = _CATEGORY_BY_STATUS.get(exc.status_code, CATEGORY_INTERNAL)
    code = category.upper() if exc.status_code < 500 else "INTERNAL_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, str(exc.detail), code, category),
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(
            error_body(
                status.HTTP_400_BAD_REQUEST,
                "Validation failed",
                "VALIDATION_ERROR",
                CATEGORY_VALIDATION,
                details,
            )
        ),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    details = str(exc) if settings.debug else None
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            "INTERNAL_ERROR",
            CATEGORY_INTERNAL,
            details,
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to ``app``."""
    app.add_exception_handler(ApiError, _api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)
