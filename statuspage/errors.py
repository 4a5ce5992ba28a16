# ---
# File: statuspage/errors.py
# Purpose: Error taxonomy for the status page core and the FastAPI handlers
#          that render every failure as {success: false, message, errors?}
# ---

import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class StatusPageError(Exception):
    """Base class for every error the core raises on purpose."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_payload(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(StatusPageError):
    """Malformed input, unknown enum value, empty required set or a foreign reference."""

    status_code = 400

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class AuthenticationError(StatusPageError):
    status_code = 401


class AuthorizationError(StatusPageError):
    status_code = 403


class NotFoundError(StatusPageError):
    status_code = 404


class ConflictError(StatusPageError):
    """Uniqueness violation; `field` names the offending attribute."""

    status_code = 409

    def __init__(self, message: str, field: Optional[str] = None):
        errors = [{"field": field, "message": message}] if field else None
        super().__init__(message, errors=errors)
        self.field = field


class TransientError(StatusPageError):
    """Persistence timed out or is unavailable. Safe to retry."""

    status_code = 503

    def __init__(self, message: str = "Service temporarily unavailable, please retry"):
        super().__init__(message)


# ---
# Flatten pydantic error entries into {field, message} pairs.
# The leading "body"/"query"/"path" location segment is dropped.
# ---
def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())]
        if location and location[0] in ("body", "query", "path"):
            location = location[1:]
        details.append({"field": ".".join(location), "message": error.get("msg", "Invalid value")})
    return details


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StatusPageError)
    async def status_page_error_handler(request: Request, exc: StatusPageError):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(level, "[ERROR] %s %s -> %s | %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc)
        logger.warning("[ERROR] %s %s -> 400 | validation failed: %s", request.method, request.url.path, errors)
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Validation failed", "errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": message},
            headers=getattr(exc, "headers", None),
        )

    # ---
    # Global exception handler: full context to the log, generic message to the caller
    # ---
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"[UNHANDLED EXCEPTION] {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"},
        )
