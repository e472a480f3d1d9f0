# -*- coding: utf-8 -*-
"""Error types and the FastAPI handlers that turn them into JSON envelopes.

Every failure leaves the API as::

    {"success": false, "error": "...", "code": "...", "details": ..., "status": 400, "timestamp": "..."}

Auth endpoints keep their historical shape (``{"success": false, "message": "..."}``),
so :class:`AuthError` and friends carry a ``render_as_message`` flag.
"""

from __future__ import annotations

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class AppError(Exception):
    """Base class for errors that map to a known HTTP status."""

    status: int = 500
    code: Optional[str] = None
    render_as_message: bool = False

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        if code is not None:
            self.code = code
        self.details = details


class RequestValidationFailed(AppError):
    status = 400

    def __init__(self, details: Any) -> None:
        super().__init__("Validation failed", details=details)


class BadRequestError(AppError):
    status = 400


class NotFoundError(AppError):
    status = 404


class AuthError(AppError):
    """Auth-domain failure rendered as ``{"success": false, "message": ...}``."""

    status = 401
    render_as_message = True


class ConflictError(AuthError):
    status = 409


class UpstreamServiceError(AppError):
    """Failure talking to (or interpreting) the LLM provider. ``code`` is always ``OPENAI_*``."""

    def __init__(self, message: str, *, code: str, status: int = 500) -> None:
        super().__init__(message, status=status, code=code)


class PayloadTooLargeError(AppError):
    status = 413

    def __init__(self) -> None:
        super().__init__("Request body too large")


def error_envelope(
    error: str,
    status: int,
    *,
    code: Optional[str] = None,
    details: Any = None,
    exc: Optional[BaseException] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": error}
    if code:
        body["code"] = code
    if details is not None:
        body["details"] = details
    elif exc is not None and settings.is_development:
        body["details"] = {
            "message": str(exc),
            "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            "code": getattr(exc, "code", None),
        }
    body["status"] = status
    body["timestamp"] = _utc_now()
    return body


def error_response(
    error: str,
    status: int,
    *,
    code: Optional[str] = None,
    details: Any = None,
    exc: Optional[BaseException] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=error_envelope(error, status, code=code, details=details, exc=exc),
    )


def _log_request_error(request: Request, exc: BaseException, status: int) -> None:
    extra = (request.method, request.url.path, status, getattr(exc, "code", None), exc)
    if status >= 500:
        logger.error("Application error %s %s -> %s [%s]: %s", *extra, exc_info=exc)
    else:
        logger.info("Request error %s %s -> %s [%s]: %s", *extra)


async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    _log_request_error(request, exc, exc.status)
    if exc.render_as_message:
        body: Dict[str, Any] = {"success": False, "message": exc.message}
        if exc.details is not None:
            body["details"] = exc.details
        return JSONResponse(status_code=exc.status, content=body)
    return error_response(exc.message, exc.status, code=exc.code, details=exc.details, exc=exc)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        return error_response("Invalid JSON in request body", 400)
    first = errors[0] if errors else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg") or "Invalid request"
    details = f"{loc}: {msg}" if loc else msg
    return error_response("Validation failed", 400, details=details)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        body = error_envelope("Route not found", 404)
        body["message"] = f"Cannot {request.method} {request.url.path}"
        return JSONResponse(status_code=404, content=body)
    return error_response(str(exc.detail), exc.status_code)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    _log_request_error(request, exc, 500)
    return error_response("Internal server error", 500, exc=exc)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
