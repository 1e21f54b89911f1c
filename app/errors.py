"""Local error taxonomy and its HTTP rendering."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class GateError(Exception):
    """Error surfaced to the caller with a stable code.

    Parameters
    ----------
    message : str
        User-facing message.
    details : Any, default=None
        Diagnostic detail, only rendered in development.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    retryable: bool = False

    def __init__(self, message: str, details: Any = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def headers(self) -> dict[str, str]:
        """Return extra response headers for this error."""
        return {}


class InvalidArgumentError(GateError):
    """Malformed or out-of-range input.

    Parameters
    ----------
    field : str
        Offending request field.
    message : str
        Field-specific message.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_ARGUMENT"

    def __init__(self, field: str, message: str, details: Any = None) -> None:
        self.field = field
        super().__init__(message, details)


class CSRFRejectedError(GateError):
    """Anti-forgery check failed. The message never names the reason."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "CSRF_REJECTED"

    def __init__(self, details: Any = None) -> None:
        super().__init__("Invalid request", details)


class RateLimitedError(GateError):
    """Actor exhausted its request window.

    Parameters
    ----------
    retry_after : int
        Seconds until the window admits again.
    """

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"
    retryable = True

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(
            f"Request limit reached. Retry in {retry_after} seconds."
        )

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class PayloadTooLargeError(GateError):
    """Request body exceeds the configured size cap.

    Parameters
    ----------
    limit : int
        Maximum accepted body size in bytes.
    """

    status_code = 413
    code = "PAYLOAD_TOO_LARGE"

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Request body must be at most {limit} bytes")


class ProviderInvalidArgumentError(GateError):
    """Provider rejected the synthesis parameters."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "PROVIDER_INVALID_ARGUMENT"


class ProviderPermissionDeniedError(GateError):
    """Provider rejected the credential."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "PROVIDER_PERMISSION_DENIED"


class ProviderResourceExhaustedError(GateError):
    """Provider quota exhausted."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "PROVIDER_RESOURCE_EXHAUSTED"


class ProviderUnavailableError(GateError):
    """Provider unreachable or timed out. The caller may retry with backoff."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "PROVIDER_UNAVAILABLE"
    retryable = True

    def headers(self) -> dict[str, str]:
        return {"Retry-After": "5"}


class InternalError(GateError):
    """Unexpected failure."""


def utc_timestamp() -> str:
    """Return the current UTC time in ISO-8601 form."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def error_body(
    message: str, code: str, details: Any = None, *, debug: bool = False
) -> dict[str, Any]:
    """Build the error envelope.

    Parameters
    ----------
    message : str
        User-facing message.
    code : str
        Stable error code.
    details : Any, default=None
        Diagnostic detail.
    debug : bool, default=False
        Whether ``details`` may be rendered (development only).

    Returns
    -------
    dict[str, Any]
        ``{error, timestamp, code}`` plus optional ``details``.
    """
    body: dict[str, Any] = {
        "error": message,
        "timestamp": utc_timestamp(),
        "code": code,
    }
    if details is not None and debug:
        body["details"] = details
    return body


async def handle_gate_error(request: Request, exc: GateError) -> JSONResponse:
    """Render a :class:`GateError`."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(
            exc.message, exc.code, exc.details, debug=_debug(request)
        ),
        headers=exc.headers(),
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render FastAPI request validation failures as ``INVALID_ARGUMENT``."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(
            "Request payload is invalid",
            InvalidArgumentError.code,
            jsonable_errors(exc.errors()),
            debug=_debug(request),
        ),
    )


async def handle_http_exception(
    _: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render framework HTTP errors such as 404 in the shared envelope."""
    code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), code),
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Log and render any unhandled exception as ``INTERNAL_ERROR``."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            "Internal server error",
            InternalError.code,
            repr(exc),
            debug=_debug(request),
        ),
    )


def _debug(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings is not None and settings.is_development)


def jsonable_errors(errors: Any) -> list[dict[str, Any]]:
    """Strip non-serializable context from pydantic error entries."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in errors
    ]


def register_error_handlers(app: FastAPI) -> None:
    """Attach every error handler to ``app``.

    Parameters
    ----------
    app : FastAPI
        Application instance.

    Returns
    -------
    None
        Registers handlers in place.
    """
    app.add_exception_handler(GateError, handle_gate_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)
