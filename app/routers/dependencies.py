"""Shared router helpers."""

from fastapi import Request

from app.config import Settings
from app.errors import RateLimitedError
from app.services.csrf import CSRFTokenService
from app.services.gate import RequestAuthorizationGate
from app.services.security import actor_key
from secure_tts.ratelimit import SlidingWindowRateLimiter

SESSION_HEADER = "X-Session-Id"
CSRF_HEADER = "X-CSRF-Token"


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was built with.

    Parameters
    ----------
    request : Request
        Incoming request.

    Returns
    -------
    Settings
        Application settings.
    """
    return request.app.state.settings


def get_gate(request: Request) -> RequestAuthorizationGate:
    """Return the application's authorization gate."""
    return request.app.state.gate


def get_csrf_service(request: Request) -> CSRFTokenService:
    """Return the application's CSRF token service."""
    return request.app.state.csrf_service


def client_actor(request: Request) -> str:
    """Derive the rate-limit actor key for the caller.

    Parameters
    ----------
    request : Request
        Incoming request.

    Returns
    -------
    str
        Hashed client address.
    """
    settings = get_app_settings(request)
    address = None
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            address = forwarded.split(",")[0].strip()
    if not address:
        address = request.client.host if request.client else "unknown"
    return actor_key("ip", address)


def session_id_from(request: Request) -> str | None:
    """Read the session identifier from the header or the session cookie.

    Parameters
    ----------
    request : Request
        Incoming request.

    Returns
    -------
    str | None
        Session identifier if one was sent.
    """
    session_id = request.headers.get(SESSION_HEADER)
    if session_id:
        return session_id.strip() or None
    cookie_name = get_app_settings(request).session_cookie_name
    return request.cookies.get(cookie_name) or None


async def enforce_api_rate_limit(request: Request) -> None:
    """Apply the general traffic limiter to every API route.

    Parameters
    ----------
    request : Request
        Incoming request.

    Returns
    -------
    None
        Raises when the caller exhausted its window.
    """
    limiter: SlidingWindowRateLimiter = request.app.state.api_rate_limiter
    actor = client_actor(request)
    if not limiter.acquire(actor):
        raise RateLimitedError(limiter.time_until_reset(actor))
