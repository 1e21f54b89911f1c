"""FastAPI application factory."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from app.config import APP_VERSION, Settings, get_settings
from app.errors import register_error_handlers
from app.logging_setup import configure_logging
from app.routers.csrf import router as csrf_router
from app.routers.dependencies import CSRF_HEADER, SESSION_HEADER
from app.routers.health import router as health_router
from app.routers.synthesis import router as synthesis_router
from app.services.csrf import CSRFTokenService, CSRFTokenStore
from app.services.gate import RequestAuthorizationGate
from app.services.provider import GoogleTextToSpeechProvider, SynthesisProvider
from secure_tts.ratelimit import SlidingWindowRateLimiter

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self'; style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; font-src 'self'; object-src 'none'; "
        "media-src 'self' blob:; frame-src 'none'; frame-ancestors 'none'"
    ),
}


def create_app(
    settings: Settings | None = None,
    provider: SynthesisProvider | None = None,
) -> FastAPI:
    """Build the application and its in-memory security state.

    Parameters
    ----------
    settings : Settings | None, default=None
        Settings to use; the cached environment settings when omitted.
    provider : SynthesisProvider | None, default=None
        Speech provider; a Cloud Text-to-Speech client when omitted.

    Returns
    -------
    FastAPI
        Configured application. Every instance owns its own token table and
        rate windows.
    """
    settings = settings or get_settings()
    provider = provider or GoogleTextToSpeechProvider(
        base_url=settings.provider_base_url,
        api_key=settings.provider_api_key,
        timeout=settings.provider_timeout_seconds,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        """Close the provider client on shutdown.

        Yields
        ------
        None
            Runs the application lifespan.
        """
        configure_logging(settings.log_level)
        yield
        await provider.aclose()

    app = FastAPI(title=settings.app_name, version=APP_VERSION, lifespan=lifespan)

    csrf_service = CSRFTokenService(
        CSRFTokenStore(), ttl_seconds=settings.csrf_token_ttl_seconds
    )
    app.state.settings = settings
    app.state.csrf_service = csrf_service
    app.state.api_rate_limiter = SlidingWindowRateLimiter(
        settings.api_rate_limit, settings.api_rate_window_seconds
    )
    app.state.gate = RequestAuthorizationGate(
        rate_limiter=SlidingWindowRateLimiter(
            settings.synthesis_rate_limit, settings.synthesis_rate_window_seconds
        ),
        csrf_service=csrf_service,
        provider=provider,
        allowed_voices=settings.allowed_voices,
        default_voice=settings.default_voice,
        max_text_length=settings.max_text_length,
        provider_timeout=settings.provider_timeout_seconds,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", CSRF_HEADER, SESSION_HEADER, "X-Requested-With"],
        expose_headers=[CSRF_HEADER],
    )

    @app.middleware("http")
    async def security_headers(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    register_error_handlers(app)
    app.include_router(csrf_router)
    app.include_router(synthesis_router)
    app.include_router(health_router)
    return app


app = create_app()
