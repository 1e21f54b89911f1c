"""Admission gate in front of the synthesis provider.

Checks run in a fixed order and the first failure wins:

1. synthesis rate limit for the client identity (the slot is recorded on
   admission and is never returned, whatever happens downstream);
2. one-time CSRF token for the session;
3. structural validation and sanitization into a :class:`SynthesisRequest`.

Only then is the provider called, under a timeout. Provider failures are
translated into the local error taxonomy; none are retried here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from app.errors import (
    CSRFRejectedError,
    GateError,
    InternalError,
    InvalidArgumentError,
    ProviderInvalidArgumentError,
    ProviderPermissionDeniedError,
    ProviderResourceExhaustedError,
    ProviderUnavailableError,
    RateLimitedError,
    jsonable_errors,
)
from app.schemas.synthesis import SynthesisRequest
from app.services.csrf import CSRFTokenService, CSRFValidationError
from app.services.provider import (
    ProviderError,
    ProviderErrorKind,
    ProviderRequest,
    SynthesisProvider,
)
from secure_tts.ratelimit import SlidingWindowRateLimiter
from secure_tts.sanitizer import MAX_TEXT_LENGTH

logger = logging.getLogger(__name__)

_PROVIDER_ERRORS: dict[ProviderErrorKind, tuple[type[GateError], str]] = {
    ProviderErrorKind.INVALID_ARGUMENT: (
        ProviderInvalidArgumentError,
        "Invalid synthesis parameters. Check the voice settings.",
    ),
    ProviderErrorKind.PERMISSION_DENIED: (
        ProviderPermissionDeniedError,
        "The speech provider rejected the credential.",
    ),
    ProviderErrorKind.RESOURCE_EXHAUSTED: (
        ProviderResourceExhaustedError,
        "The speech provider quota is exhausted. Try again later.",
    ),
    ProviderErrorKind.UNAVAILABLE: (
        ProviderUnavailableError,
        "The speech provider is unavailable. Retry with backoff.",
    ),
}

_FIELD_NAMES = {"api_key": "apiKey"}


@dataclass(frozen=True, slots=True)
class SynthesisOutcome:
    """Audio produced for an admitted request.

    Attributes
    ----------
    audio : bytes
        Encoded audio.
    request : SynthesisRequest
        Validated request that produced it.
    """

    audio: bytes
    request: SynthesisRequest


class RequestAuthorizationGate:
    """Admit or reject inbound synthesis requests.

    Parameters
    ----------
    rate_limiter : SlidingWindowRateLimiter
        Limiter for the synthesis action.
    csrf_service : CSRFTokenService
        Token service for the anti-forgery check.
    provider : SynthesisProvider
        Remote speech provider.
    allowed_voices : Sequence[str]
        Voice allow-list.
    default_voice : str
        Voice used when the request omits one.
    max_text_length : int, default=5000
        Maximum raw text length.
    provider_timeout : float, default=15.0
        Upper bound on the provider call in seconds.
    """

    def __init__(
        self,
        *,
        rate_limiter: SlidingWindowRateLimiter,
        csrf_service: CSRFTokenService,
        provider: SynthesisProvider,
        allowed_voices: Sequence[str],
        default_voice: str,
        max_text_length: int = MAX_TEXT_LENGTH,
        provider_timeout: float = 15.0,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.csrf_service = csrf_service
        self.provider = provider
        self.allowed_voices = tuple(allowed_voices)
        self.default_voice = default_voice
        self.max_text_length = max_text_length
        self.provider_timeout = provider_timeout

    async def handle(
        self,
        payload: Mapping[str, Any],
        *,
        actor: str,
        session_id: str | None,
        csrf_token: str | None,
    ) -> SynthesisOutcome:
        """Run every check and forward an admitted request.

        Parameters
        ----------
        payload : Mapping[str, Any]
            Decoded request body.
        actor : str
            Rate-limit actor key.
        session_id : str | None
            Session identifier from header or cookie.
        csrf_token : str | None
            Token from header or body.

        Returns
        -------
        SynthesisOutcome
            Audio and the validated request.

        Raises
        ------
        GateError
            On the first failed check or a provider failure.
        """
        self.check_rate(actor)
        self.check_csrf(csrf_token, session_id)
        request = self.validate(payload)
        logger.info(
            "Synthesis admitted: text_length=%d voice=%s speed=%s custom_key=%s",
            len(request.text),
            request.voice,
            request.speed,
            request.api_key is not None,
        )
        audio = await self.forward(request)
        return SynthesisOutcome(audio=audio, request=request)

    def check_rate(self, actor: str) -> None:
        """Admit and record one synthesis for ``actor`` or raise."""
        if not self.rate_limiter.acquire(actor):
            retry_after = self.rate_limiter.time_until_reset(actor)
            logger.info("Synthesis rate limit hit for %s", actor)
            raise RateLimitedError(retry_after)

    def check_csrf(self, token: str | None, session_id: str | None) -> None:
        """Consume the CSRF token or raise a reason-free rejection."""
        try:
            self.csrf_service.validate(token, session_id)
        except CSRFValidationError as exc:
            logger.warning("CSRF validation failed: %s", exc.reason.value)
            raise CSRFRejectedError() from exc

    def validate(self, payload: Mapping[str, Any]) -> SynthesisRequest:
        """Build a :class:`SynthesisRequest` or raise on the first violation.

        Parameters
        ----------
        payload : Mapping[str, Any]
            Decoded request body.

        Returns
        -------
        SynthesisRequest
            Validated, sanitized request.
        """
        if not isinstance(payload, Mapping):
            raise InvalidArgumentError("body", "Request body must be a JSON object")
        data = dict(payload)
        if data.get("voice") is None:
            data["voice"] = self.default_voice
        if data.get("speed") is None:
            data.pop("speed", None)
        if "text" not in data:
            raise InvalidArgumentError("text", "Text is required")
        try:
            return SynthesisRequest.model_validate(
                data,
                context={
                    "allowed_voices": self.allowed_voices,
                    "max_text_length": self.max_text_length,
                },
            )
        except ValidationError as exc:
            first = exc.errors()[0]
            loc = first.get("loc") or ("body",)
            field = _FIELD_NAMES.get(str(loc[0]), str(loc[0]))
            message = first.get("msg", "Invalid value")
            if first.get("type", "").endswith("_type"):
                message = f"Invalid {field}: {message}"
            raise InvalidArgumentError(
                field, message, details=jsonable_errors(exc.errors())
            ) from exc

    async def forward(self, request: SynthesisRequest) -> bytes:
        """Call the provider and translate its failures.

        Parameters
        ----------
        request : SynthesisRequest
            Validated request.

        Returns
        -------
        bytes
            Encoded audio.
        """
        provider_request = ProviderRequest(
            text=request.text,
            language_code=request.language_code,
            voice_name=request.voice,
            speaking_rate=request.speed,
        )
        try:
            audio = await asyncio.wait_for(
                self.provider.synthesize(provider_request, request.api_key),
                timeout=self.provider_timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Provider call exceeded %.1fs", self.provider_timeout)
            raise ProviderUnavailableError(
                "The speech provider timed out. Retry with backoff."
            ) from exc
        except ProviderError as exc:
            raise self._translate(exc) from exc
        if not audio:
            raise InternalError("Audio generation failed")
        return audio

    def _translate(self, exc: ProviderError) -> GateError:
        details = str(exc)
        mapped = _PROVIDER_ERRORS.get(exc.kind)
        if mapped is None:
            logger.error("Unclassified provider failure: %s", exc)
            return InternalError("Audio generation failed", details)
        error_cls, message = mapped
        logger.warning("Provider failure %s: %s", exc.kind.value, exc)
        return error_cls(message, details)
