"""Synchronous Python SDK client."""

from __future__ import annotations

import logging
import os
import secrets
from datetime import datetime
from time import sleep
from typing import Any

import httpx

from secure_tts.exceptions import (
    SecureTTSAPIError,
    SecureTTSCSRFError,
    SecureTTSPermissionError,
    SecureTTSRateLimitError,
    SecureTTSUnavailableError,
    SecureTTSValidationError,
)
from secure_tts.ratelimit import SlidingWindowRateLimiter
from secure_tts.sanitizer import (
    MAX_TEXT_LENGTH,
    sanitize_text,
    validate_credential_format,
)
from secure_tts.types import CSRFTokenGrant, SynthesisResult
from secure_tts.vault import CredentialVault

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "ja-JP-Neural2-B"
SESSION_HEADER = "X-Session-Id"
CSRF_HEADER = "X-CSRF-Token"


class SecureTTSClient:
    """Client for the synthesis API.

    Parameters
    ----------
    base_url : str
        Server base URL.
    session_id : str | None, default=None
        Session identifier; a random one is generated when omitted.
    vault : CredentialVault | None, default=None
        Vault holding the optional user credential.
    rate_limiter : SlidingWindowRateLimiter | None, default=None
        Client-side limiter; defaults to 10 requests per minute.
    timeout : float, default=30.0
        Request timeout in seconds.
    max_retries : int, default=2
        Retries for ``PROVIDER_UNAVAILABLE`` responses only.
    backoff_seconds : float, default=0.5
        Linear backoff step between retries.
    transport : httpx.BaseTransport | None, default=None
        Optional transport for tests or advanced usage.
    """

    def __init__(
        self,
        *,
        base_url: str,
        session_id: str | None = None,
        vault: CredentialVault | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        timeout: float = 30.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session_id = session_id or secrets.token_hex(16)
        self.vault = vault if vault is not None else CredentialVault()
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(10, 60)
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                SESSION_HEADER: self.session_id,
                "X-Requested-With": "XMLHttpRequest",
            },
            timeout=self.timeout,
            transport=transport,
        )

    @classmethod
    def from_env(cls) -> "SecureTTSClient":
        """Build a client from environment variables.

        Expected variables
        ------------------
        SECURE_TTS_BASE_URL
            Server base URL. Defaults to ``http://127.0.0.1:8000``.
        SECURE_TTS_SESSION_ID
            Optional fixed session identifier.

        Returns
        -------
        SecureTTSClient
            Configured SDK client.
        """
        base_url = os.environ.get("SECURE_TTS_BASE_URL", "http://127.0.0.1:8000")
        session_id = os.environ.get("SECURE_TTS_SESSION_ID") or None
        return cls(base_url=base_url, session_id=session_id)

    def save_credential(self, api_key: str) -> None:
        """Validate and store a provider key in the vault.

        Parameters
        ----------
        api_key : str
            Provider API key.

        Returns
        -------
        None
            Encrypts the key for this session.
        """
        check = validate_credential_format(api_key)
        if not check.valid:
            raise SecureTTSValidationError(check.error or "Invalid API key")
        self.vault.save(api_key)

    def clear_credential(self) -> None:
        """Forget the stored provider key."""
        self.vault.clear()

    def fetch_csrf_token(self) -> CSRFTokenGrant:
        """Request a fresh one-time anti-forgery token.

        Returns
        -------
        CSRFTokenGrant
            Token bound to this client's session.
        """
        response = self._client.get("/api/csrf-token")
        if response.status_code >= 400:
            raise _exception_for_response(response)
        data = response.json()
        return CSRFTokenGrant(
            token=data["csrf_token"],
            session_id=data.get("session_id") or self.session_id,
            expires_at=_parse_datetime(data["expires_at"]),
        )

    def synthesize(
        self,
        text: str,
        *,
        voice: str = DEFAULT_VOICE,
        speed: float = 1.0,
        use_stored_credential: bool = True,
    ) -> SynthesisResult:
        """Synthesize speech for ``text``.

        Parameters
        ----------
        text : str
            Text to speak.
        voice : str, default="ja-JP-Neural2-B"
            Voice name.
        speed : float, default=1.0
            Speaking rate.
        use_stored_credential : bool, default=True
            Send the vault credential when one is available.

        Returns
        -------
        SynthesisResult
            Audio payload.
        """
        if isinstance(text, str) and len(text) > MAX_TEXT_LENGTH:
            raise SecureTTSValidationError(
                f"Text must be at most {MAX_TEXT_LENGTH} characters"
            )
        clean_text = sanitize_text(text)
        if not clean_text:
            raise SecureTTSValidationError("Text is required")

        payload: dict[str, Any] = {"text": clean_text, "voice": voice, "speed": speed}
        if use_stored_credential:
            api_key = self.vault.load()
            if api_key is not None:
                payload["apiKey"] = api_key

        attempts = self.max_retries + 1
        for attempt in range(attempts):
            self._admit()
            grant = self.fetch_csrf_token()
            response = self._client.post(
                "/api/synthesize",
                json=payload,
                headers={CSRF_HEADER: grant.token},
            )
            if response.status_code < 400:
                return SynthesisResult(
                    audio=response.content,
                    content_type=response.headers.get("content-type", "audio/mpeg"),
                    voice=voice,
                    speed=speed,
                )
            error = _exception_for_response(response)
            if isinstance(error, SecureTTSUnavailableError) and attempt < self.max_retries:
                logger.info("Provider unavailable; retrying (attempt %d)", attempt + 1)
                sleep(self.backoff_seconds * (attempt + 1))
                continue
            raise error
        raise SecureTTSAPIError("Request failed")

    def close(self) -> None:
        """Clear the vault and close the underlying HTTP client.

        Returns
        -------
        None
            Releases HTTP resources.
        """
        self.vault.clear()
        self._client.close()

    def _admit(self) -> None:
        if not self.rate_limiter.acquire(self.session_id):
            retry_after = self.rate_limiter.time_until_reset(self.session_id)
            raise SecureTTSRateLimitError(
                f"Request limit reached. Retry in {retry_after} seconds.",
                retry_after=retry_after,
            )

    def __enter__(self) -> "SecureTTSClient":
        """Enter the client context.

        Returns
        -------
        SecureTTSClient
            This client.
        """
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        """Close the client on context exit."""
        _ = (exc_type, exc_value, traceback)
        self.close()


def _parse_datetime(value: str) -> datetime:
    """Parse an ISO datetime string.

    Parameters
    ----------
    value : str
        ISO-formatted datetime string.

    Returns
    -------
    datetime
        Parsed datetime.
    """
    normalized = value.replace("Z", "+00:00")
    return datetime.fromisoformat(normalized)


def _exception_for_response(response: httpx.Response) -> SecureTTSAPIError:
    """Map an error response to a typed SDK exception.

    Parameters
    ----------
    response : httpx.Response
        HTTP response.

    Returns
    -------
    SecureTTSAPIError
        Typed SDK error.
    """
    try:
        data = response.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    message = data.get("error") or f"Request failed with status {response.status_code}"
    code = data.get("code")
    status_code = response.status_code

    if status_code == 429:
        try:
            retry_after = int(response.headers.get("retry-after", "0"))
        except ValueError:
            retry_after = 0
        return SecureTTSRateLimitError(
            message, retry_after=retry_after, status_code=status_code, code=code
        )
    if status_code == 403 and code == "CSRF_REJECTED":
        return SecureTTSCSRFError(message, status_code=status_code, code=code)
    if status_code == 403:
        return SecureTTSPermissionError(message, status_code=status_code, code=code)
    if status_code in {400, 413, 422}:
        return SecureTTSValidationError(message, status_code=status_code, code=code)
    if status_code == 503:
        return SecureTTSUnavailableError(message, status_code=status_code, code=code)
    return SecureTTSAPIError(message, status_code=status_code, code=code)
