"""Speech synthesis provider client."""

from __future__ import annotations

import base64
import binascii
import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

AUDIO_ENCODING = "MP3"
SAMPLE_RATE_HERTZ = 24000
EFFECTS_PROFILE = "large-home-entertainment-class-device"


class ProviderErrorKind(str, enum.Enum):
    """Fixed provider error set."""

    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    UNAVAILABLE = "UNAVAILABLE"
    UNKNOWN = "UNKNOWN"


# Numeric gRPC codes the provider may report instead of status names.
_GRPC_CODES = {
    3: ProviderErrorKind.INVALID_ARGUMENT,
    7: ProviderErrorKind.PERMISSION_DENIED,
    8: ProviderErrorKind.RESOURCE_EXHAUSTED,
    14: ProviderErrorKind.UNAVAILABLE,
}

_HTTP_STATUSES = {
    400: ProviderErrorKind.INVALID_ARGUMENT,
    401: ProviderErrorKind.PERMISSION_DENIED,
    403: ProviderErrorKind.PERMISSION_DENIED,
    429: ProviderErrorKind.RESOURCE_EXHAUSTED,
    502: ProviderErrorKind.UNAVAILABLE,
    503: ProviderErrorKind.UNAVAILABLE,
    504: ProviderErrorKind.UNAVAILABLE,
}


class ProviderError(Exception):
    """Provider call failed.

    Parameters
    ----------
    kind : ProviderErrorKind
        Classified failure.
    message : str
        Diagnostic message; never shown to callers outside development.
    """

    def __init__(self, kind: ProviderErrorKind, message: str) -> None:
        self.kind = kind
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class ProviderRequest:
    """Validated synthesis parameters in provider terms.

    Attributes
    ----------
    text : str
        Sanitized input text.
    language_code : str
        BCP-47 code, e.g. ``ja-JP``.
    voice_name : str
        Provider voice name.
    speaking_rate : float
        Speaking rate.
    """

    text: str
    language_code: str
    voice_name: str
    speaking_rate: float

    def to_payload(self) -> dict[str, Any]:
        """Return the provider JSON body."""
        return {
            "input": {"text": self.text},
            "voice": {"languageCode": self.language_code, "name": self.voice_name},
            "audioConfig": {
                "audioEncoding": AUDIO_ENCODING,
                "speakingRate": self.speaking_rate,
                "pitch": 0,
                "volumeGainDb": 0,
                "sampleRateHertz": SAMPLE_RATE_HERTZ,
                "effectsProfileId": [EFFECTS_PROFILE],
            },
        }


class SynthesisProvider(ABC):
    """Remote speech synthesis collaborator."""

    @abstractmethod
    async def synthesize(
        self, request: ProviderRequest, credential: str | None = None
    ) -> bytes:
        """Return encoded audio or raise :class:`ProviderError`."""

    async def aclose(self) -> None:
        """Release network resources."""


class GoogleTextToSpeechProvider(SynthesisProvider):
    """Cloud Text-to-Speech over its REST interface.

    Parameters
    ----------
    base_url : str
        Service base URL.
    api_key : str | None, default=None
        Server-side key used when the caller supplies none.
    timeout : float, default=15.0
        Request timeout in seconds.
    transport : httpx.AsyncBaseTransport | None, default=None
        Optional transport for tests.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def synthesize(
        self, request: ProviderRequest, credential: str | None = None
    ) -> bytes:
        """Synthesize speech.

        Parameters
        ----------
        request : ProviderRequest
            Synthesis parameters.
        credential : str | None, default=None
            Format-validated caller key, forwarded as-is.

        Returns
        -------
        bytes
            MP3 audio.
        """
        headers: dict[str, str] = {}
        key = credential or self.api_key
        if key:
            headers["X-Goog-Api-Key"] = key
        try:
            response = await self._client.post(
                "/v1/text:synthesize",
                json=request.to_payload(),
                headers=headers,
            )
        except httpx.TimeoutException as exc:
            raise ProviderError(ProviderErrorKind.UNAVAILABLE, "Provider timed out") from exc
        except httpx.TransportError as exc:
            raise ProviderError(
                ProviderErrorKind.UNAVAILABLE, f"Provider unreachable: {exc}"
            ) from exc

        if response.status_code >= 400:
            kind = classify_error(response)
            logger.warning(
                "Provider returned HTTP %d classified as %s",
                response.status_code,
                kind.value,
            )
            raise ProviderError(kind, f"Provider returned HTTP {response.status_code}")

        try:
            content = response.json().get("audioContent")
        except (ValueError, AttributeError) as exc:
            raise ProviderError(
                ProviderErrorKind.UNKNOWN, "Provider returned an unexpected body"
            ) from exc
        if not content:
            raise ProviderError(ProviderErrorKind.UNKNOWN, "Provider returned no audio")
        try:
            return base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ProviderError(
                ProviderErrorKind.UNKNOWN, "Provider returned malformed audio"
            ) from exc

    async def aclose(self) -> None:
        await self._client.aclose()


def classify_error(response: httpx.Response) -> ProviderErrorKind:
    """Classify a provider error response without reading its message text.

    Parameters
    ----------
    response : httpx.Response
        Failed provider response.

    Returns
    -------
    ProviderErrorKind
        Status name first, then numeric code, then HTTP status.
    """
    try:
        error = response.json().get("error", {})
    except (ValueError, AttributeError):
        error = {}
    if not isinstance(error, dict):
        error = {}

    status_name = error.get("status")
    if isinstance(status_name, str):
        try:
            return ProviderErrorKind(status_name.upper())
        except ValueError:
            pass
    code = error.get("code")
    if isinstance(code, int) and code in _GRPC_CODES:
        return _GRPC_CODES[code]
    return _HTTP_STATUSES.get(response.status_code, ProviderErrorKind.UNKNOWN)
