"""Speech provider client tests."""

import base64
import json

import httpx
import pytest

from app.services.provider import (
    GoogleTextToSpeechProvider,
    ProviderError,
    ProviderErrorKind,
    ProviderRequest,
)

REQUEST = ProviderRequest(
    text="こんにちは",
    language_code="ja-JP",
    voice_name="ja-JP-Neural2-B",
    speaking_rate=1.25,
)


def _provider(handler, api_key: str | None = "server-key") -> GoogleTextToSpeechProvider:
    return GoogleTextToSpeechProvider(
        base_url="https://tts.example.test/",
        api_key=api_key,
        transport=httpx.MockTransport(handler),
    )


class TestGoogleTextToSpeechProvider:
    """Request shape and response handling."""

    async def test_sends_payload_and_decodes_audio(self, fake_audio: bytes) -> None:
        """Post the synthesis body and return decoded audio.

        Parameters
        ----------
        fake_audio : bytes
            Audio the mock returns.

        Returns
        -------
        None
            Asserts the wire format.
        """
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"audioContent": base64.b64encode(fake_audio).decode()}
            )

        provider = _provider(handler)
        audio = await provider.synthesize(REQUEST)
        await provider.aclose()

        assert audio == fake_audio
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/text:synthesize"
        assert request.headers["X-Goog-Api-Key"] == "server-key"
        body = json.loads(request.content)
        assert body["input"] == {"text": "こんにちは"}
        assert body["voice"] == {"languageCode": "ja-JP", "name": "ja-JP-Neural2-B"}
        assert body["audioConfig"]["audioEncoding"] == "MP3"
        assert body["audioConfig"]["speakingRate"] == 1.25
        assert body["audioConfig"]["sampleRateHertz"] == 24000

    async def test_caller_credential_takes_precedence(self, valid_api_key: str) -> None:
        """Use the caller's key instead of the server key.

        Parameters
        ----------
        valid_api_key : str
            Caller key.

        Returns
        -------
        None
            Asserts header selection.
        """
        keys: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            keys.append(request.headers.get("X-Goog-Api-Key"))
            return httpx.Response(200, json={"audioContent": "AAAA"})

        provider = _provider(handler)
        await provider.synthesize(REQUEST, valid_api_key)
        await provider.aclose()

        keyless = _provider(handler, api_key=None)
        await keyless.synthesize(REQUEST)
        await keyless.aclose()

        assert keys == [valid_api_key, None]

    @pytest.mark.parametrize(
        ("status_code", "body", "kind"),
        [
            (400, {"error": {"code": 400, "status": "INVALID_ARGUMENT"}}, ProviderErrorKind.INVALID_ARGUMENT),
            (403, {"error": {"code": 403, "status": "PERMISSION_DENIED"}}, ProviderErrorKind.PERMISSION_DENIED),
            (429, {"error": {"code": 429, "status": "RESOURCE_EXHAUSTED"}}, ProviderErrorKind.RESOURCE_EXHAUSTED),
            (500, {"error": {"code": 14}}, ProviderErrorKind.UNAVAILABLE),
            (500, {"error": {"code": 7}}, ProviderErrorKind.PERMISSION_DENIED),
            (401, {"error": "nope"}, ProviderErrorKind.PERMISSION_DENIED),
            (503, "not json", ProviderErrorKind.UNAVAILABLE),
            (500, {}, ProviderErrorKind.UNKNOWN),
        ],
    )
    async def test_classifies_errors(self, status_code: int, body, kind) -> None:
        """Classify by status name, then numeric code, then HTTP status.

        Parameters
        ----------
        status_code : int
            HTTP status returned by the mock.
        body : object
            Response body.
        kind : ProviderErrorKind
            Expected classification.

        Returns
        -------
        None
            Asserts classification.
        """

        def handler(request: httpx.Request) -> httpx.Response:
            if isinstance(body, str):
                return httpx.Response(status_code, text=body)
            return httpx.Response(status_code, json=body)

        provider = _provider(handler)
        with pytest.raises(ProviderError) as exc_info:
            await provider.synthesize(REQUEST)
        await provider.aclose()

        assert exc_info.value.kind is kind

    async def test_network_failure_is_unavailable(self) -> None:
        """Report connection and timeout failures as unavailable.

        Returns
        -------
        None
            Asserts classification.
        """

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        def stall(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        for handler in (refuse, stall):
            provider = _provider(handler)
            with pytest.raises(ProviderError) as exc_info:
                await provider.synthesize(REQUEST)
            await provider.aclose()
            assert exc_info.value.kind is ProviderErrorKind.UNAVAILABLE

    @pytest.mark.parametrize(
        "body",
        [{}, {"audioContent": ""}, {"audioContent": "***not base64***"}, ["audio"]],
    )
    async def test_unusable_success_body_is_unknown(self, body) -> None:
        """Reject success responses that carry no usable audio.

        Parameters
        ----------
        body : object
            Response body.

        Returns
        -------
        None
            Asserts the guard.
        """

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        provider = _provider(handler)
        with pytest.raises(ProviderError) as exc_info:
            await provider.synthesize(REQUEST)
        await provider.aclose()

        assert exc_info.value.kind is ProviderErrorKind.UNKNOWN
