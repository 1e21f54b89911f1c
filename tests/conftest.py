"""Pytest fixtures."""

from collections.abc import AsyncIterator, Iterator

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings, get_settings
from app.main import create_app
from app.services.provider import (
    ProviderError,
    ProviderErrorKind,
    ProviderRequest,
    SynthesisProvider,
)

FAKE_AUDIO = b"ID3\x04\x00fake-mp3-frames"
VALID_API_KEY = "AIza" + "A1b2C3d4E5f6G7h8I9j0K1l2M3n4O5p6Q7r"


class FakeProvider(SynthesisProvider):
    """In-memory provider that records calls.

    Parameters
    ----------
    audio : bytes, default=FAKE_AUDIO
        Payload returned on success.
    """

    def __init__(self, audio: bytes = FAKE_AUDIO) -> None:
        self.audio = audio
        self.calls: list[tuple[ProviderRequest, str | None]] = []
        self.failure: ProviderErrorKind | None = None
        self.closed = False

    async def synthesize(
        self, request: ProviderRequest, credential: str | None = None
    ) -> bytes:
        self.calls.append((request, credential))
        if self.failure is not None:
            raise ProviderError(self.failure, f"simulated {self.failure.value}")
        return self.audio

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced clock.

    Parameters
    ----------
    start : float, default=1_000_000.0
        Initial time in seconds.
    """

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    """Reset cached settings around each test.

    Yields
    ------
    None
        Clears the settings cache.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def clock() -> FakeClock:
    """Return a controllable clock."""
    return FakeClock()


@pytest.fixture()
def provider() -> FakeProvider:
    """Return a recording fake provider."""
    return FakeProvider()


@pytest.fixture()
def settings() -> Settings:
    """Return test settings.

    Returns
    -------
    Settings
        Settings with the default limits and development diagnostics off.
    """
    return Settings(environment="test")


@pytest.fixture()
async def client(settings: Settings, provider: FakeProvider) -> AsyncIterator[AsyncClient]:
    """Create a test HTTP client against a fresh application.

    Parameters
    ----------
    settings : Settings
        Application settings.
    provider : FakeProvider
        Fake speech provider.

    Yields
    ------
    AsyncClient
        Configured test client.
    """
    app = create_app(settings=settings, provider=provider)
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://testserver",
    ) as test_client:
        yield test_client


@pytest.fixture()
def valid_api_key() -> str:
    """Return a credential that passes the format check."""
    return VALID_API_KEY


@pytest.fixture()
def fake_audio() -> bytes:
    """Return the payload the fake provider produces."""
    return FAKE_AUDIO
