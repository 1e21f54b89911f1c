"""Runtime configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_VERSION = "0.1.0"

DEFAULT_VOICES = (
    "ja-JP-Neural2-B",
    "ja-JP-Neural2-C",
    "ja-JP-Neural2-D",
    "en-US-Neural2-F",
    "en-US-Neural2-D",
)


class Settings(BaseSettings):
    """Application settings.

    Attributes
    ----------
    app_name : str
        Human-readable application name.
    environment : str
        ``development`` exposes error details; anything else hides them.
    csrf_token_ttl_seconds : int
        Lifetime of an anti-forgery token.
    synthesis_rate_limit : int
        Synthesis requests admitted per actor per synthesis window.
    synthesis_rate_window_seconds : float
        Length of the synthesis window.
    api_rate_limit : int
        Requests admitted per actor per general window.
    api_rate_window_seconds : float
        Length of the general window.
    allowed_voices : list[str]
        Voice allow-list.
    default_voice : str
        Voice used when a request omits one.
    max_text_length : int
        Maximum characters of input text.
    provider_base_url : str
        Speech provider base URL.
    provider_api_key : str | None
        Server-side provider credential used when the caller supplies none.
    provider_timeout_seconds : float
        Upper bound on a single provider call.
    trust_forwarded_for : bool
        Whether ``X-Forwarded-For`` identifies the client.
    session_cookie_name : str
        Cookie carrying the session identifier.
    log_level : str
        Root log level applied at startup.
    max_body_bytes : int
        Largest request body accepted before parsing.
    cors_origins : list[str]
        Browser origins allowed to call the API with credentials.
    """

    model_config = SettingsConfigDict(env_prefix="SECURE_TTS_", extra="ignore")

    app_name: str = "Secure TTS"
    environment: str = "production"
    csrf_token_ttl_seconds: int = Field(default=3600, ge=1)
    synthesis_rate_limit: int = Field(default=10, ge=1)
    synthesis_rate_window_seconds: float = Field(default=60.0, gt=0)
    api_rate_limit: int = Field(default=100, ge=1)
    api_rate_window_seconds: float = Field(default=900.0, gt=0)
    allowed_voices: list[str] = Field(default_factory=lambda: list(DEFAULT_VOICES))
    default_voice: str = "ja-JP-Neural2-B"
    max_text_length: int = Field(default=5000, ge=1)
    provider_base_url: str = "https://texttospeech.googleapis.com"
    provider_api_key: str | None = None
    provider_timeout_seconds: float = Field(default=15.0, gt=0)
    trust_forwarded_for: bool = False
    session_cookie_name: str = "sessionId"
    log_level: str = "INFO"
    max_body_bytes: int = Field(default=10 * 1024 * 1024, ge=1)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    @property
    def is_development(self) -> bool:
        """Return whether development-only diagnostics are enabled."""
        return self.environment.lower() == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings.

    Returns
    -------
    Settings
        Cached settings instance.
    """
    return Settings()
