"""Synthesis request and response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from app.schemas.common import APIModel
from secure_tts.sanitizer import (
    MAX_TEXT_LENGTH,
    sanitize_text,
    validate_credential_format,
)

MIN_SPEED = 0.25
MAX_SPEED = 4.0


class SynthesisRequest(BaseModel):
    """Validated synthesis parameters.

    Construct with :meth:`model_validate` and a context carrying
    ``allowed_voices`` and, optionally, ``max_text_length``. After
    validation ``text`` holds sanitized text.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True, extra="ignore")

    text: str
    voice: str
    speed: float = 1.0
    api_key: str | None = Field(default=None, alias="apiKey")

    @field_validator("text")
    @classmethod
    def _clean_text(cls, value: str, info: ValidationInfo) -> str:
        max_length = (info.context or {}).get("max_text_length", MAX_TEXT_LENGTH)
        if len(value) > max_length:
            raise PydanticCustomError(
                "text_too_long",
                "Text must be at most {max_length} characters",
                {"max_length": max_length},
            )
        cleaned = sanitize_text(value, max_length)
        if not cleaned:
            raise PydanticCustomError("text_empty", "Text is required")
        return cleaned

    @field_validator("voice")
    @classmethod
    def _check_voice(cls, value: str, info: ValidationInfo) -> str:
        allowed = (info.context or {}).get("allowed_voices", ())
        if value not in allowed:
            raise PydanticCustomError("voice_not_allowed", "Voice is not supported")
        return value

    @field_validator("speed")
    @classmethod
    def _check_speed(cls, value: float) -> float:
        if not MIN_SPEED <= value <= MAX_SPEED:
            raise PydanticCustomError(
                "speed_out_of_range",
                "Speed must be between {low} and {high}",
                {"low": MIN_SPEED, "high": MAX_SPEED},
            )
        return value

    @field_validator("api_key")
    @classmethod
    def _check_api_key(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        check = validate_credential_format(value)
        if not check.valid:
            raise PydanticCustomError("api_key_format", check.error or "Invalid API key")
        return value

    @property
    def language_code(self) -> str:
        """Return the language code embedded in the voice name.

        ``ja-JP-Neural2-B`` gives ``ja-JP`` and ``cmn-CN-Wavenet-A`` gives
        ``cmn-CN``.
        """
        return "-".join(self.voice.split("-")[:2])


class CSRFTokenResponse(APIModel):
    """Issued anti-forgery token.

    ``session_id`` is omitted when the server minted the session into an
    HttpOnly cookie.
    """

    csrf_token: str
    session_id: str | None = None
    expires_at: datetime
