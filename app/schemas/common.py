"""Common schema primitives."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class APIModel(BaseModel):
    """Base API model with attribute validation enabled."""

    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(APIModel):
    """Uniform error envelope."""

    error: str
    timestamp: str
    code: str


class HealthResponse(APIModel):
    """Liveness payload."""

    status: str
    timestamp: datetime
    version: str
    environment: str | None = None
