"""Health routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.config import APP_VERSION, Settings
from app.routers.dependencies import enforce_api_rate_limit, get_app_settings
from app.schemas.common import HealthResponse

router = APIRouter(
    prefix="/api",
    tags=["health"],
    dependencies=[Depends(enforce_api_rate_limit)],
)


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def health(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    """Report liveness; the environment name is hidden in production."""
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc),
        version=APP_VERSION,
        environment=None if settings.environment == "production" else settings.environment,
    )
