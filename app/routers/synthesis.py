"""Speech synthesis routes."""

import json
from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from app.errors import PayloadTooLargeError
from app.routers.dependencies import (
    CSRF_HEADER,
    client_actor,
    enforce_api_rate_limit,
    get_app_settings,
    get_gate,
    session_id_from,
)
from app.schemas.common import ErrorResponse
from app.services.gate import RequestAuthorizationGate

router = APIRouter(
    prefix="/api",
    tags=["synthesis"],
    dependencies=[Depends(enforce_api_rate_limit)],
)

AUDIO_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Content-Type-Options": "nosniff",
}


@router.post(
    "/synthesize",
    response_class=Response,
    responses={
        200: {"content": {"audio/mpeg": {}}},
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def synthesize(
    request: Request,
    gate: RequestAuthorizationGate = Depends(get_gate),
) -> Response:
    """Authorize a synthesis request and return MP3 audio.

    Parameters
    ----------
    request : Request
        Incoming request; the body is size-capped and decoded here so that
        malformed bodies still pass through the rate and CSRF checks first.
    gate : RequestAuthorizationGate
        Authorization gate.

    Returns
    -------
    Response
        Audio payload with no-cache headers.
    """
    payload = await _read_json(request, get_app_settings(request).max_body_bytes)
    outcome = await gate.handle(
        payload,
        actor=client_actor(request),
        session_id=session_id_from(request),
        csrf_token=_csrf_token_from(request, payload),
    )
    headers = dict(AUDIO_HEADERS)
    headers["Content-Length"] = str(len(outcome.audio))
    return Response(content=outcome.audio, media_type="audio/mpeg", headers=headers)


async def _read_json(request: Request, limit: int) -> Any:
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(limit)
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError(limit)
    if not body:
        return None
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None


def _csrf_token_from(request: Request, payload: Any) -> str | None:
    token = request.headers.get(CSRF_HEADER)
    if token:
        return token
    if isinstance(payload, dict):
        for field in ("csrfToken", "_csrfToken"):
            value = payload.get(field)
            if isinstance(value, str) and value:
                return value
    return None
