"""Anti-forgery token routes."""

from fastapi import APIRouter, Depends, Request, Response

from app.config import Settings
from app.routers.dependencies import (
    CSRF_HEADER,
    enforce_api_rate_limit,
    get_app_settings,
    get_csrf_service,
    session_id_from,
)
from app.schemas.synthesis import CSRFTokenResponse
from app.services.csrf import CSRFTokenService
from app.services.security import generate_session_id

router = APIRouter(
    prefix="/api",
    tags=["csrf"],
    dependencies=[Depends(enforce_api_rate_limit)],
)


@router.get(
    "/csrf-token",
    response_model=CSRFTokenResponse,
    response_model_exclude_none=True,
)
async def issue_csrf_token(
    request: Request,
    response: Response,
    csrf_service: CSRFTokenService = Depends(get_csrf_service),
    settings: Settings = Depends(get_app_settings),
) -> CSRFTokenResponse:
    """Issue a one-time token bound to the caller's session.

    Parameters
    ----------
    request : Request
        Incoming request.
    response : Response
        Outgoing response, used for headers and the session cookie.
    csrf_service : CSRFTokenService
        Token service.
    settings : Settings
        Application settings.

    Returns
    -------
    CSRFTokenResponse
        Token, bound session and deadline. The session is left out when
        it was only delivered as a cookie.
    """
    session_id = session_id_from(request)
    minted = session_id is None
    if minted:
        session_id = generate_session_id()
        response.set_cookie(
            settings.session_cookie_name,
            session_id,
            httponly=True,
            samesite="strict",
            secure=not settings.is_development,
        )
    issued = csrf_service.issue(session_id)
    response.headers[CSRF_HEADER] = issued.token
    response.headers["Cache-Control"] = "no-store"
    return CSRFTokenResponse(
        csrf_token=issued.token,
        session_id=None if minted else issued.session_id,
        expires_at=issued.expires_at,
    )
