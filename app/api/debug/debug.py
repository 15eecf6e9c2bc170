"""Debug endpoints for session and configuration troubleshooting.

Disabled (404) in production.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.dependencies.auth import CurrentUser, get_auth_token, get_optional_user
from app.config.settings import settings
from app.core.errors import AppError
from app.db.session import get_session
from app.services import strava_service
from app.services.system_settings import get_strava_settings


def _debug_enabled() -> None:
    if settings.is_production:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")


router = APIRouter(prefix="/debug", tags=["debug"], dependencies=[Depends(_debug_enabled)])


@router.get("/session")
def debug_session(
    request: Request,
    token: str | None = Depends(get_auth_token),
    user: CurrentUser | None = Depends(get_optional_user),
):
    cookies = [
        {
            "name": name,
            "value": "REDACTED" if "session" in name else f"{value[:10]}...",
        }
        for name, value in request.cookies.items()
    ]
    return {
        "success": True,
        "hasSessionToken": bool(token),
        "sessionValid": user is not None,
        "user": user.to_dict() if user else None,
        "cookies": cookies,
    }


@router.get("/settings")
def debug_settings():
    with get_session() as session:
        strava = get_strava_settings(session)
    try:
        redirect_uri = strava_service.build_redirect_uri(strava.app_url)
    except AppError:
        redirect_uri = None
    return {"settings": strava.masked(), "redirectUri": redirect_uri}
