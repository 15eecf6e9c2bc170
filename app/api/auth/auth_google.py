"""Google Photos OAuth endpoints and photo search."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from loguru import logger
from pydantic import BaseModel

from app.api.dependencies.auth import CurrentUser, get_current_user
from app.api.errors import to_http_exception
from app.core.errors import GooglePhotosError
from app.db.session import get_session
from app.services import google_photos_service

router = APIRouter(prefix="/auth/google", tags=["auth", "google"])

SETTINGS_PAGE = "/settings?tab=user"


class PhotoSearchRequest(BaseModel):
    start_date: str
    end_date: str


@router.get("/connect")
def google_connect(user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        try:
            url = google_photos_service.start_connection(session)
        except GooglePhotosError as e:
            raise to_http_exception(e) from e
    logger.info(f"[GOOGLE_PHOTOS] Connect initiated by user_id={user.id}")
    return {"url": url}


@router.get("/callback")
def google_callback(code: str | None = None, state: str | None = None, error: str | None = None):
    if error or not code:
        logger.warning(f"[GOOGLE_PHOTOS] OAuth callback error={error}")
        return RedirectResponse(url=f"{SETTINGS_PAGE}&error=google_oauth_error", status_code=status.HTTP_302_FOUND)

    try:
        with get_session() as session:
            google_photos_service.complete_connection(session, code, state)
    except GooglePhotosError as e:
        logger.error(f"[GOOGLE_PHOTOS] Callback failed: {e}")
        return RedirectResponse(url=f"{SETTINGS_PAGE}&error=google_connection_failed", status_code=status.HTTP_302_FOUND)

    return RedirectResponse(url=f"{SETTINGS_PAGE}&success=google_connected", status_code=status.HTTP_302_FOUND)


@router.post("/disconnect")
def google_disconnect(user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        google_photos_service.disconnect(session)
    return {"success": True}


@router.get("/status")
def google_status(user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        return google_photos_service.get_status(session)


@router.post("/photos")
def google_photos(request: PhotoSearchRequest, user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        try:
            photos = google_photos_service.search_photos(session, request.start_date, request.end_date)
        except (GooglePhotosError, ValueError) as e:
            raise to_http_exception(e) from e
    return {"photos": photos}
