"""Strava OAuth endpoints for connection management.

- Users connect their Strava account (state tied to the session user)
- Users disconnect, check status, test and refresh the connection
- Tokens are stored encrypted and never exposed to the frontend
"""

from __future__ import annotations

import json
import secrets
import threading
from datetime import datetime, timezone
from urllib.parse import quote

import requests
from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from loguru import logger

from app.api.dependencies.auth import CurrentUser, get_current_user, get_optional_user
from app.api.errors import to_http_exception
from app.core.errors import AppError, StravaNotConfiguredError
from app.db.session import get_session
from app.integrations.strava.oauth import build_authorize_url, exchange_code_for_token
from app.services import strava_service
from app.services.system_settings import get_strava_settings

router = APIRouter(prefix="/auth/strava", tags=["auth", "strava"])

OAUTH_STATE_TTL_SECONDS = 600
SETTINGS_PAGE = "/settings?tab=user"

# state -> (user_id, timestamp)
_oauth_states: dict[str, tuple[str, float]] = {}
_oauth_states_lock = threading.Lock()


def _generate_oauth_state(user_id: str) -> str:
    """Generate a secure OAuth state token tied to the user."""
    state = secrets.token_urlsafe(32)
    now = datetime.now(timezone.utc).timestamp()
    with _oauth_states_lock:
        # Drop expired states so the map does not grow unbounded
        for key in [k for k, (_, ts) in _oauth_states.items() if now - ts > OAUTH_STATE_TTL_SECONDS]:
            del _oauth_states[key]
        _oauth_states[state] = (user_id, now)
    logger.debug(f"[STRAVA_OAUTH] Generated OAuth state for user_id={user_id}: {state[:16]}...")
    return state


def _validate_and_extract_state(state: str | None) -> str | None:
    """Consume an OAuth state and return its user_id, or None when unknown or expired."""
    if not state:
        return None
    with _oauth_states_lock:
        entry = _oauth_states.pop(state, None)
    if entry is None:
        logger.warning(f"[STRAVA_OAUTH] Invalid OAuth state: {state[:16]}... (not found)")
        return None
    user_id, timestamp = entry
    if datetime.now(timezone.utc).timestamp() - timestamp > OAUTH_STATE_TTL_SECONDS:
        logger.warning(f"[STRAVA_OAUTH] OAuth state expired: {state[:16]}...")
        return None
    return user_id


def _error_redirect(error: str, description: str, **extra) -> RedirectResponse:
    details = {
        "error": error,
        "description": description,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **extra,
    }
    return RedirectResponse(
        url=f"{SETTINGS_PAGE}&error={error}&details={quote(json.dumps(details))}",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/connect")
def strava_connect(user: CurrentUser = Depends(get_current_user)):
    """Return the Strava authorize URL. The frontend redirects to it."""
    logger.info(f"[STRAVA_OAUTH] Connect initiated for user_id={user.id}")
    with get_session() as session:
        strava_settings = get_strava_settings(session)
        if not strava_settings.is_configured:
            raise to_http_exception(StravaNotConfiguredError("Strava API credentials are not configured"))
        try:
            redirect_uri = strava_service.build_redirect_uri(strava_settings.app_url)
        except StravaNotConfiguredError as e:
            raise to_http_exception(e) from e

    oauth_url = build_authorize_url(
        client_id=strava_settings.client_id,
        redirect_uri=redirect_uri,
        state=_generate_oauth_state(user.id),
    )
    return {"url": oauth_url, "redirect_uri": redirect_uri}


@router.get("/callback")
def strava_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    scope: str | None = None,
    user: CurrentUser | None = Depends(get_optional_user),
):
    """Handle the Strava redirect: validate state, exchange the code and store the connection.

    Always answers with a redirect to the settings page carrying success or error details.
    """
    logger.info(f"[STRAVA_OAUTH] Callback received code={'present' if code else 'missing'}, error={error}")

    if error or not code:
        description = "User denied access" if error == "access_denied" else "Authorization failed"
        return _error_redirect("oauth_error", description, oauth_error=error)

    state_user_id = _validate_and_extract_state(state)
    if state_user_id is None:
        return _error_redirect("invalid_state", "Invalid or expired authorization request. Please try again.")
    if user is not None and user.id != state_user_id:
        logger.warning(f"[STRAVA_OAUTH] State user mismatch: state_user={state_user_id}, session_user={user.id}")
        return _error_redirect("invalid_state", "Authorization request belongs to another user")

    with get_session() as session:
        strava_settings = get_strava_settings(session)
        if not strava_settings.is_configured:
            return _error_redirect("config_error", "Strava API credentials are not configured")
        try:
            redirect_uri = strava_service.build_redirect_uri(strava_settings.app_url)
        except StravaNotConfiguredError as e:
            return _error_redirect("config_error", str(e))

        try:
            token_data = exchange_code_for_token(
                client_id=strava_settings.client_id,
                client_secret=strava_settings.client_secret,
                code=code,
                redirect_uri=redirect_uri,
            )
        except requests.RequestException as e:
            response = getattr(e, "response", None)
            return _error_redirect(
                "token_error",
                "Failed to exchange authorization code for access token",
                status=response.status_code if response is not None else None,
            )

        if not (token_data.get("athlete") or {}).get("id"):
            return _error_redirect("token_error", "No athlete data in token response")

        strava_service.store_connection(session, state_user_id, token_data, scope=scope)

    logger.info(f"[STRAVA_OAUTH] Strava connection completed for user_id={state_user_id}")
    return RedirectResponse(url=f"{SETTINGS_PAGE}&success=connected", status_code=status.HTTP_302_FOUND)


@router.post("/disconnect")
def strava_disconnect(user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        removed = strava_service.delete_connection(session, user.id)
    return {"connected": False, "message": "Strava disconnected" if removed else "Strava already disconnected"}


@router.get("/status")
def strava_status(user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        return strava_service.get_connection_status(session, user.id)


@router.post("/test")
def strava_test(user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        try:
            return strava_service.test_connection(session, user.id)
        except AppError as e:
            raise to_http_exception(e) from e


@router.post("/refresh-token")
def strava_refresh_token(user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        try:
            return strava_service.force_refresh(session, user.id)
        except AppError as e:
            raise to_http_exception(e) from e
