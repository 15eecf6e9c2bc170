"""Google Photos connection held in system settings, and photo search."""

from __future__ import annotations

import secrets
import time
from datetime import datetime

import requests
from loguru import logger
from sqlalchemy.orm import Session

from app.core.encryption import EncryptionError, decrypt_token, encrypt_token
from app.core.errors import GooglePhotosError
from app.integrations.google import oauth
from app.integrations.google.photos import GooglePhotosClient
from app.services.system_settings import get_google_settings, get_strava_settings, get_system_setting, set_system_setting
from app.utils.timezone import parse_datetime, utcnow

GOOGLE_PHOTOS_ACCESS_TOKEN = "GOOGLE_PHOTOS_ACCESS_TOKEN"
GOOGLE_PHOTOS_REFRESH_TOKEN = "GOOGLE_PHOTOS_REFRESH_TOKEN"
GOOGLE_PHOTOS_TOKEN_EXPIRY = "GOOGLE_PHOTOS_TOKEN_EXPIRY"
GOOGLE_PHOTOS_USER_NAME = "GOOGLE_PHOTOS_USER_NAME"
GOOGLE_PHOTOS_CONNECTED_AT = "GOOGLE_PHOTOS_CONNECTED_AT"
GOOGLE_PHOTOS_AUTH_STATE = "GOOGLE_PHOTOS_AUTH_STATE"

CALLBACK_PATH = "/auth/google/callback"
REFRESH_MARGIN_SECONDS = 300


def _credentials(session: Session) -> tuple[str, str]:
    google = get_google_settings(session)
    if not google.is_configured:
        raise GooglePhotosError("Google Photos API is not configured. Please set up client credentials first.")
    return google.client_id, google.client_secret


def build_redirect_uri(session: Session) -> str:
    app_url = get_strava_settings(session).app_url
    if not app_url:
        raise GooglePhotosError("APP_URL is not configured")
    return f"{app_url.rstrip('/')}{CALLBACK_PATH}"


def _read_secret(session: Session, key: str) -> str | None:
    value = get_system_setting(session, key)
    if not value:
        return None
    try:
        return decrypt_token(value)
    except EncryptionError as e:
        logger.error(f"[GOOGLE_PHOTOS] Cannot decrypt {key}: {e}")
        return None


def get_connection(session: Session) -> dict:
    access_token = _read_secret(session, GOOGLE_PHOTOS_ACCESS_TOKEN)
    refresh_token = _read_secret(session, GOOGLE_PHOTOS_REFRESH_TOKEN)
    expiry = get_system_setting(session, GOOGLE_PHOTOS_TOKEN_EXPIRY)
    return {
        "is_connected": bool(access_token and refresh_token),
        "user_name": get_system_setting(session, GOOGLE_PHOTOS_USER_NAME) or None,
        "connected_at": get_system_setting(session, GOOGLE_PHOTOS_CONNECTED_AT) or None,
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_expiry": int(expiry) if expiry else None,
    }


def get_status(session: Session) -> dict:
    connection = get_connection(session)
    return {
        "isConfigured": get_google_settings(session).is_configured,
        "isConnected": connection["is_connected"],
        "userName": connection["user_name"],
        "connectedAt": connection["connected_at"],
    }


def start_connection(session: Session) -> str:
    """Store a fresh CSRF state and return the consent URL."""
    client_id, _ = _credentials(session)
    state = secrets.token_urlsafe(16)
    set_system_setting(session, GOOGLE_PHOTOS_AUTH_STATE, state)
    logger.info("[GOOGLE_PHOTOS] Starting OAuth flow")
    return oauth.build_authorize_url(client_id=client_id, redirect_uri=build_redirect_uri(session), state=state)


def complete_connection(session: Session, code: str, state: str | None) -> dict:
    """Validate state, exchange the code and store the encrypted tokens.

    Raises:
        GooglePhotosError: On state mismatch or a failed exchange
    """
    expected_state = get_system_setting(session, GOOGLE_PHOTOS_AUTH_STATE)
    if not state or not expected_state or not secrets.compare_digest(state, expected_state):
        logger.warning("[GOOGLE_PHOTOS] OAuth state mismatch")
        raise GooglePhotosError("Invalid OAuth state")

    client_id, client_secret = _credentials(session)
    try:
        token_data = oauth.exchange_code_for_token(
            client_id=client_id,
            client_secret=client_secret,
            code=code,
            redirect_uri=build_redirect_uri(session),
        )
    except requests.RequestException as e:
        raise GooglePhotosError("Failed to exchange Google authorization code") from e

    try:
        user_name = oauth.get_user_info(token_data["access_token"]).get("name")
    except requests.RequestException:
        user_name = None

    set_system_setting(session, GOOGLE_PHOTOS_ACCESS_TOKEN, encrypt_token(token_data["access_token"]))
    if token_data.get("refresh_token"):
        set_system_setting(session, GOOGLE_PHOTOS_REFRESH_TOKEN, encrypt_token(token_data["refresh_token"]))
    set_system_setting(session, GOOGLE_PHOTOS_TOKEN_EXPIRY, str(int(time.time()) + int(token_data.get("expires_in", 3600))))
    set_system_setting(session, GOOGLE_PHOTOS_USER_NAME, user_name or "")
    set_system_setting(session, GOOGLE_PHOTOS_CONNECTED_AT, utcnow().isoformat())
    set_system_setting(session, GOOGLE_PHOTOS_AUTH_STATE, "")
    logger.info(f"[GOOGLE_PHOTOS] Connected as {user_name or 'unknown user'}")
    return get_status(session)


def disconnect(session: Session) -> None:
    for key in (GOOGLE_PHOTOS_ACCESS_TOKEN, GOOGLE_PHOTOS_REFRESH_TOKEN, GOOGLE_PHOTOS_TOKEN_EXPIRY, GOOGLE_PHOTOS_USER_NAME):
        set_system_setting(session, key, "")
    logger.info("[GOOGLE_PHOTOS] Disconnected")


def get_valid_access_token(session: Session) -> str:
    """Access token, refreshed when it expires within 5 minutes.

    Raises:
        GooglePhotosError: If not connected or the refresh fails
    """
    connection = get_connection(session)
    if not connection["is_connected"]:
        raise GooglePhotosError("Not connected to Google Photos")

    if (connection["token_expiry"] or 0) > int(time.time()) + REFRESH_MARGIN_SECONDS:
        return connection["access_token"]

    client_id, client_secret = _credentials(session)
    try:
        token_data = oauth.refresh_access_token(
            client_id=client_id,
            client_secret=client_secret,
            refresh_token=connection["refresh_token"],
        )
    except requests.RequestException as e:
        raise GooglePhotosError("Failed to refresh Google Photos token") from e

    set_system_setting(session, GOOGLE_PHOTOS_ACCESS_TOKEN, encrypt_token(token_data["access_token"]))
    set_system_setting(session, GOOGLE_PHOTOS_TOKEN_EXPIRY, str(int(time.time()) + int(token_data.get("expires_in", 3600))))
    return token_data["access_token"]


def search_photos(session: Session, start: datetime | str, end: datetime | str) -> list[dict]:
    """Photos taken in the date range, as thumbnails."""
    access_token = get_valid_access_token(session)
    photos = GooglePhotosClient(access_token).search_media_items(parse_datetime(start), parse_datetime(end))
    logger.info(f"[GOOGLE_PHOTOS] Found {len(photos)} photos")
    return photos
