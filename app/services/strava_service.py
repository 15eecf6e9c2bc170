"""Per-user Strava connection: token storage, refresh and status."""

from __future__ import annotations

from urllib.parse import urlparse

import requests
from loguru import logger
from sqlalchemy.orm import Session

from app.core.encryption import EncryptionError, decrypt_token, encrypt_token
from app.core.errors import (
    StravaConnectionError,
    StravaNotConfiguredError,
    StravaTokenRefreshError,
    is_strava_auth_problem,
)
from app.db.models import StravaConnection
from app.integrations.strava.client import StravaClient
from app.integrations.strava.tokens import REFRESH_MARGIN_SECONDS, is_token_expired, refresh_access_token
from app.services.system_settings import get_strava_settings
from app.utils.timezone import utcnow

CALLBACK_PATH = "/auth/strava/callback"
NO_CONNECTION_MESSAGE = "No Strava connection found. Please connect your Strava account in Settings."


def build_redirect_uri(app_url: str | None) -> str:
    """Strava callback URL derived from APP_URL.

    Raises:
        StravaNotConfiguredError: If app_url is missing or not an absolute http(s) URL
    """
    if not app_url:
        raise StravaNotConfiguredError("APP_URL is not configured")
    base = app_url.strip().rstrip("/")
    parsed = urlparse(base)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise StravaNotConfiguredError(f"Invalid APP_URL: {app_url}")
    return f"{base}{CALLBACK_PATH}"


def get_connection(session: Session, user_id: str) -> StravaConnection | None:
    return session.get(StravaConnection, user_id)


def store_connection(session: Session, user_id: str, token_data: dict, scope: str | None = None) -> StravaConnection:
    """Insert or update the user's connection from a Strava token response."""
    athlete = token_data.get("athlete") or {}
    connection = session.get(StravaConnection, user_id)
    if connection is None:
        connection = StravaConnection(user_id=user_id, created_at=utcnow())
        session.add(connection)

    if athlete.get("id"):
        connection.athlete_id = int(athlete["id"])
    elif connection.athlete_id is None:
        connection.athlete_id = 0
    connection.access_token = encrypt_token(str(token_data["access_token"]))
    connection.refresh_token = encrypt_token(str(token_data["refresh_token"]))
    connection.expires_at = int(token_data["expires_at"])
    if scope is not None:
        connection.scope = scope
    connection.updated_at = utcnow()
    session.flush()
    logger.info(f"[STRAVA_OAUTH] Connection stored user_id={user_id}, athlete_id={connection.athlete_id}")
    return connection


def delete_connection(session: Session, user_id: str) -> bool:
    connection = session.get(StravaConnection, user_id)
    if connection is None:
        return False
    session.delete(connection)
    session.flush()
    logger.info(f"[STRAVA_OAUTH] Connection removed user_id={user_id}")
    return True


def _refresh_connection(session: Session, connection: StravaConnection) -> None:
    strava_settings = get_strava_settings(session)
    if not (strava_settings.client_id and strava_settings.client_secret):
        raise StravaTokenRefreshError("Strava client credentials are not configured")

    try:
        refresh_token = decrypt_token(connection.refresh_token)
        token_data = refresh_access_token(
            client_id=strava_settings.client_id,
            client_secret=strava_settings.client_secret,
            refresh_token=refresh_token,
        )
    except (requests.RequestException, EncryptionError) as e:
        logger.error(f"[STRAVA_OAUTH] Token refresh failed user_id={connection.user_id}: {e}")
        raise StravaTokenRefreshError(f"Failed to refresh Strava token: {e}") from e

    connection.access_token = encrypt_token(str(token_data["access_token"]))
    # Strava may rotate the refresh token
    connection.refresh_token = encrypt_token(str(token_data.get("refresh_token") or refresh_token))
    connection.expires_at = int(token_data["expires_at"])
    connection.updated_at = utcnow()
    session.flush()


def get_valid_access_token(session: Session, user_id: str) -> str:
    """Return a usable access token, refreshing it when it expires within 5 minutes.

    Raises:
        StravaConnectionError: If the user has no connection
        StravaTokenRefreshError: If a needed refresh fails
    """
    connection = get_connection(session, user_id)
    if connection is None:
        raise StravaConnectionError(NO_CONNECTION_MESSAGE)

    if is_token_expired(connection.expires_at, margin_seconds=REFRESH_MARGIN_SECONDS):
        logger.info(f"[STRAVA_OAUTH] Access token expiring, refreshing user_id={user_id}")
        _refresh_connection(session, connection)

    try:
        return decrypt_token(connection.access_token)
    except EncryptionError as e:
        raise StravaConnectionError("Stored Strava token cannot be read. Please reconnect your Strava account.") from e


def get_client(session: Session, user_id: str) -> StravaClient:
    return StravaClient(get_valid_access_token(session, user_id))


def get_connection_status(session: Session, user_id: str) -> dict:
    """Connection summary for the settings page."""
    connection = get_connection(session, user_id)
    if connection is None:
        return {"status": "disconnected", "connected": False}
    if is_token_expired(connection.expires_at):
        return {
            "status": "error",
            "connected": True,
            "athlete_id": connection.athlete_id,
            "error": "Token expired",
        }
    return {
        "status": "connected",
        "connected": True,
        "athlete_id": connection.athlete_id,
        "scope": connection.scope,
        "expires_at": connection.expires_at,
    }


def test_connection(session: Session, user_id: str) -> dict:
    """Fetch the athlete profile to prove the stored credentials work."""
    try:
        athlete = get_client(session, user_id).fetch_athlete()
    except Exception as e:
        if is_strava_auth_problem(e):
            raise
        logger.error(f"[STRAVA_API] Connection test failed user_id={user_id}: {e}")
        return {"success": False, "error": str(e)}

    logger.info(f"[STRAVA_API] Connection test succeeded user_id={user_id}, athlete_id={athlete.get('id')}")
    return {
        "success": True,
        "athlete": {
            "id": athlete.get("id"),
            "firstname": athlete.get("firstname"),
            "lastname": athlete.get("lastname"),
            "username": athlete.get("username"),
        },
    }


def force_refresh(session: Session, user_id: str) -> dict:
    """Refresh the token regardless of expiry."""
    connection = get_connection(session, user_id)
    if connection is None:
        raise StravaConnectionError(NO_CONNECTION_MESSAGE)
    _refresh_connection(session, connection)
    logger.info(f"[STRAVA_OAUTH] Token force-refreshed user_id={user_id}")
    return {"success": True, "expires_at": connection.expires_at}
