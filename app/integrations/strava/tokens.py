from __future__ import annotations

import datetime as dt

import requests
from loguru import logger

from app.integrations.strava.oauth import STRAVA_TOKEN_URL

# Refresh tokens that expire within this window
REFRESH_MARGIN_SECONDS = 5 * 60


def refresh_access_token(
    *,
    client_id: str,
    client_secret: str,
    refresh_token: str,
) -> dict[str, str | int]:
    """Exchange refresh token for new access token.

    Raises:
        requests.HTTPError: If Strava rejects the refresh
    """
    logger.debug("[STRAVA_OAUTH] Refreshing Strava access token")
    try:
        resp = requests.post(
            STRAVA_TOKEN_URL,
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            timeout=10,
        )
        resp.raise_for_status()
    except requests.HTTPError as e:
        logger.error(f"[STRAVA_OAUTH] Token refresh failed: {e.response.status_code} - {e.response.text}")
        raise
    except Exception as e:
        logger.error(f"[STRAVA_OAUTH] Unexpected error during token refresh: {e}")
        raise
    else:
        token_data = resp.json()
        logger.info(f"[STRAVA_OAUTH] Access token refreshed, new expires_at={get_token_expiry_datetime(int(token_data['expires_at'])).isoformat()}")
        return token_data


def is_token_expired(expires_at: int, margin_seconds: int = 0) -> bool:
    """Check if token is expired, or expires within margin_seconds."""
    expires_datetime = get_token_expiry_datetime(expires_at)
    return dt.datetime.now(dt.timezone.utc) + dt.timedelta(seconds=margin_seconds) >= expires_datetime


def get_token_expiry_datetime(expires_at: int) -> dt.datetime:
    """Convert expires_at timestamp to datetime."""
    return dt.datetime.fromtimestamp(expires_at, tz=dt.timezone.utc)
