"""Google OAuth utilities for the Google Photos connection."""

from urllib.parse import urlencode

import requests
from loguru import logger

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_PHOTOS_SCOPES = ["https://www.googleapis.com/auth/photoslibrary.readonly", "profile", "email"]


def build_authorize_url(*, client_id: str, redirect_uri: str, state: str) -> str:
    """Consent URL requesting offline access to the photo library."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(GOOGLE_PHOTOS_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def _log_http_error(action: str, e: requests.HTTPError) -> None:
    status_code = e.response.status_code if e.response is not None else "Unknown"
    error_text = e.response.text if e.response is not None else "No response text"
    logger.error(f"[GOOGLE_PHOTOS] {action} failed: {status_code} - {error_text}")


def exchange_code_for_token(
    *,
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str,
) -> dict:
    """Exchange Google authorization code for access token.

    Args:
        client_id: Google application client ID
        client_secret: Google application client secret
        code: Authorization code from Google callback
        redirect_uri: Redirect URI used in authorization (must match exactly)

    Returns:
        Token response dictionary containing access_token, refresh_token, expires_in, etc.

    Raises:
        requests.HTTPError: If token exchange fails
    """
    logger.info("[GOOGLE_PHOTOS] Exchanging authorization code for access token")
    try:
        resp = requests.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": redirect_uri,
            },
            timeout=10,
        )
        resp.raise_for_status()
    except requests.HTTPError as e:
        _log_http_error("Token exchange", e)
        raise
    else:
        return resp.json()


def refresh_access_token(*, client_id: str, client_secret: str, refresh_token: str) -> dict:
    """Exchange a refresh token for a new access token.

    Raises:
        requests.HTTPError: If Google rejects the refresh
    """
    try:
        resp = requests.post(
            GOOGLE_TOKEN_URL,
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
        _log_http_error("Token refresh", e)
        raise
    else:
        logger.info("[GOOGLE_PHOTOS] Access token refreshed")
        return resp.json()


def get_user_info(access_token: str) -> dict:
    """Get user information from Google using access token.

    Raises:
        requests.HTTPError: If API call fails
    """
    try:
        resp = requests.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10,
        )
        resp.raise_for_status()
    except requests.HTTPError as e:
        _log_http_error("User info fetch", e)
        raise
    else:
        return resp.json()
