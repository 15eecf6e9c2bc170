from urllib.parse import urlencode

import requests
from loguru import logger

STRAVA_AUTHORIZE_URL = "https://www.strava.com/oauth/authorize"
STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"
STRAVA_SCOPE = "read,activity:read_all"


def build_authorize_url(*, client_id: str, redirect_uri: str, state: str | None = None) -> str:
    """Build the Strava authorize URL requesting activity read access."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": STRAVA_SCOPE,
        "approval_prompt": "force",
    }
    if state:
        params["state"] = state
    return f"{STRAVA_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code_for_token(
    *,
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str | None = None,
) -> dict:
    """Exchange Strava authorization code for access token.

    Args:
        client_id: Strava application client ID
        client_secret: Strava application client secret
        code: Authorization code from Strava callback
        redirect_uri: Redirect URI used in authorization (must match exactly)

    Returns:
        Token response containing access_token, refresh_token, expires_at and athlete

    Raises:
        requests.HTTPError: If token exchange fails
    """
    logger.info("[STRAVA_OAUTH] Exchanging authorization code for access token")
    data = {
        "client_id": client_id,
        "client_secret": client_secret,
        "code": code,
        "grant_type": "authorization_code",
    }
    if redirect_uri:
        data["redirect_uri"] = redirect_uri
    try:
        resp = requests.post(STRAVA_TOKEN_URL, data=data, timeout=10)
        resp.raise_for_status()
        token_data = resp.json()
        logger.info("[STRAVA_OAUTH] Successfully exchanged code for token")
    except requests.HTTPError as e:
        status_code = e.response.status_code if e.response is not None else "Unknown"
        error_text = e.response.text if e.response is not None else "No response text"
        logger.error(f"[STRAVA_OAUTH] Token exchange failed: {status_code} - {error_text}")
        raise
    except Exception as e:
        logger.error(f"[STRAVA_OAUTH] Unexpected error during OAuth exchange: {e}")
        raise
    else:
        return token_data
