import time

import pytest
import requests

from app.core.encryption import decrypt_token
from app.core.errors import StravaAuthError, StravaConnectionError, StravaNotConfiguredError, StravaTokenRefreshError
from app.db.models import StravaConnection
from app.integrations.strava.client import StravaClient
from app.services import strava_service, system_settings


def _token_data(expires_in=3600, access="access-1", refresh="refresh-1", athlete_id=42):
    data = {"access_token": access, "refresh_token": refresh, "expires_at": int(time.time()) + expires_in}
    if athlete_id is not None:
        data["athlete"] = {"id": athlete_id}
    return data


@pytest.fixture
def strava_user(db_session, make_user):
    user = make_user()
    system_settings.update_strava_settings(db_session, client_id="cid", client_secret="csecret", app_url="https://app.example.com")
    db_session.commit()
    return user


def test_build_redirect_uri():
    assert strava_service.build_redirect_uri("https://app.example.com/") == "https://app.example.com/auth/strava/callback"
    with pytest.raises(StravaNotConfiguredError):
        strava_service.build_redirect_uri("")
    with pytest.raises(StravaNotConfiguredError):
        strava_service.build_redirect_uri("app.example.com")


def test_store_connection_encrypts_tokens(db_session, strava_user):
    connection = strava_service.store_connection(db_session, strava_user.id, _token_data(), scope="read,activity:read_all")

    assert connection.athlete_id == 42
    assert connection.access_token != "access-1"
    assert decrypt_token(connection.access_token) == "access-1"
    assert decrypt_token(connection.refresh_token) == "refresh-1"
    assert connection.scope == "read,activity:read_all"


def test_store_connection_updates_existing(db_session, strava_user):
    strava_service.store_connection(db_session, strava_user.id, _token_data())
    strava_service.store_connection(db_session, strava_user.id, _token_data(access="access-2", athlete_id=None))

    connection = db_session.get(StravaConnection, strava_user.id)
    assert connection.athlete_id == 42
    assert decrypt_token(connection.access_token) == "access-2"


def test_get_valid_access_token_without_connection(db_session, strava_user):
    with pytest.raises(StravaConnectionError):
        strava_service.get_valid_access_token(db_session, strava_user.id)


def test_get_valid_access_token_returns_fresh_token(db_session, strava_user, monkeypatch):
    strava_service.store_connection(db_session, strava_user.id, _token_data())

    def fail_post(*args, **kwargs):
        raise AssertionError("refresh must not be called")

    monkeypatch.setattr(requests, "post", fail_post)

    assert strava_service.get_valid_access_token(db_session, strava_user.id) == "access-1"


def test_token_expiring_soon_is_refreshed(db_session, strava_user, monkeypatch):
    strava_service.store_connection(db_session, strava_user.id, _token_data(expires_in=60))
    new_expiry = int(time.time()) + 21600

    class _Response:
        status_code = 200

        def raise_for_status(self):
            pass

        def json(self):
            return {"access_token": "access-2", "refresh_token": "refresh-2", "expires_at": new_expiry}

    posted = {}

    def mock_post(url, data, timeout):
        posted.update(data)
        return _Response()

    monkeypatch.setattr(requests, "post", mock_post)

    assert strava_service.get_valid_access_token(db_session, strava_user.id) == "access-2"
    connection = db_session.get(StravaConnection, strava_user.id)
    assert connection.expires_at == new_expiry
    assert decrypt_token(connection.refresh_token) == "refresh-2"
    assert posted["refresh_token"] == "refresh-1"
    assert posted["client_id"] == "cid"


def test_refresh_keeps_refresh_token_when_not_rotated(db_session, strava_user, monkeypatch):
    strava_service.store_connection(db_session, strava_user.id, _token_data(expires_in=-10))

    class _Response:
        def raise_for_status(self):
            pass

        def json(self):
            return {"access_token": "access-2", "expires_at": int(time.time()) + 3600}

    monkeypatch.setattr(requests, "post", lambda *args, **kwargs: _Response())

    result = strava_service.force_refresh(db_session, strava_user.id)

    assert result["success"] is True
    connection = db_session.get(StravaConnection, strava_user.id)
    assert decrypt_token(connection.refresh_token) == "refresh-1"


def test_failed_refresh_raises_token_refresh_error(db_session, strava_user, monkeypatch):
    strava_service.store_connection(db_session, strava_user.id, _token_data(expires_in=-10))

    def mock_post(*args, **kwargs):
        raise requests.ConnectionError("strava down")

    monkeypatch.setattr(requests, "post", mock_post)

    with pytest.raises(StravaTokenRefreshError):
        strava_service.get_valid_access_token(db_session, strava_user.id)


def test_connection_status(db_session, strava_user):
    assert strava_service.get_connection_status(db_session, strava_user.id) == {"status": "disconnected", "connected": False}

    strava_service.store_connection(db_session, strava_user.id, _token_data(), scope="read")
    status = strava_service.get_connection_status(db_session, strava_user.id)
    assert status["status"] == "connected"
    assert status["athlete_id"] == 42
    assert status["scope"] == "read"

    db_session.get(StravaConnection, strava_user.id).expires_at = int(time.time()) - 1
    status = strava_service.get_connection_status(db_session, strava_user.id)
    assert status == {"status": "error", "connected": True, "athlete_id": 42, "error": "Token expired"}


def test_delete_connection(db_session, strava_user):
    assert strava_service.delete_connection(db_session, strava_user.id) is False
    strava_service.store_connection(db_session, strava_user.id, _token_data())

    assert strava_service.delete_connection(db_session, strava_user.id) is True
    assert strava_service.get_connection(db_session, strava_user.id) is None


def test_connection_check(db_session, strava_user, monkeypatch):
    strava_service.store_connection(db_session, strava_user.id, _token_data())
    monkeypatch.setattr(StravaClient, "fetch_athlete", lambda self: {"id": 42, "firstname": "Ada", "lastname": "L"})

    result = strava_service.test_connection(db_session, strava_user.id)

    assert result["success"] is True
    assert result["athlete"]["firstname"] == "Ada"


def test_connection_check_reraises_auth_errors(db_session, strava_user, monkeypatch):
    strava_service.store_connection(db_session, strava_user.id, _token_data())

    def unauthorized(self):
        raise StravaAuthError("Authentication failed")

    monkeypatch.setattr(StravaClient, "fetch_athlete", unauthorized)

    with pytest.raises(StravaAuthError):
        strava_service.test_connection(db_session, strava_user.id)
