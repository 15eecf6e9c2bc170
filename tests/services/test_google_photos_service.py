import time

import pytest
import requests

from app.config.settings import settings
from app.core.encryption import decrypt_token, encrypt_token
from app.core.errors import GooglePhotosError
from app.integrations.google import oauth
from app.integrations.google.photos import GooglePhotosClient
from app.services import google_photos_service, system_settings


@pytest.fixture
def google_configured(db_session):
    system_settings.save_google_settings(db_session, client_id="gid", client_secret="gsecret")
    system_settings.update_strava_settings(db_session, app_url="https://app.example.com")
    db_session.commit()


def _connect(db_session, expires_in=3600):
    system_settings.set_system_setting(db_session, google_photos_service.GOOGLE_PHOTOS_ACCESS_TOKEN, encrypt_token("g-access"))
    system_settings.set_system_setting(db_session, google_photos_service.GOOGLE_PHOTOS_REFRESH_TOKEN, encrypt_token("g-refresh"))
    system_settings.set_system_setting(
        db_session, google_photos_service.GOOGLE_PHOTOS_TOKEN_EXPIRY, str(int(time.time()) + expires_in)
    )


def test_status_when_not_configured(db_session, monkeypatch):
    monkeypatch.setattr(settings, "google_photos_client_id", "")
    monkeypatch.setattr(settings, "google_photos_client_secret", "")
    status = google_photos_service.get_status(db_session)

    assert status == {"isConfigured": False, "isConnected": False, "userName": None, "connectedAt": None}
    with pytest.raises(GooglePhotosError):
        google_photos_service.start_connection(db_session)


def test_start_connection_stores_state(db_session, google_configured):
    url = google_photos_service.start_connection(db_session)

    state = system_settings.get_system_setting(db_session, google_photos_service.GOOGLE_PHOTOS_AUTH_STATE)
    assert state
    assert f"state={state}" in url
    assert "redirect_uri=https%3A%2F%2Fapp.example.com%2Fauth%2Fgoogle%2Fcallback" in url


def test_complete_connection_rejects_bad_state(db_session, google_configured):
    google_photos_service.start_connection(db_session)

    with pytest.raises(GooglePhotosError):
        google_photos_service.complete_connection(db_session, "code", "forged-state")


def test_complete_connection_stores_encrypted_tokens(db_session, google_configured, monkeypatch):
    google_photos_service.start_connection(db_session)
    state = system_settings.get_system_setting(db_session, google_photos_service.GOOGLE_PHOTOS_AUTH_STATE)
    monkeypatch.setattr(
        oauth,
        "exchange_code_for_token",
        lambda **kwargs: {"access_token": "g-access", "refresh_token": "g-refresh", "expires_in": 3600},
    )
    monkeypatch.setattr(oauth, "get_user_info", lambda access_token: {"name": "Ada Lovelace"})

    status = google_photos_service.complete_connection(db_session, "code", state)

    assert status["isConnected"] is True
    assert status["userName"] == "Ada Lovelace"
    stored = system_settings.get_system_setting(db_session, google_photos_service.GOOGLE_PHOTOS_ACCESS_TOKEN)
    assert stored != "g-access"
    assert decrypt_token(stored) == "g-access"
    assert system_settings.get_system_setting(db_session, google_photos_service.GOOGLE_PHOTOS_AUTH_STATE) == ""


def test_disconnect(db_session, google_configured):
    _connect(db_session)
    assert google_photos_service.get_status(db_session)["isConnected"] is True

    google_photos_service.disconnect(db_session)

    assert google_photos_service.get_status(db_session)["isConnected"] is False


def test_expiring_token_is_refreshed(db_session, google_configured, monkeypatch):
    _connect(db_session, expires_in=60)
    monkeypatch.setattr(oauth, "refresh_access_token", lambda **kwargs: {"access_token": "g-access-2", "expires_in": 3600})

    assert google_photos_service.get_valid_access_token(db_session) == "g-access-2"


def test_refresh_failure(db_session, google_configured, monkeypatch):
    _connect(db_session, expires_in=-1)

    def broken(**kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(oauth, "refresh_access_token", broken)

    with pytest.raises(GooglePhotosError):
        google_photos_service.get_valid_access_token(db_session)


def test_search_photos(db_session, google_configured, monkeypatch):
    _connect(db_session)
    captured = {}

    def fake_search(self, start, end):
        captured.update(token=self._access_token, start=start, end=end)
        return [{"id": "p1"}]

    monkeypatch.setattr(GooglePhotosClient, "search_media_items", fake_search)

    photos = google_photos_service.search_photos(db_session, "2024-06-01T00:00:00Z", "2024-06-02T00:00:00Z")

    assert photos == [{"id": "p1"}]
    assert captured["token"] == "g-access"
    assert captured["start"].day == 1
