from app.config.settings import settings
from app.services import system_settings


def test_set_get_and_delete_setting(db_session):
    assert system_settings.get_system_setting(db_session, "FOO") is None

    system_settings.set_system_setting(db_session, "FOO", "1")
    system_settings.set_system_setting(db_session, "FOO", "2")

    assert system_settings.get_system_setting(db_session, "FOO") == "2"
    assert system_settings.get_all_system_settings(db_session) == [{"key": "FOO", "value": "2"}]
    assert system_settings.delete_system_setting(db_session, "FOO") is True
    assert system_settings.delete_system_setting(db_session, "FOO") is False


def test_database_values_win_over_environment(db_session, monkeypatch):
    monkeypatch.setattr(settings, "strava_client_id", "env-id")
    monkeypatch.setattr(settings, "strava_client_secret", "")

    strava = system_settings.get_strava_settings(db_session)
    assert strava.client_id == "env-id"
    assert strava.client_secret is None
    assert not strava.is_configured

    system_settings.update_strava_settings(db_session, client_id="db-id", client_secret="db-secret", app_url="https://example.com/")

    strava = system_settings.get_strava_settings(db_session)
    assert strava.client_id == "db-id"
    assert strava.client_secret == "db-secret"
    assert strava.app_url == "https://example.com"
    assert strava.is_configured


def test_update_strava_settings_skips_empty_values(db_session):
    system_settings.update_strava_settings(db_session, client_id="id", client_secret="secret")
    system_settings.update_strava_settings(db_session, client_id="new-id", client_secret="")

    assert system_settings.get_system_setting(db_session, system_settings.STRAVA_CLIENT_SECRET) == "secret"
    assert system_settings.get_system_setting(db_session, system_settings.STRAVA_CLIENT_ID) == "new-id"


def test_masked_settings_hide_secrets(db_session):
    system_settings.update_strava_settings(db_session, client_id="12345", client_secret="top-secret", app_url="https://x.io")
    system_settings.save_chatgpt_settings(db_session, api_key="sk-test")

    masked = {item["key"]: item["value"] for item in system_settings.masked_system_settings(db_session)}

    assert masked["STRAVA_CLIENT_SECRET"] == "****"
    assert masked["CHATGPT_API_KEY"] == "****"
    assert masked["STRAVA_CLIENT_ID"] == "12345"
    assert system_settings.get_strava_settings(db_session).masked()["client_id"] == "12..."


def test_chatgpt_settings_default_model(db_session, monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "")
    monkeypatch.setattr(settings, "openai_model", "")

    chatgpt = system_settings.get_chatgpt_settings(db_session)
    assert not chatgpt.is_configured
    assert chatgpt.model == system_settings.DEFAULT_CHATGPT_MODEL

    system_settings.save_chatgpt_settings(db_session, api_key="sk-1", organization_id="org-1", model="gpt-4o")

    chatgpt = system_settings.get_chatgpt_settings(db_session)
    assert chatgpt.is_configured
    assert chatgpt.organization_id == "org-1"
    assert chatgpt.model == "gpt-4o"


def test_google_settings(db_session, monkeypatch):
    monkeypatch.setattr(settings, "google_photos_client_id", "")
    monkeypatch.setattr(settings, "google_photos_client_secret", "")
    assert not system_settings.get_google_settings(db_session).is_configured

    system_settings.save_google_settings(db_session, client_id="gid", client_secret="gsecret")

    google = system_settings.get_google_settings(db_session)
    assert google.is_configured
    assert google.masked() == {"client_id": "gi...", "client_secret": "****", "is_configured": True}
