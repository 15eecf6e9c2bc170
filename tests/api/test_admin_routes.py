from app.config.settings import settings


def test_admin_requires_admin_role(auth_client):
    assert auth_client.get("/admin/stats").status_code == 403
    assert auth_client.get("/admin/settings").status_code == 403


def test_admin_requires_login(client, db_engine):
    assert client.get("/admin/stats").status_code == 401


def test_admin_email_allow_list(auth_client, monkeypatch):
    monkeypatch.setattr(settings, "admin_emails", "someone@example.com, RUNNER@example.com")

    assert auth_client.get("/admin/stats").status_code == 200


def test_admin_stats(admin_client):
    response = admin_client.get("/admin/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["total_users"] == 1
    assert body["total_activities"] == 0


def test_save_and_read_strava_settings(admin_client):
    saved = admin_client.post(
        "/admin/settings/strava",
        json={"client_id": "cid", "client_secret": "csecret", "app_url": "https://app.example.com/"},
    )

    assert saved.status_code == 200
    assert saved.json()["redirect_uri"] == "https://app.example.com/auth/strava/callback"
    current = admin_client.get("/admin/settings/strava").json()
    assert current["client_secret"] == "****"
    assert current["is_configured"] is True
    masked = {item["key"]: item["value"] for item in admin_client.get("/admin/settings").json()["settings"]}
    assert masked["STRAVA_CLIENT_SECRET"] == "****"


def test_save_strava_settings_rejects_bad_app_url(admin_client):
    response = admin_client.post(
        "/admin/settings/strava",
        json={"client_id": "cid", "client_secret": "csecret", "app_url": "not a url"},
    )

    assert response.status_code == 400


def test_chatgpt_and_google_settings(admin_client):
    assert admin_client.post("/admin/settings/chatgpt", json={"api_key": "sk-test", "model": "gpt-4o"}).status_code == 200
    chatgpt = admin_client.get("/admin/settings/chatgpt").json()
    assert chatgpt["api_key"] == "****"
    assert chatgpt["model"] == "gpt-4o"

    assert admin_client.post("/admin/settings/google", json={"client_id": "gid", "client_secret": "gs"}).status_code == 200
    assert admin_client.get("/admin/settings/google").json()["is_configured"] is True


def test_chatgpt_connection_check_not_configured(admin_client, monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "")

    assert admin_client.post("/admin/settings/chatgpt/test").status_code == 400


def test_usage_stats(admin_client):
    assert admin_client.post("/admin/usage-stats", json={"tokens_used": 120, "cost": 0.002, "model": "gpt-4o-mini"}).status_code == 200

    summary = admin_client.get("/admin/usage-stats").json()

    assert summary["today"]["total_tokens"] == 120
    assert summary["allTime"]["days_used"] == 1
