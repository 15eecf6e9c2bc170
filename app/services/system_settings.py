"""Key/value system settings and the grouped integration views built on them.

Rows in ``system_settings`` win over environment configuration so admins can
change integration credentials at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.models import SystemSetting
from app.utils.timezone import utcnow

STRAVA_CLIENT_ID = "STRAVA_CLIENT_ID"
STRAVA_CLIENT_SECRET = "STRAVA_CLIENT_SECRET"
STRAVA_WEBHOOK_VERIFY_TOKEN = "STRAVA_WEBHOOK_VERIFY_TOKEN"
APP_URL = "APP_URL"
STRAVA_ACCESS_TOKEN = "STRAVA_ACCESS_TOKEN"
STRAVA_REFRESH_TOKEN = "STRAVA_REFRESH_TOKEN"

CHATGPT_API_KEY = "CHATGPT_API_KEY"
CHATGPT_ORGANIZATION_ID = "CHATGPT_ORGANIZATION_ID"
CHATGPT_MODEL = "CHATGPT_MODEL"
DEFAULT_CHATGPT_MODEL = "gpt-4o-mini"

GOOGLE_PHOTOS_CLIENT_ID = "GOOGLE_PHOTOS_CLIENT_ID"
GOOGLE_PHOTOS_CLIENT_SECRET = "GOOGLE_PHOTOS_CLIENT_SECRET"

# Keys whose values are secrets and must be masked when listed
SECRET_KEYS = {
    STRAVA_CLIENT_SECRET,
    STRAVA_WEBHOOK_VERIFY_TOKEN,
    STRAVA_ACCESS_TOKEN,
    STRAVA_REFRESH_TOKEN,
    CHATGPT_API_KEY,
    GOOGLE_PHOTOS_CLIENT_SECRET,
    "GOOGLE_PHOTOS_ACCESS_TOKEN",
    "GOOGLE_PHOTOS_REFRESH_TOKEN",
    "GOOGLE_PHOTOS_AUTH_STATE",
}


def get_system_setting(session: Session, key: str) -> str | None:
    row = session.execute(select(SystemSetting).where(SystemSetting.key == key)).scalar_one_or_none()
    return row.value if row else None


def set_system_setting(session: Session, key: str, value: str) -> None:
    """Insert or update a setting and stamp updated_at."""
    row = session.get(SystemSetting, key)
    if row is None:
        session.add(SystemSetting(key=key, value=value, updated_at=utcnow()))
    else:
        row.value = value
        row.updated_at = utcnow()
    session.flush()
    logger.debug(f"[SETTINGS] Set system setting {key}")


def get_all_system_settings(session: Session) -> list[dict[str, str]]:
    rows = session.execute(select(SystemSetting).order_by(SystemSetting.key)).scalars().all()
    return [{"key": row.key, "value": row.value} for row in rows]


def delete_system_setting(session: Session, key: str) -> bool:
    """Delete a setting. Returns True when a row was removed."""
    result = session.execute(delete(SystemSetting).where(SystemSetting.key == key))
    return bool(result.rowcount)


def mask_secret(value: str | None) -> str | None:
    if not value:
        return None
    return f"{value[:2]}..."


def masked_system_settings(session: Session) -> list[dict[str, str | None]]:
    """All settings with secret values masked."""
    return [
        {"key": item["key"], "value": "****" if item["key"] in SECRET_KEYS and item["value"] else item["value"]}
        for item in get_all_system_settings(session)
    ]


def _setting_or_env(session: Session, key: str, env_value: str) -> str | None:
    value = get_system_setting(session, key)
    if value:
        return value
    return env_value or None


@dataclass
class StravaSettings:
    client_id: str | None
    client_secret: str | None
    webhook_verify_token: str | None
    app_url: str | None
    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.app_url)

    def masked(self) -> dict:
        return {
            "client_id": mask_secret(self.client_id),
            "client_secret": "****" if self.client_secret else None,
            "webhook_verify_token": "****" if self.webhook_verify_token else None,
            "app_url": self.app_url,
            "is_configured": self.is_configured,
        }


def get_strava_settings(session: Session) -> StravaSettings:
    return StravaSettings(
        client_id=_setting_or_env(session, STRAVA_CLIENT_ID, settings.strava_client_id),
        client_secret=_setting_or_env(session, STRAVA_CLIENT_SECRET, settings.strava_client_secret),
        webhook_verify_token=_setting_or_env(session, STRAVA_WEBHOOK_VERIFY_TOKEN, settings.strava_webhook_verify_token),
        app_url=_setting_or_env(session, APP_URL, settings.app_url),
        access_token=get_system_setting(session, STRAVA_ACCESS_TOKEN),
        refresh_token=get_system_setting(session, STRAVA_REFRESH_TOKEN),
    )


def update_strava_settings(
    session: Session,
    *,
    client_id: str | None = None,
    client_secret: str | None = None,
    webhook_verify_token: str | None = None,
    app_url: str | None = None,
    access_token: str | None = None,
    refresh_token: str | None = None,
) -> None:
    """Write the provided Strava settings. Empty values leave the stored ones untouched."""
    values = {
        STRAVA_CLIENT_ID: client_id,
        STRAVA_CLIENT_SECRET: client_secret,
        STRAVA_WEBHOOK_VERIFY_TOKEN: webhook_verify_token,
        APP_URL: app_url.rstrip("/") if app_url else app_url,
        STRAVA_ACCESS_TOKEN: access_token,
        STRAVA_REFRESH_TOKEN: refresh_token,
    }
    for key, value in values.items():
        if value:
            set_system_setting(session, key, value)
    logger.info("[SETTINGS] Strava settings saved")


@dataclass
class ChatGPTSettings:
    api_key: str | None
    organization_id: str | None
    model: str = DEFAULT_CHATGPT_MODEL

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def masked(self) -> dict:
        return {
            "api_key": "****" if self.api_key else None,
            "organization_id": self.organization_id,
            "model": self.model,
            "is_configured": self.is_configured,
        }


def get_chatgpt_settings(session: Session) -> ChatGPTSettings:
    model = _setting_or_env(session, CHATGPT_MODEL, settings.openai_model)
    return ChatGPTSettings(
        api_key=_setting_or_env(session, CHATGPT_API_KEY, settings.openai_api_key),
        organization_id=_setting_or_env(session, CHATGPT_ORGANIZATION_ID, settings.openai_organization_id),
        model=model or DEFAULT_CHATGPT_MODEL,
    )


def save_chatgpt_settings(session: Session, *, api_key: str, organization_id: str | None = None, model: str | None = None) -> None:
    set_system_setting(session, CHATGPT_API_KEY, api_key)
    if organization_id:
        set_system_setting(session, CHATGPT_ORGANIZATION_ID, organization_id)
    if model:
        set_system_setting(session, CHATGPT_MODEL, model)
    logger.info("[SETTINGS] ChatGPT settings saved")


@dataclass
class GoogleSettings:
    client_id: str | None
    client_secret: str | None

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def masked(self) -> dict:
        return {
            "client_id": mask_secret(self.client_id),
            "client_secret": "****" if self.client_secret else None,
            "is_configured": self.is_configured,
        }


def get_google_settings(session: Session) -> GoogleSettings:
    return GoogleSettings(
        client_id=_setting_or_env(session, GOOGLE_PHOTOS_CLIENT_ID, settings.google_photos_client_id),
        client_secret=_setting_or_env(session, GOOGLE_PHOTOS_CLIENT_SECRET, settings.google_photos_client_secret),
    )


def save_google_settings(session: Session, *, client_id: str, client_secret: str) -> None:
    set_system_setting(session, GOOGLE_PHOTOS_CLIENT_ID, client_id)
    set_system_setting(session, GOOGLE_PHOTOS_CLIENT_SECRET, client_secret)
    logger.info("[SETTINGS] Google Photos settings saved")
