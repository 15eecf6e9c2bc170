"""Admin endpoints: system statistics, integration settings and LLM usage."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import func, select

from app.api.dependencies.auth import CurrentUser, require_admin
from app.api.errors import to_http_exception
from app.core.errors import AppError
from app.db.models import Activity, ImportLog, StravaConnection, User
from app.db.session import get_session
from app.services import strava_service, system_settings, usage_stats
from app.services.llm import analysis
from app.utils.timezone import utcnow

router = APIRouter(prefix="/admin", tags=["admin"])


class StravaSettingsRequest(BaseModel):
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    app_url: str = Field(min_length=1)
    webhook_verify_token: str | None = None


class ChatGPTSettingsRequest(BaseModel):
    api_key: str = Field(min_length=1)
    organization_id: str | None = None
    model: str | None = None


class GoogleSettingsRequest(BaseModel):
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)


class UsageRecordRequest(BaseModel):
    tokens_used: int = Field(ge=0)
    cost: float = Field(ge=0)
    model: str | None = None


@router.get("/stats")
def admin_stats(admin: CurrentUser = Depends(require_admin)):
    since = utcnow() - timedelta(days=30)
    with get_session() as session:
        return {
            "total_users": session.scalar(select(func.count(User.id))),
            "new_users_30d": session.scalar(select(func.count(User.id)).where(User.created_at >= since)),
            "total_activities": session.scalar(select(func.count(Activity.id))),
            "strava_connections": session.scalar(select(func.count(StravaConnection.user_id))),
            "total_imports": session.scalar(select(func.count(ImportLog.id))),
        }


@router.get("/settings")
def all_settings(admin: CurrentUser = Depends(require_admin)):
    with get_session() as session:
        return {"settings": system_settings.masked_system_settings(session)}


@router.get("/settings/strava")
def get_strava_settings(admin: CurrentUser = Depends(require_admin)):
    with get_session() as session:
        strava = system_settings.get_strava_settings(session)
        data = strava.masked()
    try:
        data["redirect_uri"] = strava_service.build_redirect_uri(strava.app_url)
    except AppError:
        data["redirect_uri"] = None
    return data


@router.post("/settings/strava")
def save_strava_settings(request: StravaSettingsRequest, admin: CurrentUser = Depends(require_admin)):
    try:
        redirect_uri = strava_service.build_redirect_uri(request.app_url)
    except AppError as e:
        raise to_http_exception(e) from e
    with get_session() as session:
        system_settings.update_strava_settings(
            session,
            client_id=request.client_id,
            client_secret=request.client_secret,
            webhook_verify_token=request.webhook_verify_token,
            app_url=request.app_url,
        )
    logger.info(f"[ADMIN] Strava settings updated by user_id={admin.id}")
    return {"success": True, "redirect_uri": redirect_uri}


@router.get("/settings/chatgpt")
def get_chatgpt_settings(admin: CurrentUser = Depends(require_admin)):
    with get_session() as session:
        return system_settings.get_chatgpt_settings(session).masked()


@router.post("/settings/chatgpt")
def save_chatgpt_settings(request: ChatGPTSettingsRequest, admin: CurrentUser = Depends(require_admin)):
    with get_session() as session:
        system_settings.save_chatgpt_settings(
            session,
            api_key=request.api_key,
            organization_id=request.organization_id,
            model=request.model,
        )
    logger.info(f"[ADMIN] ChatGPT settings updated by user_id={admin.id}")
    return {"success": True}


@router.post("/settings/chatgpt/test")
def check_chatgpt_settings(admin: CurrentUser = Depends(require_admin)):
    with get_session() as session:
        try:
            return analysis.test_chatgpt_connection(session)
        except AppError as e:
            raise to_http_exception(e) from e


@router.get("/settings/google")
def get_google_settings(admin: CurrentUser = Depends(require_admin)):
    with get_session() as session:
        return system_settings.get_google_settings(session).masked()


@router.post("/settings/google")
def save_google_settings(request: GoogleSettingsRequest, admin: CurrentUser = Depends(require_admin)):
    with get_session() as session:
        system_settings.save_google_settings(session, client_id=request.client_id, client_secret=request.client_secret)
    logger.info(f"[ADMIN] Google Photos settings updated by user_id={admin.id}")
    return {"success": True}


@router.get("/usage-stats")
def get_usage_stats(admin: CurrentUser = Depends(require_admin)):
    with get_session() as session:
        return usage_stats.get_usage_summary(session)


@router.post("/usage-stats")
def record_usage_stats(request: UsageRecordRequest, admin: CurrentUser = Depends(require_admin)):
    with get_session() as session:
        usage_stats.record_usage(session, tokens_used=request.tokens_used, cost=request.cost, model=request.model)
    return {"success": True}
