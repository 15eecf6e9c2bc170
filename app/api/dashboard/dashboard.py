"""Dashboard endpoints: totals, recent activities and AI insights."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.dependencies.auth import CurrentUser, get_current_user
from app.api.errors import to_http_exception
from app.core.errors import AppError
from app.db.session import get_session
from app.services import activity_service
from app.services.llm import analysis

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats")
def dashboard_stats(user: CurrentUser = Depends(get_current_user)):
    return activity_service.get_activity_stats(user.id)


@router.get("/recent-activities")
def recent_activities(user: CurrentUser = Depends(get_current_user)):
    return {"activities": activity_service.get_recent_activities(user.id)}


@router.post("/insights")
def dashboard_insights(user: CurrentUser = Depends(get_current_user)):
    stats = activity_service.get_activity_stats(user.id)
    recent = activity_service.get_recent_activities(user.id)
    with get_session() as session:
        try:
            return analysis.generate_dashboard_insights(session, recent, stats)
        except AppError as e:
            raise to_http_exception(e) from e
