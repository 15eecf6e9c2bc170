"""Activity endpoints: listing, detail with route, deletion, refresh and import."""

from __future__ import annotations

import threading

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from pydantic import BaseModel

from app.api.dependencies.auth import CurrentUser, get_current_user
from app.api.errors import to_http_exception
from app.core.errors import AppError
from app.db.session import get_session
from app.services import activity_service
from app.utils.polyline import route_points

router = APIRouter(prefix="/activities", tags=["activities"])


class DateRangeRequest(BaseModel):
    start_date: str
    end_date: str


@router.get("")
def list_activities(user: CurrentUser = Depends(get_current_user)):
    activities = activity_service.list_activities(user.id)
    return {"activities": activities, "count": len(activities)}


@router.get("/import-logs")
def import_logs(user: CurrentUser = Depends(get_current_user)):
    return {"logs": activity_service.get_import_logs(user.id)}


@router.post("/count")
def count_activities(request: DateRangeRequest, user: CurrentUser = Depends(get_current_user)):
    """Number of Strava activities in the range, before importing."""
    with get_session() as session:
        try:
            count = activity_service.count_activities_in_range(session, user.id, request.start_date, request.end_date)
        except (AppError, ValueError) as e:
            raise to_http_exception(e) from e
    return {"count": count}


@router.post("/import")
def import_activities(request: DateRangeRequest, user: CurrentUser = Depends(get_current_user)):
    """Run an import synchronously. Progress messages are returned with the result."""
    progress: list[dict] = []

    def on_progress(message: str, percent: int) -> None:
        progress.append({"message": message, "percent": percent})

    with get_session() as session:
        try:
            result = activity_service.import_activities(
                session,
                user.id,
                request.start_date,
                request.end_date,
                on_progress=on_progress,
                cancel_event=threading.Event(),
            )
        except (AppError, ValueError) as e:
            raise to_http_exception(e) from e

    logger.info(f"[IMPORT] Import finished for user_id={user.id}: {result.count} activities")
    return {
        "success": result.success,
        "count": result.count,
        "import_id": result.import_id,
        "used_mock_data": result.used_mock_data,
        "progress": progress,
    }


@router.post("/import/{log_id}/cancel")
def cancel_import(log_id: int, user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        cancelled = activity_service.cancel_import(session, user.id, log_id)
    if not cancelled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No running import with this id")
    return {"success": True}


@router.get("/{activity_id}")
def get_activity(activity_id: int, user: CurrentUser = Depends(get_current_user)):
    """Activity detail with the decoded route for the map view."""
    with get_session() as session:
        try:
            activity = activity_service.get_activity(session, user.id, activity_id)
        except AppError as e:
            raise to_http_exception(e) from e
        data = activity.to_dict()
        data["raw_data"] = activity.raw_data
    data["route"] = [list(point) for point in route_points(data)]
    return {"activity": data}


@router.delete("/{activity_id}")
def delete_activity(activity_id: int, user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        try:
            activity_service.delete_activity(session, user.id, activity_id)
        except AppError as e:
            raise to_http_exception(e) from e
    return {"success": True}


@router.post("/{strava_id}/refresh")
def refresh_activity(strava_id: int, user: CurrentUser = Depends(get_current_user)):
    """Re-fetch the activity detail from Strava and update its map data."""
    with get_session() as session:
        try:
            detail = activity_service.refresh_activity_from_strava(session, user.id, strava_id)
        except AppError as e:
            raise to_http_exception(e) from e
    return {"success": True, "activity": detail}
