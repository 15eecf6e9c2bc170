"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select

from app.api.dependencies.auth import CurrentUser, get_current_user
from app.config.settings import settings
from app.db.models import SystemSetting, User, UserRole
from app.db.session import check_database, get_session
from app.utils.timezone import utcnow

router = APIRouter(tags=["health"])

APP_VERSION = "1.0.0"


@router.get("/health")
def health():
    """Basic health check without sensitive data. 503 when the database is down."""
    timestamp = utcnow().isoformat()
    if not check_database():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "timestamp": timestamp, "database": "disconnected"},
        )
    return {"status": "healthy", "timestamp": timestamp, "database": "connected", "version": APP_VERSION}


@router.post("/health")
def detailed_health(user: CurrentUser = Depends(get_current_user)):
    """Detailed health check, super admins only."""
    if user.role != UserRole.super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")

    try:
        with get_session() as session:
            user_count = session.scalar(select(func.count(User.id)))
            settings_count = session.scalar(select(func.count(SystemSetting.key)))
    except Exception:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "error": "Database connection failed"},
        )

    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "database": "connected",
        "users": user_count,
        "settings": settings_count,
        "environment": settings.app_env,
    }
