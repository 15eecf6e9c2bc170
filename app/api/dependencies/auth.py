"""FastAPI authentication dependencies backed by database session tokens.

The session token is read from the Authorization header (Bearer) first and
then from the session cookie.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from loguru import logger

from app.config.settings import settings
from app.db.models import User, UserRole
from app.db.session import get_session
from app.services.auth_service import get_session_user, has_role

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Detached snapshot of the authenticated user."""

    id: str
    username: str
    email: str
    role: str
    password_set: bool

    @classmethod
    def from_model(cls, user: User) -> CurrentUser:
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            password_set=user.password_set,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "password_set": self.password_set,
        }


def get_auth_token(request: Request, token: str | None = Depends(oauth2_scheme)) -> str | None:
    """Extract auth token from either Authorization header or cookie."""
    if token:
        return token
    return request.cookies.get(settings.session_cookie_name) or None


def get_optional_user(request: Request, token: str | None = Depends(get_auth_token)) -> CurrentUser | None:
    if not token:
        return None
    with get_session() as session:
        user = get_session_user(session, token)
        if user is None:
            logger.debug(f"[AUTH] Unknown or expired session token, path={request.url.path}")
            return None
        return CurrentUser.from_model(user)


def get_current_user(request: Request, user: CurrentUser | None = Depends(get_optional_user)) -> CurrentUser:
    """FastAPI dependency returning the authenticated user.

    Raises:
        HTTPException: 401 if the token is missing, unknown or expired
    """
    if user is None:
        logger.warning(f"[AUTH] Auth failed: missing or invalid session, Path: {request.url.path}, Method: {request.method}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Allow admins, super admins, and users listed in ADMIN_USER_IDS or ADMIN_EMAILS.

    Raises:
        HTTPException: 403 if the user is not an admin
    """
    if has_role(user, UserRole.admin):
        return user
    if user.id in settings.admin_user_id_list or user.email.lower() in settings.admin_email_list:
        return user
    logger.warning(f"[ADMIN] Access denied user_id={user.id}")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
