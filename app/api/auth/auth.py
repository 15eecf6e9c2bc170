"""Password authentication endpoints.

Provides:
- Username/email/password signup and login (with lockout and rate limit)
- Logout, set-password and change-password
- Current user lookup
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, EmailStr, Field

from app.api.dependencies.auth import CurrentUser, get_auth_token, get_current_user
from app.api.errors import to_http_exception
from app.config.settings import settings
from app.core.errors import AccountLockedError, AuthError, UserExistsError
from app.core.password import PasswordPolicyError
from app.core.security import RateLimiter
from app.db.session import get_session
from app.services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])

SIGNUP_MIN_PASSWORD_LENGTH = 6

login_rate_limiter = RateLimiter(settings.login_rate_limit, settings.login_rate_window_seconds)


def _set_auth_cookie(response: Response, token: str) -> None:
    """Set the session cookie.

    Sets cookie with:
    - httponly=True (prevents XSS)
    - secure only in production (HTTPS)
    - samesite="lax"
    - max_age matching the session lifetime
    """
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=60 * 60 * 24 * settings.session_ttl_days,
        path="/",
    )


class SignupRequest(BaseModel):
    username: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    password: str | None = Field(default=None, max_length=72)


class LoginRequest(BaseModel):
    """Login by username or email. The password may be empty on first login."""

    username: str = ""
    password: str = ""


class SetPasswordRequest(BaseModel):
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


@router.post("/signup")
def signup(request: SignupRequest):
    """Create an account and log it in.

    Raises:
        HTTPException: 400 for missing fields or a short password, 409 if username or email exists
    """
    if not (request.username and request.username.strip() and request.email and request.password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username, email, and password required")

    if len(request.password) < SIGNUP_MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {SIGNUP_MIN_PASSWORD_LENGTH} characters",
        )

    logger.info(f"[AUTH] Signup requested for username={request.username}")
    with get_session() as session:
        try:
            user = auth_service.create_user(session, request.username, request.email, request.password)
        except UserExistsError as e:
            raise to_http_exception(e) from e
        token = auth_service.create_session(session, user.id)
        user_data = user.to_public_dict()

    response = JSONResponse(content={"success": True, "user": user_data})
    _set_auth_cookie(response, token)
    logger.info(f"[AUTH] Signup successful for user_id={user_data['id']}")
    return response


@router.post("/login")
def login(request: LoginRequest, http_request: Request):
    """Log in and set the session cookie.

    Raises:
        HTTPException: 400 without a username, 429 when rate limited, 423 when locked, 401 on bad credentials
    """
    if not request.username.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username required")

    client_key = http_request.client.host if http_request.client else "unknown"
    if not login_rate_limiter.hit(client_key):
        logger.warning(f"[AUTH] Login rate limit exceeded for client={client_key}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
        )

    with get_session() as session:
        try:
            user = auth_service.verify_user(session, request.username, request.password)
        except AccountLockedError as e:
            raise to_http_exception(e) from e

        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

        token = auth_service.create_session(session, user.id)
        user_data = user.to_public_dict()

    response = JSONResponse(content={"success": True, "user": user_data})
    _set_auth_cookie(response, token)
    return response


@router.post("/logout")
def logout(token: str | None = Depends(get_auth_token)):
    if token:
        with get_session() as session:
            auth_service.delete_session(session, token)
    response = JSONResponse(content={"success": True})
    response.delete_cookie(settings.session_cookie_name, path="/")
    logger.info("[AUTH] Logged out")
    return response


@router.post("/set-password")
def set_password(request: SetPasswordRequest, user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        try:
            auth_service.set_password(session, user.id, request.password)
        except (PasswordPolicyError, AuthError) as e:
            raise to_http_exception(e) from e
    return {"success": True}


@router.post("/change-password")
def change_password(request: ChangePasswordRequest, user: CurrentUser = Depends(get_current_user)):
    with get_session() as session:
        try:
            changed = auth_service.change_password(session, user.id, request.current_password, request.new_password)
        except PasswordPolicyError as e:
            raise to_http_exception(e) from e
    if not changed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    return {"success": True}


@router.get("/me")
def me(user: CurrentUser = Depends(get_current_user)):
    return {"user": user.to_dict()}
