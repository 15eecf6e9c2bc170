"""Password login, lockout, and database-backed session tokens."""

from __future__ import annotations

import uuid
from datetime import timedelta

from loguru import logger
from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.core.errors import AccountLockedError, AuthError, PermissionDeniedError, UserExistsError
from app.core.password import hash_password, validate_password_strength, verify_password
from app.db.models import User, UserRole, UserSession
from app.utils.timezone import normalize_datetime, utcnow

# Roles that satisfy any role requirement
_PRIVILEGED_ROLES = {UserRole.admin, UserRole.super_admin}


def _normalize_email(email: str) -> str:
    return email.lower().strip()


def create_user(session: Session, username: str, email: str, password: str | None = None, role: str = UserRole.user) -> User:
    """Create a user. A user created without a password may log in once to set one.

    Raises:
        UserExistsError: If the username or email is already taken
    """
    normalized_email = _normalize_email(email)
    username = username.strip()

    existing = session.execute(
        select(User).where(or_(User.username == username, User.email == normalized_email))
    ).scalar_one_or_none()
    if existing is not None:
        logger.warning(f"[AUTH] Signup failed: username or email already exists username={username}")
        raise UserExistsError("Username or email already exists")

    user = User(
        id=str(uuid.uuid4()),
        username=username,
        email=normalized_email,
        password_hash=hash_password(password) if password else None,
        password_set=bool(password),
        role=role,
        failed_login_attempts=0,
        locked_until=None,
        created_at=utcnow(),
    )
    session.add(user)
    session.flush()
    logger.info(f"[AUTH] User created: user_id={user.id}, username={username}")
    return user


def _register_failed_attempt(session: Session, user: User) -> None:
    user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
    locked = user.failed_login_attempts >= settings.max_login_attempts
    if locked:
        user.locked_until = utcnow() + timedelta(minutes=settings.lockout_minutes)
    # Persist now; the caller's session rolls back when the login is rejected
    session.commit()
    if locked:
        logger.warning(f"[AUTH] Account locked after {user.failed_login_attempts} failed attempts user_id={user.id}")
        raise AccountLockedError("Account locked due to too many failed login attempts")


def verify_user(session: Session, username_or_email: str, password: str) -> User | None:
    """Check credentials and apply the lockout policy.

    Returns:
        The user on success, None on bad credentials

    Raises:
        AccountLockedError: If the account is locked, or becomes locked by this attempt
    """
    identifier = username_or_email.strip()
    user = session.execute(
        select(User).where(or_(User.username == identifier, User.email == _normalize_email(identifier)))
    ).scalar_one_or_none()

    if user is None:
        logger.info("[AUTH] Login failed: unknown user")
        return None

    if user.locked_until and normalize_datetime(user.locked_until) > utcnow():
        logger.warning(f"[AUTH] Login rejected: account locked user_id={user.id}")
        raise AccountLockedError("Account is temporarily locked due to too many failed login attempts")

    if not user.password_set:
        # Passwordless login is allowed exactly once, for accounts that never had a password
        if user.failed_login_attempts > 0:
            logger.info(f"[AUTH] Login failed: password required user_id={user.id}")
            return None
        user.failed_login_attempts += 1
        session.flush()
        logger.info(f"[AUTH] First login without password user_id={user.id}")
        return user

    if not verify_password(password, user.password_hash):
        _register_failed_attempt(session, user)
        logger.info(f"[AUTH] Login failed: invalid password user_id={user.id}, attempts={user.failed_login_attempts}")
        return None

    user.failed_login_attempts = 0
    user.locked_until = None
    user.last_login_at = utcnow()
    session.flush()
    logger.info(f"[AUTH] Login successful user_id={user.id}")
    return user


def set_password(session: Session, user_id: str, new_password: str) -> None:
    """Set a new password after validating its strength and clear the lockout state.

    Raises:
        PasswordPolicyError: If the password is too weak
        AuthError: If the user does not exist
    """
    validate_password_strength(new_password)
    user = session.get(User, user_id)
    if user is None:
        raise AuthError("User not found")

    user.password_hash = hash_password(new_password)
    user.password_set = True
    user.failed_login_attempts = 0
    user.locked_until = None
    session.flush()
    logger.info(f"[AUTH] Password set for user_id={user_id}")


def change_password(session: Session, user_id: str, current_password: str, new_password: str) -> bool:
    """Change password after verifying the current one.

    Returns:
        False when the user is unknown or the current password is wrong

    Raises:
        PasswordPolicyError: If the new password is too weak
    """
    user = session.get(User, user_id)
    if user is None or not verify_password(current_password, user.password_hash):
        logger.info(f"[AUTH] Change password rejected for user_id={user_id}")
        return False
    set_password(session, user_id, new_password)
    return True


def create_session(session: Session, user_id: str) -> str:
    """Create an opaque session token valid for SESSION_TTL_DAYS."""
    token = str(uuid.uuid4())
    session.add(
        UserSession(
            token=token,
            user_id=user_id,
            expires_at=utcnow() + timedelta(days=settings.session_ttl_days),
            created_at=utcnow(),
        )
    )
    session.flush()
    logger.debug(f"[AUTH] Session created for user_id={user_id}")
    return token


def get_session_user(session: Session, token: str | None) -> User | None:
    """Resolve a session token to its user. Expired or unknown tokens give None."""
    if not token:
        return None
    return session.execute(
        select(User)
        .join(UserSession, UserSession.user_id == User.id)
        .where(UserSession.token == token, UserSession.expires_at > utcnow())
    ).scalar_one_or_none()


def delete_session(session: Session, token: str) -> None:
    session.execute(delete(UserSession).where(UserSession.token == token))


def purge_expired_sessions(session: Session) -> int:
    result = session.execute(delete(UserSession).where(UserSession.expires_at <= utcnow()))
    if result.rowcount:
        logger.info(f"[AUTH] Purged {result.rowcount} expired sessions")
    return result.rowcount or 0


def has_role(user: User, required_role: str) -> bool:
    return user.role == required_role or user.role in _PRIVILEGED_ROLES


def require_role(user: User | None, required_role: str) -> User:
    """Return the user when they hold the role (admins always do).

    Raises:
        PermissionDeniedError: If the user is missing or lacks the role
    """
    if user is None:
        raise PermissionDeniedError("Authentication required")
    if not has_role(user, required_role):
        raise PermissionDeniedError("Insufficient permissions")
    return user
