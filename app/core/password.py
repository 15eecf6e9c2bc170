"""Password hashing utilities using passlib with bcrypt.

Never stores or logs raw passwords.
"""

from __future__ import annotations

import re

from passlib.context import CryptContext

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12,
)

MIN_PASSWORD_LENGTH = 8
_STRENGTH_PATTERN = re.compile(r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


class PasswordPolicyError(ValueError):
    """Raised when a new password does not meet the strength policy."""


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Raises:
        ValueError: If password is empty
    """
    if not password:
        raise ValueError("Password cannot be empty")
    # bcrypt hard limit: 72 bytes
    password = password[:72]
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str | None) -> bool:
    """Verify a password against a hash. Empty input never matches."""
    if not plain:
        return False
    if not hashed:
        return False
    return pwd_context.verify(plain[:72], hashed)


def validate_password_strength(password: str) -> None:
    """Enforce the strength policy for passwords set after signup.

    Raises:
        PasswordPolicyError: If the password is shorter than 8 characters or
            lacks an uppercase letter, a lowercase letter, or a digit
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordPolicyError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not _STRENGTH_PATTERN.match(password):
        raise PasswordPolicyError("Password must contain at least one uppercase letter, one lowercase letter, and one number")
