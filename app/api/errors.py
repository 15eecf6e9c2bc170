"""Translation of service-layer exceptions into HTTP errors."""

from __future__ import annotations

from fastapi import HTTPException, status

from app.core.encryption import EncryptionError
from app.core.errors import (
    AccountLockedError,
    ActivityImportError,
    ActivityNotFoundError,
    AuthError,
    ChatGPTError,
    ChatGPTNotConfiguredError,
    GooglePhotosError,
    ImportCancelledError,
    PermissionDeniedError,
    StravaAPIError,
    StravaAuthError,
    StravaConnectionError,
    StravaNotConfiguredError,
    StravaTokenRefreshError,
    UserExistsError,
    public_error_message,
)
from app.core.password import PasswordPolicyError

# Most specific classes first
_STATUS_BY_ERROR: list[tuple[type[Exception], int]] = [
    (AccountLockedError, status.HTTP_423_LOCKED),
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (UserExistsError, status.HTTP_409_CONFLICT),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (PasswordPolicyError, status.HTTP_400_BAD_REQUEST),
    (StravaNotConfiguredError, status.HTTP_400_BAD_REQUEST),
    (StravaConnectionError, status.HTTP_401_UNAUTHORIZED),
    (StravaAuthError, status.HTTP_401_UNAUTHORIZED),
    (StravaTokenRefreshError, status.HTTP_401_UNAUTHORIZED),
    (StravaAPIError, status.HTTP_502_BAD_GATEWAY),
    (GooglePhotosError, status.HTTP_400_BAD_REQUEST),
    (ChatGPTNotConfiguredError, status.HTTP_400_BAD_REQUEST),
    (ChatGPTError, status.HTTP_502_BAD_GATEWAY),
    (ActivityNotFoundError, status.HTTP_404_NOT_FOUND),
    (ImportCancelledError, status.HTTP_409_CONFLICT),
    (ActivityImportError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (EncryptionError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (ValueError, status.HTTP_400_BAD_REQUEST),
]


def to_http_exception(error: Exception) -> HTTPException:
    """HTTPException carrying a client-safe message for a service error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=public_error_message(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
