"""Domain exceptions raised by the service layer.

Routers translate these into HTTP responses. Messages are user-facing.
"""


class AppError(Exception):
    """Base class for expected business errors."""


class AuthError(AppError):
    """Raised when credentials or sessions are invalid."""


class AccountLockedError(AuthError):
    """Raised when an account is locked after too many failed logins."""


class UserExistsError(AppError):
    """Raised when a username or email is already registered."""


class PermissionDeniedError(AppError):
    """Raised when the user lacks the required role."""


class StravaNotConfiguredError(AppError):
    """Raised when Strava client credentials or APP_URL are missing."""


class StravaConnectionError(AppError):
    """Raised when the user has no Strava connection."""


class StravaAuthError(AppError):
    """Raised when Strava rejects the access token (HTTP 401)."""


class StravaTokenRefreshError(AppError):
    """Raised when the refresh token exchange fails."""


class StravaAPIError(AppError):
    """Raised for non-auth Strava API failures."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GooglePhotosError(AppError):
    """Raised for Google Photos configuration, OAuth or API failures."""


class ChatGPTNotConfiguredError(AppError):
    """Raised when no OpenAI API key is configured."""


class ChatGPTError(AppError):
    """Raised when the OpenAI API call fails."""


class ActivityNotFoundError(AppError):
    """Raised when an activity does not exist or belongs to another user."""


class ImportCancelledError(AppError):
    """Raised inside the import loop when the user cancels."""


class ActivityImportError(AppError):
    """Raised when an import fails after its log row was created."""


def is_strava_auth_problem(error: Exception) -> bool:
    """True for errors that require the user to reconnect Strava."""
    return isinstance(error, (StravaConnectionError, StravaAuthError, StravaTokenRefreshError))


def public_error_message(error: Exception) -> str:
    """Message safe to return to the client.

    Messages mentioning the database or SQL are replaced.
    """
    message = str(error) or "Unknown error"
    lowered = message.lower()
    if "database" in lowered or "sql" in lowered:
        return "Internal server error"
    return message
