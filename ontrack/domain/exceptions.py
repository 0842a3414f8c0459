"""Custom exception hierarchy for the OnTrack fetch layer.

Every failure that leaves the fetch layer is one of the classified
``FetchError`` subclasses below; raw transport exceptions stay inside the
infrastructure package.
"""

from typing import Optional, Dict, Any

from ..constants import (
    NETWORK_DISPLAY_MESSAGE,
    TIMEOUT_DISPLAY_MESSAGE,
    UNEXPECTED_DISPLAY_MESSAGE,
)


class OnTrackException(Exception):
    """Base exception for all OnTrack-specific exceptions."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint
        self.details = details or {}


class ConfigurationError(OnTrackException):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, None, details)
        self.config_key = config_key


class StorageError(OnTrackException):
    """Raised when durable client-side storage cannot be written."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, None, details)
        self.path = path


class FetchError(OnTrackException):
    """Base exception for classified fetch failures."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, endpoint, details)
        self.status_code = status_code

    @property
    def display_message(self) -> str:
        """Human-readable classification shown to dashboard consumers."""
        return self.message or UNEXPECTED_DISPLAY_MESSAGE


class UnauthenticatedError(FetchError):
    """Raised before any network call when a required credential is missing."""

    def __init__(
        self,
        message: str = "No authentication token",
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, None, endpoint, details)


class HTTPResponseError(FetchError):
    """A response was received with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        endpoint: Optional[str] = None,
        body: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status_code, endpoint, details)
        self.body = body

    @property
    def display_message(self) -> str:
        return f"Server error: {self.status_code} - {self.message}"


class ClientError(HTTPResponseError):
    """Raised for 4xx responses. These are never retried."""

    pass


class AccessRevokedError(ClientError):
    """Raised when the backend signals the credential was revoked (403)."""

    def __init__(
        self,
        message: str = "Access denied. You have been logged out.",
        endpoint: Optional[str] = None,
        body: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 403, endpoint, body, details)


class SessionExpiredError(ClientError):
    """Raised on any 401 after the stored credential has been cleared."""

    def __init__(
        self,
        message: str = "Session expired",
        endpoint: Optional[str] = None,
        body: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 401, endpoint, body, details)


class ServerError(HTTPResponseError):
    """Raised for 5xx responses once the retry budget is exhausted."""

    pass


class NetworkError(FetchError):
    """Raised when no response was received at all."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, None, endpoint, details)

    @property
    def display_message(self) -> str:
        return NETWORK_DISPLAY_MESSAGE


class RequestTimeoutError(FetchError):
    """Raised when the client-side deadline elapsed before a response."""

    def __init__(
        self,
        message: str = TIMEOUT_DISPLAY_MESSAGE,
        timeout_seconds: Optional[float] = None,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, None, endpoint, details)
        self.timeout_seconds = timeout_seconds

    @property
    def display_message(self) -> str:
        return TIMEOUT_DISPLAY_MESSAGE
