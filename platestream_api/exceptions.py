"""Exceptions raised by the streaming REST client."""

from typing import Any, Optional


class StreamingApiError(Exception):
    """
    Base exception for REST client errors.

    Attributes:
        message: Human-readable description
        status_code: HTTP status, None for transport failures
        details: Parsed response body, if any
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class ApiConnectionError(StreamingApiError):
    """Raised when the service cannot be reached."""
    pass


class ApiTimeoutError(ApiConnectionError):
    """Raised when a request exceeds the configured timeout."""
    pass


class UploadError(StreamingApiError):
    """Raised when the service rejects a source upload."""
    pass


class DownloadError(StreamingApiError):
    """Raised when result retrieval fails."""
    pass
