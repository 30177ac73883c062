"""Error taxonomy for the capture service client."""
from __future__ import annotations

from typing import Any, Optional


class CaptureClientError(Exception):
    """Base exception for capture client errors."""


class StorageUnavailable(CaptureClientError):
    """Raised when the credential store cannot be read or written."""


class ServiceUnreachable(CaptureClientError):
    """Raised on transport failure talking to the capture service."""


class RequestRejected(CaptureClientError):
    """Raised when the capture service answers with a non-success status."""

    def __init__(self, message: str, status_code: int, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthenticationFailed(CaptureClientError):
    """Raised when the login check is rejected. Local credentials are cleared."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotAuthenticated(CaptureClientError):
    """Raised in strict mode when a request is attempted without a token."""


__all__ = [
    "AuthenticationFailed",
    "CaptureClientError",
    "NotAuthenticated",
    "RequestRejected",
    "ServiceUnreachable",
    "StorageUnavailable",
]
