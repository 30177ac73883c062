"""Authentication gate applied to every outbound capture service request."""
from __future__ import annotations

import logging
from typing import Dict, Optional

from ..errors import NotAuthenticated, StorageUnavailable
from .credentials import CredentialStore

logger = logging.getLogger(__name__)


class SessionGate:
    """Builds request headers from the credential store, one request at a time.

    By default a missing token is only logged and the request still goes out,
    leaving the server to answer 401. With ``strict=True`` the gate refuses
    instead.
    """

    def __init__(self, credentials: CredentialStore, *, strict: bool = False) -> None:
        self.credentials = credentials
        self.strict = strict

    def _read_token(self) -> Optional[str]:
        try:
            return self.credentials.current_token()
        except StorageUnavailable as exc:
            logger.warning("session.read_token: storage unavailable, treating as logged out - %s", exc)
            return None

    def ensure_authenticated(self) -> bool:
        if self._read_token() is not None:
            return True
        if self.strict:
            raise NotAuthenticated("no stored credentials; log in first")
        logger.warning("session.ensure_authenticated: no stored credentials, sending request unauthenticated")
        return False

    def authorized_headers(self) -> Dict[str, str]:
        """Fresh header set for a single request; never reuse the result."""
        headers = {"X-Requested-With": "XMLHttpRequest"}
        token = self._read_token()
        if token:
            headers["Authorization"] = f"Basic {token}"
        return headers


__all__ = ["SessionGate"]
