"""Capture service client: login, status and capture lifecycle calls."""
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

import httpx

from .backend.credentials import CredentialStore, build_credential_store
from .backend.http_client import CaptureHttpClient, decode_body
from .backend.session_gate import SessionGate
from .config import Settings
from .errors import AuthenticationFailed, RequestRejected, ServiceUnreachable, StorageUnavailable
from .models import CaptureFinishParams, CaptureStartParams
from .state import CaptureStatus, TestOutcome

logger = logging.getLogger(__name__)

CAPTURES_PATH = "/captures"

StartParamsLike = Union[CaptureStartParams, Mapping[str, Any], None]
FinishParamsLike = Union[CaptureFinishParams, TestOutcome, str, Mapping[str, Any]]


class CaptureClient:
    """Client for one capture service.

    Lifecycle calls carry no local precondition checks: the server decides
    whether a transition is legal and rejects it otherwise. None of them are
    retried; ``get_status`` is the source of truth after a failure.
    """

    def __init__(
        self,
        base_url: str,
        credentials: Optional[CredentialStore] = None,
        *,
        strict: bool = False,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.credentials = credentials or CredentialStore()
        self.gate = SessionGate(self.credentials, strict=strict)
        self._http = CaptureHttpClient(base_url, self.gate, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "CaptureClient":
        credentials = build_credential_store(
            settings.storage.backend, settings.storage.path, settings.storage.key
        )
        return cls(
            settings.api_base_url,
            credentials,
            strict=settings.strict_auth,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._http.base_url

    @property
    def is_authenticated(self) -> bool:
        return self.credentials.is_authenticated

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> CaptureStatus:
        """Store credentials, then confirm them against the service root.

        The credentials are trusted provisionally while the check runs; any
        other request issued meanwhile uses them too. A rejected check removes
        them again.
        """
        self.credentials.set_credentials(username, password)
        logger.info("capture.login: checking %s as %r", self.base_url, username)
        try:
            response = await self._http.request("GET", check_auth=False)
        except RequestRejected as exc:
            self._discard_credentials()
            raise AuthenticationFailed(
                f"login rejected by server (HTTP {exc.status_code})", status_code=exc.status_code
            ) from exc
        except ServiceUnreachable:
            self._discard_credentials()
            raise
        logger.info("capture.login: authenticated as %r", username)
        return CaptureStatus.from_payload(decode_body(response))

    def logout(self) -> None:
        """Forget the stored token. The server is not contacted."""
        self.credentials.clear()
        logger.info("capture.logout: local credentials cleared")

    def _discard_credentials(self) -> None:
        try:
            self.credentials.clear()
        except StorageUnavailable as exc:
            logger.error("capture.login: could not roll back credentials - %s", exc)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self) -> CaptureStatus:
        response = await self._http.request("GET")
        return CaptureStatus.from_payload(decode_body(response))

    async def capture_status(self) -> Any:
        """Bare capture status from ``/captures/status``."""
        return await self._call("GET", "/status")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_capture(self, params: StartParamsLike = None) -> Any:
        if params is None:
            params = CaptureStartParams()
        elif not isinstance(params, CaptureStartParams):
            params = CaptureStartParams.model_validate(dict(params))
        return await self._call("POST", "/start", params.to_payload())

    async def record_capture(self) -> Any:
        return await self._call("POST", "/record", {})

    async def stop_capture(self) -> Any:
        return await self._call("POST", "/stop", {})

    async def finish_capture(self, outcome: FinishParamsLike) -> Any:
        """Close out the capture with ``pass`` or ``fail``.

        ``outcome`` may be a :class:`TestOutcome`, its literal value, a
        mapping with ``testStatus`` or a full :class:`CaptureFinishParams`.
        """
        params = _finish_params(outcome)
        return await self._call("POST", "/finish", params.to_payload())

    async def cancel_capture(self) -> Any:
        return await self._call("POST", "/cancel", {})

    # ------------------------------------------------------------------
    # Stored captures and uploads
    # ------------------------------------------------------------------

    async def list_captures(self) -> List[Any]:
        return await self._call("GET", "") or []

    async def get_capture(self, capture_id: str) -> Any:
        return await self._call("GET", f"/{_segment(capture_id)}")

    async def delete_capture(self, capture_id: str) -> None:
        await self._call("DELETE", f"/{_segment(capture_id)}")

    async def upload_capture(self, capture_id: str) -> List[Any]:
        return await self._call("POST", f"/upload/{_segment(capture_id)}", {}) or []

    async def upload_status(self) -> List[Any]:
        return await self._call("GET", "/upload") or []

    async def _call(self, method: str, path: str, payload: Any = None) -> Any:
        logger.info("capture.call: %s %s%s", method, CAPTURES_PATH, path)
        response = await self._http.request(method, f"{CAPTURES_PATH}{path}", json=payload)
        return decode_body(response)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "CaptureClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def _finish_params(outcome: FinishParamsLike) -> CaptureFinishParams:
    if isinstance(outcome, CaptureFinishParams):
        return outcome
    if isinstance(outcome, Mapping):
        return CaptureFinishParams.model_validate(dict(outcome))
    try:
        return CaptureFinishParams(testStatus=TestOutcome(outcome))
    except ValueError as exc:
        raise ValueError(f"outcome must be 'pass' or 'fail', got {outcome!r}") from exc


def _segment(capture_id: str) -> str:
    capture_id = str(capture_id).strip()
    if not capture_id or "/" in capture_id:
        raise ValueError(f"invalid capture id {capture_id!r}")
    return capture_id


__all__ = ["CAPTURES_PATH", "CaptureClient"]
