"""HTTP client helpers for the capture service REST endpoints."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..errors import RequestRejected, ServiceUnreachable
from .session_gate import SessionGate

logger = logging.getLogger(__name__)


class CaptureHttpClient:
    """Thin wrapper around the capture service REST API.

    Every request goes through the session gate right before it is sent, so
    headers always reflect the credential store at that moment.
    """

    def __init__(
        self,
        base_url: str,
        gate: SessionGate,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.gate = gate
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def request(
        self,
        method: str,
        path: str = "",
        *,
        json: Any = None,
        check_auth: bool = True,
    ) -> httpx.Response:
        """Send one request and return the response, raising on any failure."""
        if check_auth:
            self.gate.ensure_authenticated()
        headers = self.gate.authorized_headers()
        url = self.url_for(path)
        try:
            logger.debug("capture.request: %s %s", method, url)
            response = await self._client.request(method, url, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("capture.request: %s %s timed out", method, url)
            raise ServiceUnreachable(f"{method} {url} timed out") from e
        except httpx.TransportError as e:
            logger.error("capture.request: %s %s network error - %s", method, url, e)
            raise ServiceUnreachable(f"{method} {url} failed: {e}") from e
        except httpx.RequestError as e:
            # undecodable bodies, redirect loops
            logger.error("capture.request: %s %s bad response - %s", method, url, e)
            raise ServiceUnreachable(f"{method} {url} failed: {e}") from e

        if response.is_error:
            body = decode_body(response)
            logger.error("capture.request: %s %s HTTP %d - %s", method, url, response.status_code, response.text)
            raise RequestRejected(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
            )
        return response

    async def aclose(self) -> None:
        try:
            await self._client.aclose()
        except Exception as e:
            logger.warning("Error closing HTTP client: %s", e)


def decode_body(response: httpx.Response) -> Any:
    """JSON body if there is one, raw text otherwise, None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


__all__ = ["CaptureHttpClient", "decode_body"]
