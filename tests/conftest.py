"""Shared fixtures: an in-process fake capture service behind httpx.MockTransport."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from vfcapture.backend.credentials import CredentialStore, MemoryTokenStorage, encode_token
from vfcapture.capture_client import CaptureClient

BASE_URL = "http://capture.test:1357/api"


class FakeCaptureServer:
    """Minimal capture service: Basic auth plus the capture state machine."""

    def __init__(self, username: str = "alice", password: str = "secret") -> None:
        self.expected_auth = f"Basic {encode_token(username, password)}"
        self.state = "idle"
        self.capture: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []
        self.captures: Dict[str, Dict[str, Any]] = {"2024_01_01-abc": {"id": "2024_01_01-abc", "state": "finished"}}
        self.uploads: List[Dict[str, Any]] = []
        self.offline = False
        # go offline right after the first authenticated status fetch
        self.offline_after_login = False

    # helpers -----------------------------------------------------------

    def bodies(self, path: str) -> List[Any]:
        return [json.loads(r.content) if r.content else None for r in self.requests if r.url.path == path]

    def paths(self) -> List[str]:
        return [f"{r.method} {r.url.path}" for r in self.requests]

    def capture_status(self) -> Dict[str, Any]:
        return {"state": self.state, **self.capture}

    def root_payload(self) -> Dict[str, Any]:
        return {
            "info": {"started": "2024-01-01T10:00:00", "uptimeSeconds": 42, "categories": ["organisation", "product"]},
            "defaults": {"categories": {"organisation": "Acme"}},
            "captureStatus": self.capture_status(),
            "uploads": {"pending": len(self.uploads)},
        }

    # transport ---------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("Connection refused", request=request)
        if request.headers.get("Authorization") != self.expected_auth:
            return httpx.Response(401, json={"error": "Unauthorized"})

        path = request.url.path
        method = request.method
        if method == "GET" and path == "/api":
            if self.offline_after_login:
                self.offline = True
            return httpx.Response(200, json=self.root_payload())
        if path.startswith("/api/captures"):
            return self._captures(method, path[len("/api/captures"):], request)
        return httpx.Response(404, json={"error": "Not Found"})

    def _captures(self, method: str, sub: str, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        if method == "POST" and sub == "/start":
            self.state = "started"
            self.capture = {k: v for k, v in body.items() if k in ("feature", "scenario", "categories")}
            return self._ok()
        if method == "POST" and sub == "/record":
            if self.state not in ("started", "stopped"):
                return self._illegal("record")
            self.state = "recording"
            self.capture["id"] = "2024_01_02-xyz"
            return self._ok()
        if method == "POST" and sub == "/stop":
            if self.state == "recording":
                self.state = "stopped"
            return self._ok()
        if method == "POST" and sub == "/finish":
            if self.state == "idle":
                return self._illegal("finish")
            self.state = "finished"
            self.capture["testStatus"] = body["testStatus"]
            return self._ok()
        if method == "POST" and sub == "/cancel":
            self.state = "idle"
            self.capture = {}
            return self._ok()
        if method == "GET" and sub == "/status":
            return self._ok()
        if method == "GET" and sub == "":
            return httpx.Response(200, json=list(self.captures.values()))
        if method == "GET" and sub == "/upload":
            return httpx.Response(200, json=self.uploads)
        if method == "POST" and sub.startswith("/upload/"):
            capture_id = sub[len("/upload/"):]
            self.uploads.append({"id": capture_id, "state": "queued"})
            return httpx.Response(200, json=self.uploads)
        if sub.startswith("/") and sub.count("/") == 1:
            capture_id = sub[1:]
            if capture_id not in self.captures:
                return httpx.Response(404, json={"error": "Not Found"})
            if method == "DELETE":
                del self.captures[capture_id]
                return httpx.Response(200)
            return httpx.Response(200, json=self.captures[capture_id])
        return httpx.Response(404, json={"error": "Not Found"})

    def _ok(self) -> httpx.Response:
        return httpx.Response(200, json=self.capture_status())

    def _illegal(self, action: str) -> httpx.Response:
        return httpx.Response(400, json={"error": f"Cannot {action} capture in state {self.state}"})


@pytest.fixture
def server() -> FakeCaptureServer:
    return FakeCaptureServer()


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore(MemoryTokenStorage())


def make_client(
    server: FakeCaptureServer,
    credentials: Optional[CredentialStore] = None,
    **kwargs: Any,
) -> CaptureClient:
    return CaptureClient(
        BASE_URL,
        credentials or CredentialStore(MemoryTokenStorage()),
        transport=httpx.MockTransport(server.handler),
        **kwargs,
    )


@pytest.fixture
async def client(server: FakeCaptureServer, credentials: CredentialStore):
    capture_client = make_client(server, credentials)
    yield capture_client
    await capture_client.aclose()
