"""Persisted Basic-auth token for the capture service."""
from __future__ import annotations

import base64
import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Protocol

from ..errors import StorageUnavailable

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "vfcapture.auth"


def encode_token(username: str, password: str) -> str:
    """Basic auth token: base64 of ``username:password``. Reversible, not a secret."""
    return base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")


class TokenStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryTokenStorage:
    """Process-local storage; nothing survives a restart."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class FileTokenStorage:
    """JSON file keyed by storage key, readable only by the owner.

    Writes go through a temp file and ``os.replace`` so a reader never sees a
    half-written file.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            raise StorageUnavailable(f"cannot read credential file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageUnavailable(f"credential file {self.path} is not a JSON object")
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageUnavailable(f"cannot write credential file {self.path}: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        data["saved_at"] = datetime.now().isoformat()
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key not in data:
            return
        del data[key]
        data.pop("saved_at", None)
        if data:
            self._write(data)
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageUnavailable(f"cannot delete credential file {self.path}: {exc}") from exc


class CredentialStore:
    """Owns the persisted auth token; the only answer to "are we logged in"."""

    def __init__(self, storage: Optional[TokenStorage] = None, *, key: str = DEFAULT_STORAGE_KEY) -> None:
        self.storage: TokenStorage = storage if storage is not None else MemoryTokenStorage()
        self.key = key
        self._lock = threading.Lock()

    def set_credentials(self, username: str, password: str) -> str:
        """Store the token for ``username``/``password``, replacing any previous one."""
        token = encode_token(username, password)
        with self._lock:
            self.storage.set(self.key, token)
        logger.info("credentials.set: token stored for user %r", username)
        return token

    def current_token(self) -> Optional[str]:
        with self._lock:
            token = self.storage.get(self.key)
        return token or None

    def clear(self) -> None:
        with self._lock:
            self.storage.remove(self.key)
        logger.info("credentials.clear: token removed")

    @property
    def is_authenticated(self) -> bool:
        try:
            return self.current_token() is not None
        except StorageUnavailable:
            return False


def build_credential_store(backend: str, path: Path, key: str = DEFAULT_STORAGE_KEY) -> CredentialStore:
    """Credential store for the configured storage backend."""
    if backend == "memory":
        return CredentialStore(MemoryTokenStorage(), key=key)
    return CredentialStore(FileTokenStorage(path), key=key)


__all__ = [
    "CredentialStore",
    "FileTokenStorage",
    "MemoryTokenStorage",
    "TokenStorage",
    "build_credential_store",
    "encode_token",
]
