"""Shared capture state definitions for the capture client."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class CaptureState(str, enum.Enum):
    """
    Capture states as reported by the service, in lifecycle order:

    1. IDLE       - No capture in progress
    2. STARTED    - Capture opened with feature/scenario/categories
    3. RECORDING  - Screen recording running
    4. STOPPED    - Recording stopped, outcome not yet known
    5. FINISHED   - Closed out with a pass/fail test status

    The server is authoritative; the client never checks transitions.
    """
    IDLE = "idle"
    STARTED = "started"
    RECORDING = "recording"
    STOPPED = "stopped"
    FINISHED = "finished"


class TestOutcome(str, enum.Enum):
    """Outcome supplied when finishing a capture."""
    __test__ = False

    PASS = "pass"
    FAIL = "fail"


def _as_mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


@dataclass(frozen=True)
class CaptureStatus:
    """Snapshot of the service root as last fetched.

    ``info``, ``defaults`` and ``uploads`` are open records; their keys are
    whatever the service sends. ``capture`` is the raw ``captureStatus``
    mapping (feature, scenario, categories, id, testStatus, ...).
    """

    state: str
    info: Dict[str, Any] = field(default_factory=dict)
    uploads: Dict[str, Any] = field(default_factory=dict)
    defaults: Dict[str, Any] = field(default_factory=dict)
    capture: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "CaptureStatus":
        """Build a snapshot from the ``GET /api`` body."""
        data = _as_mapping(payload)
        capture = _as_mapping(data.get("captureStatus"))
        state = capture.get("state") or ""
        if not state:
            logger.warning("capture.status: response carries no capture state; keys=%s", sorted(data))
        uploads = data.get("uploads")
        return cls(
            state=str(state),
            info=_as_mapping(data.get("info")),
            # older servers report uploads as a list of upload statuses
            uploads=_as_mapping(uploads) if not isinstance(uploads, list) else {"items": list(uploads)},
            defaults=_as_mapping(data.get("defaults")),
            capture=capture,
        )

    @property
    def phase(self) -> Optional[CaptureState]:
        """Known lifecycle state, or None when the server sent an unknown token."""
        try:
            return CaptureState(self.state)
        except ValueError:
            return None

    @property
    def test_status(self) -> Optional[str]:
        value = self.capture.get("testStatus")
        return str(value).lower() if value else None

    @property
    def label(self) -> str:
        """Display label, e.g. ``recording`` or ``finished/pass``."""
        if self.phase is CaptureState.FINISHED and self.test_status:
            return f"{self.state}/{self.test_status}"
        return self.state

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "label": self.label,
            "info": self.info,
            "uploads": self.uploads,
            "defaults": self.defaults,
            "captureStatus": self.capture,
        }


@dataclass
class StatusEvent:
    """Event payload distributed to UI subscribers."""

    type: str
    data: Dict[str, Any]
    status: Optional[CaptureStatus] = None
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type, "data": self.data}
        payload["status"] = self.status.to_dict() if self.status else None
        if self.error:
            payload["error"] = self.error
        return payload


__all__ = ["CaptureState", "CaptureStatus", "StatusEvent", "TestOutcome"]
