"""Request bodies sent to the capture service lifecycle endpoints."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .state import TestOutcome


class _RequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_payload(self) -> Dict[str, Any]:
        """Wire payload; unset fields are left out so server defaults apply."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class CaptureStartParams(_RequestBody):
    """Body of ``POST /captures/start``.

    ``categories`` is keyed by the categories configured on the server
    (e.g. organisation, product); missing ones fall back to server defaults.
    """

    categories: Dict[str, str] = Field(default_factory=dict)
    feature: Optional[str] = None
    scenario: Optional[str] = None
    record: Optional[str] = None
    force: Optional[str] = None
    meta: Optional[Dict[str, str]] = None
    description: Optional[str] = None


class TestLog(BaseModel):
    model_config = ConfigDict(extra="allow")

    ts: Optional[str] = None
    cat: Optional[str] = None
    tier: Optional[str] = None
    log: Optional[str] = None


class CaptureFinishParams(_RequestBody):
    """Body of ``POST /captures/finish``."""

    test_status: TestOutcome = Field(..., alias="testStatus")
    meta: Optional[Dict[str, str]] = None
    description: Optional[str] = None
    error: Optional[str] = None
    stack_trace: Optional[str] = Field(None, alias="stackTrace")
    logs: Optional[List[TestLog]] = None


__all__ = ["CaptureFinishParams", "CaptureStartParams", "TestLog"]
