"""
Wire messages between a page host and the engine.

    selectForPhase  {kind, url, phase}          -> {scripts: [...]}
    reportRun       {kind, scriptId, ok, error} (fire-and-forget)
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from usmcore.catalog.models import Script
from usmcore.schedule.phase import RunAt


class ScriptPayload(BaseModel):
    id: Optional[int] = None
    name: str = ""
    code: str = ""
    matches: List[str] = Field(default_factory=list)
    includes: List[str] = Field(default_factory=list)
    excludes: List[str] = Field(default_factory=list)
    runAt: Optional[str] = None
    enabled: Optional[bool] = None
    version: Optional[str] = None

    @classmethod
    def from_script(cls, script: Script) -> "ScriptPayload":
        return cls.model_validate(script.to_dict())

    def to_script(self) -> Script:
        return Script.from_dict(self.model_dump())


class SelectForPhaseRequest(BaseModel):
    kind: Literal["selectForPhase"] = "selectForPhase"
    url: str
    phase: RunAt


class SelectForPhaseResponse(BaseModel):
    scripts: List[ScriptPayload] = Field(default_factory=list)


class ReportRunNotification(BaseModel):
    kind: Literal["reportRun"] = "reportRun"
    scriptId: int
    ok: bool
    error: Optional[str] = None
