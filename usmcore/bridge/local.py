"""
usmcore/bridge/local.py
Bridges between page hosts and the engine.

EngineBridge is the boundary a page host talks to. LocalBridge serves it in
process straight from a CatalogStore; HttpBridge serves it from a running API
server (usmcore.server.api).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from usmcore.base.exceptions import CollaboratorUnavailableError
from usmcore.bridge.messages import (
    ReportRunNotification,
    SelectForPhaseRequest,
    SelectForPhaseResponse,
)
from usmcore.catalog.models import Script
from usmcore.catalog.store import CatalogStore
from usmcore.match.pattern import PatternMatcher
from usmcore.schedule.phase import RunAt
from usmcore.schedule.selector import ScriptSelector

logger = logging.getLogger(__name__)


class EngineBridge(ABC):
    @abstractmethod
    async def select_for_phase(self, url: str, phase: str) -> List[Script]:
        ...

    @abstractmethod
    async def report_run(self, script_id: int, ok: bool, error: Optional[str] = None) -> None:
        ...

    async def aclose(self) -> None:
        return None


class LocalBridge(EngineBridge):
    """In-process bridge: selector and run ledger over one store."""

    def __init__(self, store: CatalogStore, matcher: Optional[PatternMatcher] = None):
        self.store = store
        self.selector = ScriptSelector(store, matcher)

    async def select_for_phase(self, url: str, phase: str) -> List[Script]:
        return await self.selector.select(url, phase)

    async def report_run(self, script_id: int, ok: bool, error: Optional[str] = None) -> None:
        await self.store.record_run(script_id, ok, error)


class HttpBridge(EngineBridge):
    """Bridge to a remote engine over its HTTP API."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(base_url=self.base_url)

    async def select_for_phase(self, url: str, phase: str) -> List[Script]:
        request = SelectForPhaseRequest(url=url, phase=RunAt.parse(phase))
        try:
            response = await self.client.post("/api/select", json=request.model_dump(mode="json"))
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise CollaboratorUnavailableError(f"Engine at {self.base_url} unavailable: {e}") from e
        payload = SelectForPhaseResponse.model_validate(response.json())
        return [s.to_script() for s in payload.scripts]

    async def report_run(self, script_id: int, ok: bool, error: Optional[str] = None) -> None:
        notification = ReportRunNotification(scriptId=script_id, ok=ok, error=error)
        try:
            response = await self.client.post("/api/report", json=notification.model_dump(mode="json"))
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise CollaboratorUnavailableError(f"Run report for script {script_id} not delivered: {e}") from e

    async def aclose(self) -> None:
        await self.client.aclose()
