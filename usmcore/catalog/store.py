"""
usmcore/catalog/store.py
The catalog/settings collaborator and the run ledger.

The engine only ever READS the catalog and settings, and only ever WRITES run
records. Saving scripts/settings is here so hosts (CLI, API, tests) can
populate a store; the management UI that would normally do so is not part of
this project.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from usmcore.base.exceptions import CatalogIntegrityError
from usmcore.catalog.models import RunRecord, Script, Settings

logger = logging.getLogger(__name__)


def now_ms() -> float:
    return time.time() * 1000.0


def assign_missing_ids(scripts: List[Script]) -> List[Script]:
    """
    Give every script without an id the next free integer id.

    New ids continue from the highest id already present, in list order.
    Existing ids are never touched; two scripts sharing an id are rejected
    before anything is assigned.
    """
    seen = set()
    for script in scripts:
        if script.id is None:
            continue
        if script.id in seen:
            raise CatalogIntegrityError(f"Duplicate script id {script.id}")
        seen.add(script.id)

    max_id = max((s.id for s in scripts if s.id is not None), default=0)
    for script in scripts:
        if script.id is None:
            max_id += 1
            script.id = max_id
    return scripts


def merge_run(existing: Optional[RunRecord], ok: bool, error: Optional[object]) -> RunRecord:
    """Overwrite lastRunTime/lastError, keep whatever else the record holds."""
    record = existing or RunRecord()
    record.last_run_time = now_ms()
    record.last_error = None if ok else str(error or "Unknown error")
    return record


class CatalogStore(ABC):
    """Interface consumed by the selector (catalog/settings) and the ledger."""

    @abstractmethod
    async def get_catalog(self) -> List[Script]:
        ...

    @abstractmethod
    async def get_settings(self) -> Settings:
        ...

    @abstractmethod
    async def record_run(self, script_id: int, ok: bool, error: Optional[str] = None) -> None:
        ...

    @abstractmethod
    async def get_run_records(self) -> Dict[int, RunRecord]:
        ...

    @abstractmethod
    async def save_scripts(self, scripts: List[Script]) -> List[Script]:
        ...

    @abstractmethod
    async def save_settings(self, settings: Settings) -> None:
        ...

    async def add_script(self, script: Script) -> Script:
        """Append one script to the catalog and return it with its id."""
        scripts = await self.get_catalog()
        scripts.append(script)
        saved = await self.save_scripts(scripts)
        return saved[-1]

    async def close(self) -> None:
        return None


class InMemoryCatalogStore(CatalogStore):
    """
    Process-local store. Every read returns copies so callers can never
    mutate the stored catalog by accident.
    """

    def __init__(
        self,
        scripts: Optional[List[Script]] = None,
        settings: Optional[Settings] = None,
    ):
        self._scripts: List[Script] = assign_missing_ids(copy.deepcopy(scripts or []))
        self._settings: Settings = copy.deepcopy(settings) if settings else Settings()
        self._runs: Dict[int, RunRecord] = {}
        self._lock = asyncio.Lock()

    async def get_catalog(self) -> List[Script]:
        return copy.deepcopy(self._scripts)

    async def get_settings(self) -> Settings:
        return copy.deepcopy(self._settings)

    async def record_run(self, script_id: int, ok: bool, error: Optional[str] = None) -> None:
        async with self._lock:
            self._runs[script_id] = merge_run(self._runs.get(script_id), ok, error)
        logger.debug("[Ledger] script %s ok=%s", script_id, ok)

    async def get_run_records(self) -> Dict[int, RunRecord]:
        return copy.deepcopy(self._runs)

    async def save_scripts(self, scripts: List[Script]) -> List[Script]:
        async with self._lock:
            self._scripts = assign_missing_ids(copy.deepcopy(scripts))
            return copy.deepcopy(self._scripts)

    async def save_settings(self, settings: Settings) -> None:
        async with self._lock:
            self._settings = Settings.from_dict(settings.to_dict())
