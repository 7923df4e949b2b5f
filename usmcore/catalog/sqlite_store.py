#
# PURPOSE:
# Durable catalog store: scripts, run ledger and settings in one SQLite file.
#
# SCHEMA:
# - scripts:     one row per script, `position` keeps catalog order
# - script_meta: one row per script id, the run ledger record as JSON
# - settings:    key/value rows, JSON values
#
# KEY CONCEPTS:
# - aiosqlite keeps the event loop free while SQLite works
# - WAL mode lets readers (selector) proceed while the ledger writes
# - Every public call is one lock-guarded operation; there are no
#   cross-operation transactions, concurrent writers see last-write-wins
#

"""
usmcore/catalog/sqlite_store.py
SQLite-backed CatalogStore.
"""

import asyncio
import copy
import json
import logging
import os
import sqlite3
from typing import Dict, List, Optional

import aiosqlite

from usmcore.base.config import get_config
from usmcore.base.exceptions import CollaboratorUnavailableError
from usmcore.catalog.models import RunRecord, Script, Settings
from usmcore.catalog.store import CatalogStore, assign_missing_ids, merge_run

logger = logging.getLogger(__name__)

SETTINGS_KEY = "musp_settings"


class SqliteCatalogStore(CatalogStore):
    """CatalogStore persisted with aiosqlite."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or str(get_config().storage.db_path)
        self._initialized = False
        self._init_lock: Optional[asyncio.Lock] = None
        self._db_lock: Optional[asyncio.Lock] = None
        self._db_connection: Optional[aiosqlite.Connection] = None

    async def init(self) -> None:
        if self._initialized:
            return

        # asyncio.Lock must be created in async context
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        if self._db_lock is None:
            self._db_lock = asyncio.Lock()

        async with self._init_lock:
            if self._initialized:
                return
            try:
                if self.db_path != ":memory:":
                    os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
                self._db_connection = await aiosqlite.connect(self.db_path, timeout=5.0)
                await self._db_connection.execute("PRAGMA journal_mode=WAL;")
                await self._db_connection.execute("PRAGMA busy_timeout=5000;")
                await self._create_tables()
                await self._db_connection.commit()
                self._initialized = True
                logger.info(f"[CatalogDB] Initialized at {self.db_path}")
            except (sqlite3.Error, OSError) as e:
                logger.error(f"[CatalogDB] Init failed: {e}")
                raise CollaboratorUnavailableError(f"Catalog database unavailable: {e}") from e

    async def close(self) -> None:
        if self._db_connection:
            await self._db_connection.close()
            self._db_connection = None
            self._initialized = False
            logger.info("[CatalogDB] Connection closed.")

    async def _create_tables(self) -> None:
        await self._db_connection.execute("""
            CREATE TABLE IF NOT EXISTS scripts (
                id INTEGER PRIMARY KEY,
                position INTEGER NOT NULL,
                data JSON NOT NULL CHECK(json_valid(data))
            )
        """)
        await self._db_connection.execute("""
            CREATE TABLE IF NOT EXISTS script_meta (
                script_id INTEGER PRIMARY KEY,
                data JSON NOT NULL CHECK(json_valid(data))
            )
        """)
        await self._db_connection.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value JSON NOT NULL CHECK(json_valid(value))
            )
        """)
        await self._db_connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_scripts_position ON scripts(position)
        """)

    async def _fetch_all(self, query: str, params: tuple = ()) -> List[tuple]:
        await self.init()
        try:
            async with self._db_lock:
                async with self._db_connection.execute(query, params) as cursor:
                    return list(await cursor.fetchall())
        except (sqlite3.Error, ValueError) as e:
            raise CollaboratorUnavailableError(f"Catalog read failed: {e}") from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_catalog(self) -> List[Script]:
        rows = await self._fetch_all("SELECT data FROM scripts ORDER BY position ASC")
        return [Script.from_dict(json.loads(row[0])) for row in rows]

    async def get_settings(self) -> Settings:
        rows = await self._fetch_all("SELECT value FROM settings WHERE key = ?", (SETTINGS_KEY,))
        if not rows:
            return Settings()
        return Settings.from_dict(json.loads(rows[0][0]))

    async def get_run_records(self) -> Dict[int, RunRecord]:
        rows = await self._fetch_all("SELECT script_id, data FROM script_meta")
        return {int(row[0]): RunRecord.from_dict(json.loads(row[1])) for row in rows}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record_run(self, script_id: int, ok: bool, error: Optional[str] = None) -> None:
        await self.init()
        async with self._db_lock:
            async with self._db_connection.execute(
                "SELECT data FROM script_meta WHERE script_id = ?", (script_id,)
            ) as cursor:
                row = await cursor.fetchone()
            existing = RunRecord.from_dict(json.loads(row[0])) if row else None
            record = merge_run(existing, ok, error)
            await self._db_connection.execute(
                "INSERT OR REPLACE INTO script_meta (script_id, data) VALUES (?, ?)",
                (script_id, json.dumps(record.to_dict())),
            )
            await self._db_connection.commit()

    async def save_scripts(self, scripts: List[Script]) -> List[Script]:
        scripts = assign_missing_ids(copy.deepcopy(list(scripts)))
        await self.init()
        async with self._db_lock:
            # Replace the whole catalog or nothing
            try:
                await self._db_connection.execute("DELETE FROM scripts")
                await self._db_connection.executemany(
                    "INSERT INTO scripts (id, position, data) VALUES (?, ?, ?)",
                    [(s.id, pos, json.dumps(s.to_dict())) for pos, s in enumerate(scripts)],
                )
                await self._db_connection.commit()
            except sqlite3.Error as e:
                await self._db_connection.rollback()
                logger.error(f"[CatalogDB] Catalog save rolled back: {e}")
                raise
        logger.info(f"[CatalogDB] Saved {len(scripts)} scripts")
        return scripts

    async def save_settings(self, settings: Settings) -> None:
        normalized = Settings.from_dict(settings.to_dict())
        await self.init()
        async with self._db_lock:
            await self._db_connection.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (SETTINGS_KEY, json.dumps(normalized.to_dict())),
            )
            await self._db_connection.commit()
