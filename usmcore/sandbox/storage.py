"""
usmcore/sandbox/storage.py
Scoped key-value storage for scripts.

OriginStorage is the process-wide backing area, partitioned by page origin
the way a browser partitions localStorage. Every page instance on the same
origin sees the same area; each operation is atomic on its own and there are
no multi-operation transactions, so concurrent writers get last-write-wins.

ScopedValueStore is what one script sees: its keys are namespaced
"<prefix><script_id>_<key>" and values are stored as JSON text.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, Optional

from usmcore.base.config import SandboxConfig, get_config
from usmcore.base.exceptions import StorageQuotaExceededError

logger = logging.getLogger(__name__)


class OriginStorage:
    """String key/value areas, one per origin, with a byte quota per area."""

    _instance: Optional["OriginStorage"] = None

    @staticmethod
    def instance() -> "OriginStorage":
        if OriginStorage._instance is None:
            OriginStorage._instance = OriginStorage()
        return OriginStorage._instance

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes if quota_bytes is not None else get_config().sandbox.storage_quota_bytes
        self._areas: Dict[str, Dict[str, str]] = {}
        self._sizes: Dict[str, int] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _entry_size(key: str, value: str) -> int:
        return len(key.encode("utf-8")) + len(value.encode("utf-8"))

    def get_item(self, origin: str, key: str) -> Optional[str]:
        with self._lock:
            return self._areas.get(origin, {}).get(key)

    def set_item(self, origin: str, key: str, value: str) -> None:
        with self._lock:
            area = self._areas.setdefault(origin, {})
            used = self._sizes.get(origin, 0)
            old = area.get(key)
            if old is not None:
                used -= self._entry_size(key, old)
            needed = used + self._entry_size(key, value)
            if needed > self.quota_bytes:
                raise StorageQuotaExceededError(origin, needed, self.quota_bytes)
            area[key] = value
            self._sizes[origin] = needed

    def remove_item(self, origin: str, key: str) -> None:
        with self._lock:
            area = self._areas.get(origin)
            if area and key in area:
                self._sizes[origin] -= self._entry_size(key, area.pop(key))

    def clear(self, origin: Optional[str] = None) -> None:
        with self._lock:
            if origin is None:
                self._areas.clear()
                self._sizes.clear()
            else:
                self._areas.pop(origin, None)
                self._sizes.pop(origin, None)

    def used_bytes(self, origin: str) -> int:
        with self._lock:
            return self._sizes.get(origin, 0)


class ScopedValueStore:
    """The GM_getValue / GM_setValue view for one script on one origin."""

    def __init__(
        self,
        script_id: Optional[int],
        origin: str,
        storage: Optional[OriginStorage] = None,
        config: Optional[SandboxConfig] = None,
    ):
        self.script_id = script_id
        self.origin = origin
        self.storage = storage or OriginStorage.instance()
        self.prefix = (config or get_config().sandbox).storage_prefix

    def storage_key(self, key: Any) -> str:
        return f"{self.prefix}{self.script_id}_{key}"

    def get(self, key: Any, default: Any = None) -> Any:
        raw = self.storage.get_item(self.origin, self.storage_key(key))
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            return default

    def set(self, key: Any, value: Any) -> None:
        # Failures never reach the script
        try:
            self.storage.set_item(self.origin, self.storage_key(key), json.dumps(value))
        except (TypeError, ValueError, StorageQuotaExceededError) as e:
            logger.warning(f"[Storage] GM_setValue failed for script {self.script_id} key {key!r}: {e}")
