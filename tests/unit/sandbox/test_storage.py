"""
Unit tests for scoped script storage.
"""
import logging

import pytest

from usmcore.base.config import SandboxConfig
from usmcore.base.exceptions import StorageQuotaExceededError
from usmcore.sandbox.storage import OriginStorage, ScopedValueStore

ORIGIN = "https://example.com"


class TestScopedValueStore:

    def test_round_trip(self):
        values = ScopedValueStore(7, ORIGIN, OriginStorage())
        values.set("prefs", {"dark": True, "sizes": [1, 2]})
        assert values.get("prefs") == {"dark": True, "sizes": [1, 2]}

    def test_missing_key_returns_default(self):
        values = ScopedValueStore(7, ORIGIN, OriginStorage())
        assert values.get("nope") is None
        assert values.get("nope", 5) == 5

    def test_storage_key_layout(self):
        values = ScopedValueStore(7, ORIGIN, OriginStorage())
        assert values.storage_key("count") == "musp_7_count"
        custom = ScopedValueStore(7, ORIGIN, OriginStorage(), SandboxConfig(storage_prefix="x_"))
        assert custom.storage_key("count") == "x_7_count"

    def test_scripts_do_not_see_each_other(self):
        storage = OriginStorage()
        ScopedValueStore(1, ORIGIN, storage).set("k", "one")
        assert ScopedValueStore(2, ORIGIN, storage).get("k") is None

    def test_origins_do_not_see_each_other(self):
        storage = OriginStorage()
        ScopedValueStore(1, ORIGIN, storage).set("k", "one")
        assert ScopedValueStore(1, "https://other.test", storage).get("k") is None

    def test_corrupt_value_returns_default(self):
        storage = OriginStorage()
        storage.set_item(ORIGIN, "musp_1_k", "{not json")
        assert ScopedValueStore(1, ORIGIN, storage).get("k", "fallback") == "fallback"

    def test_unserializable_value_is_swallowed(self, caplog):
        values = ScopedValueStore(1, ORIGIN, OriginStorage())
        with caplog.at_level(logging.WARNING):
            values.set("k", {1, 2, 3})
        assert values.get("k") is None
        assert "GM_setValue failed" in caplog.text

    def test_quota_failure_is_swallowed(self):
        values = ScopedValueStore(1, ORIGIN, OriginStorage(quota_bytes=32))
        values.set("small", 1)
        values.set("big", "x" * 100)
        assert values.get("small") == 1
        assert values.get("big") is None


class TestOriginStorage:

    def test_quota_counts_replacements(self):
        storage = OriginStorage(quota_bytes=10)
        storage.set_item(ORIGIN, "k", "12345")
        storage.set_item(ORIGIN, "k", "123456789")
        assert storage.used_bytes(ORIGIN) == 10
        with pytest.raises(StorageQuotaExceededError):
            storage.set_item(ORIGIN, "j", "1")

    def test_remove_and_clear(self):
        storage = OriginStorage()
        storage.set_item(ORIGIN, "a", "1")
        storage.set_item(ORIGIN, "b", "2")
        storage.remove_item(ORIGIN, "a")
        assert storage.get_item(ORIGIN, "a") is None
        assert storage.used_bytes(ORIGIN) == 2
        storage.clear(ORIGIN)
        assert storage.used_bytes(ORIGIN) == 0

    def test_instance_is_shared(self):
        assert OriginStorage.instance() is OriginStorage.instance()
