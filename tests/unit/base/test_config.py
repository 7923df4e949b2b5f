"""
Unit tests for environment-driven configuration.
"""
from pathlib import Path

from usmcore.base.config import UsmConfig, get_config, set_config


class TestUsmConfig:

    def test_defaults(self):
        config = UsmConfig()
        assert config.sandbox.storage_prefix == "musp_"
        assert config.indicator.element_id == "miniUSM-badge"
        assert config.match.max_wildcards == 64
        assert config.api_port == 8766

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("USM_MAX_WILDCARDS", "8")
        monkeypatch.setenv("USM_STORAGE_PREFIX", "t_")
        monkeypatch.setenv("USM_INDICATOR_ENABLED", "false")
        monkeypatch.setenv("USM_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("USM_DEBUG", "true")
        config = UsmConfig.from_env()
        assert config.match.max_wildcards == 8
        assert config.sandbox.storage_prefix == "t_"
        assert config.indicator.enabled is False
        assert config.storage.db_path == Path(tmp_path) / "catalog.db"
        assert config.debug is True

    def test_set_config_none_rereads_environment(self, monkeypatch):
        monkeypatch.setenv("USM_API_PORT", "9100")
        set_config(None)
        assert get_config().api_port == 9100
