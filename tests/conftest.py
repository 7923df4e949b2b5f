"""Pytest configuration for MiniUSM."""
import os

import pytest

from usmcore.base.config import StorageConfig, UsmConfig, set_config
from usmcore.match.pattern import reset_matcher
from usmcore.sandbox.storage import OriginStorage


def pytest_configure():
    # Never write a log file from the test run.
    os.environ.setdefault("USM_LOG_FILE", "false")


@pytest.fixture(autouse=True)
def fresh_engine_state(tmp_path):
    """Default config rooted in tmp_path, empty origin storage, cold pattern cache."""
    set_config(UsmConfig(storage=StorageConfig(base_dir=tmp_path / "miniusm")))
    reset_matcher()
    OriginStorage._instance = None
    yield
    OriginStorage._instance = None
    reset_matcher()
    set_config(None)
