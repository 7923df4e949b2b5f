# ============================================================================
# usmcore/base/config.py
# Engine Configuration Management
# ============================================================================
#
# PURPOSE:
# Defines every tunable setting of the userscript engine in one place:
# pattern limits, sandbox limits, the network relay, the on-page indicator,
# storage paths, the proxy host and logging.
#
# KEY CONCEPTS:
# 1. Frozen dataclasses: one immutable section per concern
# 2. Environment variables: every section can be overridden (USM_*)
# 3. Singleton access: get_config() / set_config()
#
# NOTE:
# These are ENGINE settings. The user-facing settings (safe mode, paused
# hosts) belong to the catalog store, see usmcore/catalog/models.py.
#
# ============================================================================

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


# ============================================================================
# Pattern Matching Configuration
# ============================================================================
# Bounds on wildcard patterns. Anything above these limits is treated as a
# pattern that never matches.

@dataclass(frozen=True)
class MatchConfig:
    # Longest pattern (in characters) the matcher will compile
    max_pattern_length: int = 2048

    # Most "*" wildcards allowed in a single pattern
    max_wildcards: int = 64

    # How many compiled predicates to keep around (same catalog is evaluated
    # for every phase of every page)
    cache_size: int = 1024


# ============================================================================
# Sandbox Configuration
# ============================================================================
# Limits and namespacing for script execution.

@dataclass(frozen=True)
class SandboxConfig:
    # Prefix for scoped storage keys: "<prefix><script_id>_<key>"
    storage_prefix: str = "musp_"

    # Per-origin storage quota in bytes (keys + values), like localStorage
    storage_quota_bytes: int = 5 * 1024 * 1024

    # Largest script source accepted by the compiler
    max_code_length: int = 1024 * 1024

    # Logger name that receives print() output from scripts
    script_logger: str = "usmcore.sandbox.script"


# ============================================================================
# Network Relay Configuration
# ============================================================================
# The relay performs HTTP requests on behalf of scripts. There is deliberately
# no timeout setting: requests run until they complete or the network fails.

@dataclass(frozen=True)
class RelayConfig:
    # Verify TLS certificates of relayed requests
    verify_tls: bool = True

    # Follow redirects (finalUrl reports where we ended up)
    follow_redirects: bool = True

    # User-Agent sent when the script does not provide one
    user_agent: str = "MiniUSM/1.0 (+relay)"


# ============================================================================
# Run Indicator Configuration
# ============================================================================

@dataclass(frozen=True)
class IndicatorConfig:
    # Show the on-page run counter at all
    enabled: bool = True

    # Text shown before the count ("MiniUSM: 3")
    label: str = "MiniUSM"

    # DOM id of the injected element
    element_id: str = "miniUSM-badge"


# ============================================================================
# File Storage Configuration
# ============================================================================

@dataclass(frozen=True)
class StorageConfig:
    # Base directory for all engine data
    base_dir: Path = field(default_factory=lambda: Path.home() / ".miniusm")

    # SQLite database holding the script catalog, run ledger and settings
    db_name: str = "catalog.db"

    @property
    def db_path(self) -> Path:
        return self.base_dir / self.db_name


# ============================================================================
# Proxy Host Configuration
# ============================================================================

@dataclass(frozen=True)
class ProxyConfig:
    listen_host: str = "127.0.0.1"

    # 0 means "pick a free port"
    listen_port: int = 8080

    # Largest HTML body (bytes) the proxy will run scripts against
    max_document_bytes: int = 5 * 1024 * 1024


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # Also write to <base_dir>/<file_name> with rotation
    file_enabled: bool = False
    file_name: str = "miniusm.log"
    max_file_size_mb: int = 10
    backup_count: int = 5


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass(frozen=True)
class UsmConfig:
    match: MatchConfig = field(default_factory=MatchConfig)
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    relay: RelayConfig = field(default_factory=RelayConfig)
    indicator: IndicatorConfig = field(default_factory=IndicatorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    log: LogConfig = field(default_factory=LogConfig)

    debug: bool = False

    # Where the API server listens
    api_host: str = "127.0.0.1"
    api_port: int = 8766

    @classmethod
    def from_env(cls) -> "UsmConfig":
        """Build a config from USM_* environment variables."""
        match = MatchConfig(
            max_pattern_length=int(os.getenv("USM_MAX_PATTERN_LENGTH", "2048")),
            max_wildcards=int(os.getenv("USM_MAX_WILDCARDS", "64")),
            cache_size=int(os.getenv("USM_PATTERN_CACHE_SIZE", "1024")),
        )

        sandbox = SandboxConfig(
            storage_prefix=os.getenv("USM_STORAGE_PREFIX", "musp_"),
            storage_quota_bytes=int(os.getenv("USM_STORAGE_QUOTA_BYTES", str(5 * 1024 * 1024))),
            max_code_length=int(os.getenv("USM_MAX_CODE_LENGTH", str(1024 * 1024))),
        )

        relay = RelayConfig(
            verify_tls=_env_bool("USM_RELAY_VERIFY_TLS", "true"),
            follow_redirects=_env_bool("USM_RELAY_FOLLOW_REDIRECTS", "true"),
            user_agent=os.getenv("USM_RELAY_USER_AGENT", "MiniUSM/1.0 (+relay)"),
        )

        indicator = IndicatorConfig(
            enabled=_env_bool("USM_INDICATOR_ENABLED", "true"),
            label=os.getenv("USM_INDICATOR_LABEL", "MiniUSM"),
        )

        base_dir = Path(os.getenv("USM_DATA_DIR", str(Path.home() / ".miniusm")))
        storage = StorageConfig(base_dir=base_dir)

        proxy = ProxyConfig(
            listen_host=os.getenv("USM_PROXY_HOST", "127.0.0.1"),
            listen_port=int(os.getenv("USM_PROXY_PORT", "8080")),
        )

        log = LogConfig(
            level=os.getenv("USM_LOG_LEVEL", "INFO"),
            file_enabled=_env_bool("USM_LOG_FILE", "false"),
        )

        return cls(
            match=match,
            sandbox=sandbox,
            relay=relay,
            indicator=indicator,
            storage=storage,
            proxy=proxy,
            log=log,
            debug=_env_bool("USM_DEBUG", "false"),
            api_host=os.getenv("USM_API_HOST", "127.0.0.1"),
            api_port=int(os.getenv("USM_API_PORT", "8766")),
        )


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[UsmConfig] = None


def get_config() -> UsmConfig:
    """
    Get the global configuration instance.

    Created from the environment on first use, then reused.
    """
    global _config
    if _config is None:
        _config = UsmConfig.from_env()
    return _config


def set_config(config: Optional[UsmConfig]) -> None:
    """
    Replace the global configuration (mainly used for testing).

    Passing None makes the next get_config() re-read the environment.
    """
    global _config
    _config = config


def setup_logging(config: Optional[UsmConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Console output always; a rotating log file when enabled.
    Call this once at application startup.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_enabled:
        from logging.handlers import RotatingFileHandler
        cfg.storage.base_dir.mkdir(parents=True, exist_ok=True)
        log_path = cfg.storage.base_dir / cfg.log.file_name
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    level = "DEBUG" if cfg.debug else cfg.log.level
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
