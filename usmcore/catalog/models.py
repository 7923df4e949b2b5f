"""
usmcore/catalog/models.py
Data models for the script catalog.

Script       one unit of user-supplied automation.
Settings     the user-facing switches the engine honours (safe mode, paused hosts).
RunRecord    last run time / last error for one script (the run ledger entry).

Wire format (dicts, JSON, API payloads) keeps the camelCase field names the
catalog has always been stored with: runAt, lastRunTime, scriptDisabledHosts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_RUN_AT = "document-end"


def _pattern_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        # Multi-line text as typed into an editor; blank lines are not patterns
        return [line.strip() for line in value.splitlines() if line.strip()]
    # Stored lists are kept entry for entry: a blank pattern still counts
    return [str(p).strip() for p in value]


@dataclass
class Script:
    """A user script as stored in the catalog. Read-only to the engine."""

    id: Optional[int] = None
    name: str = ""
    code: str = ""
    matches: List[str] = field(default_factory=list)
    includes: List[str] = field(default_factory=list)
    excludes: List[str] = field(default_factory=list)
    run_at: Optional[str] = None
    enabled: Optional[bool] = None
    version: Optional[str] = None

    @property
    def effective_run_at(self) -> str:
        return self.run_at or DEFAULT_RUN_AT

    @property
    def is_enabled(self) -> bool:
        # Only an explicit False disables a script
        return self.enabled is not False

    @property
    def has_code(self) -> bool:
        return bool(self.code)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Script":
        raw_id = data.get("id")
        return cls(
            id=int(raw_id) if raw_id is not None else None,
            name=str(data.get("name") or ""),
            code=data.get("code") or "",
            matches=_pattern_list(data.get("matches")),
            includes=_pattern_list(data.get("includes")),
            excludes=_pattern_list(data.get("excludes")),
            run_at=data.get("runAt") or data.get("run_at") or None,
            enabled=data.get("enabled"),
            version=data.get("version"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "matches": list(self.matches),
            "includes": list(self.includes),
            "excludes": list(self.excludes),
            "runAt": self.run_at,
            "enabled": self.enabled,
        }
        if self.version is not None:
            data["version"] = self.version
        return data


@dataclass
class Settings:
    """User-facing engine switches."""

    safe_mode: bool = False
    script_disabled_hosts: List[str] = field(default_factory=list)
    theme_mode: str = "system"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        raw = data or {}
        hosts = raw.get("scriptDisabledHosts")
        return cls(
            safe_mode=bool(raw.get("safeMode")),
            script_disabled_hosts=[str(h) for h in hosts] if isinstance(hosts, list) else [],
            theme_mode=raw.get("themeMode") or "system",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "themeMode": self.theme_mode,
            "safeMode": self.safe_mode,
            "scriptDisabledHosts": list(self.script_disabled_hosts),
        }


@dataclass
class RunRecord:
    """Ledger entry. Unknown fields of a stored record are kept in `extra`."""

    last_run_time: Optional[float] = None
    last_error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RunRecord":
        raw = dict(data or {})
        last_run_time = raw.pop("lastRunTime", None)
        last_error = raw.pop("lastError", None)
        return cls(last_run_time=last_run_time, last_error=last_error, extra=raw)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data["lastRunTime"] = self.last_run_time
        data["lastError"] = self.last_error
        return data
