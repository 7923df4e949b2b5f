"""
Userscript metadata block parsing.

A script may start with a header in comments:

    # ==UserScript==
    # @name     Hide banners
    # @version  1.2
    # @match    *://*.example.com/*
    # @exclude  *://admin.example.com/*
    # @run-at   document-start
    # ==/UserScript==

Only the block between the two markers is read. Repeated @match/@include/
@exclude lines accumulate in order; @name/@version/@run-at take the first value.
"""

import re
from typing import Any, Dict, List, Optional

from usmcore.catalog.models import DEFAULT_RUN_AT, Script

DEFAULT_NAME = "Imported userscript"

_BLOCK_RE = re.compile(r"==UserScript==(.*?)==/UserScript==", re.DOTALL)
_KEY_RE = re.compile(r"@([\w-]+)[ \t]+(.+)")


def _first(values: Dict[str, List[str]], key: str) -> Optional[str]:
    found = values.get(key)
    return found[0] if found else None


def parse_userscript_metadata(source: str) -> Dict[str, Any]:
    """Return name/version/runAt/matches/includes/excludes from the header block."""
    block_match = _BLOCK_RE.search(source or "")
    block = block_match.group(1) if block_match else ""

    values: Dict[str, List[str]] = {}
    for line in block.splitlines():
        found = _KEY_RE.search(line)
        if found and found.group(2).strip():
            values.setdefault(found.group(1), []).append(found.group(2).strip())

    return {
        "name": _first(values, "name") or DEFAULT_NAME,
        "version": _first(values, "version"),
        "runAt": _first(values, "run-at") or DEFAULT_RUN_AT,
        "matches": values.get("match", []),
        "includes": values.get("include", []),
        "excludes": values.get("exclude", []),
    }


def script_from_source(source: str, enabled: bool = True) -> Script:
    meta = parse_userscript_metadata(source)
    return Script(
        id=None,
        name=meta["name"],
        code=source,
        matches=meta["matches"],
        includes=meta["includes"],
        excludes=meta["excludes"],
        run_at=meta["runAt"],
        enabled=enabled,
        version=meta["version"],
    )
