"""
usmcore/schedule/selector.py
ScriptSelector: which scripts run for (url, phase), in which order.

Pipeline (the first step that empties the result wins):
  1. Non-web URL (not http/https)        → []
  2. Fetch catalog + settings            (one round trip, both concurrently)
  3. settings.safe_mode                  → []   global kill switch
  4. Normalized host is paused           → []   per-site kill switch
  5. Keep scripts that are enabled, have code, are eligible for the URL
     and whose run_at applies to the phase
  6. Catalog order is execution order (no sorting)

A failing collaborator surfaces as CollaboratorUnavailableError; callers
treat that as "no batch for this phase".
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

from usmcore.base.exceptions import CollaboratorUnavailableError
from usmcore.catalog.models import Script, Settings
from usmcore.catalog.store import CatalogStore
from usmcore.match.eligibility import EligibilityDecision, evaluate
from usmcore.match.pattern import PatternMatcher, get_matcher
from usmcore.schedule.phase import applies_to_phase

logger = logging.getLogger(__name__)

WEB_SCHEMES = ("http://", "https://")


def is_web_url(url: Optional[str]) -> bool:
    return bool(url) and url.lower().startswith(WEB_SCHEMES)


def normalize_host(url: str) -> str:
    """Lower-cased hostname with one leading "www." removed; "" if unparseable."""
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host


def is_host_paused(settings: Settings, host: str) -> bool:
    if not host:
        return False
    paused = {h.strip().lower() for h in settings.script_disabled_hosts}
    return host in paused


@dataclass(frozen=True)
class SelectionVerdict:
    """One row of the page inspector: is this script in scope here, and why."""

    script: Script
    decision: EligibilityDecision
    runnable: bool          # enabled, has code, in scope
    note: str = ""


class ScriptSelector:
    """Selects the ordered batch of scripts for a page phase."""

    def __init__(self, store: CatalogStore, matcher: Optional[PatternMatcher] = None):
        self.store = store
        self.matcher = matcher or get_matcher()

    async def _load(self):
        try:
            return await asyncio.gather(self.store.get_catalog(), self.store.get_settings())
        except CollaboratorUnavailableError:
            raise
        except Exception as e:
            raise CollaboratorUnavailableError(f"Catalog/settings fetch failed: {e}") from e

    async def select(self, url: str, phase: str) -> List[Script]:
        if not is_web_url(url):
            return []

        scripts, settings = await self._load()

        if settings.safe_mode:
            logger.debug("[Selector] Safe mode on, nothing runs for %s", url)
            return []

        host = normalize_host(url)
        if is_host_paused(settings, host):
            logger.debug("[Selector] Host %s is paused", host)
            return []

        selected = [
            s for s in scripts
            if s.is_enabled
            and s.has_code
            and evaluate(url, s, self.matcher).eligible
            and applies_to_phase(s.run_at, phase)
        ]
        logger.debug("[Selector] %s @ %s -> %s", url, phase, [s.id for s in selected])
        return selected

    async def explain(self, url: str) -> List[SelectionVerdict]:
        """Every catalog script with its URL verdict, phase ignored."""
        scripts, settings = await self._load()
        host = normalize_host(url)

        global_note = ""
        if not is_web_url(url):
            global_note = "not a web page"
        elif settings.safe_mode:
            global_note = "safe mode is on"
        elif is_host_paused(settings, host):
            global_note = f"scripts paused on {host}"

        verdicts: List[SelectionVerdict] = []
        for script in scripts:
            decision = evaluate(url, script, self.matcher)
            if not script.is_enabled:
                note = "disabled"
            elif not script.has_code:
                note = "no code"
            else:
                note = global_note
            runnable = decision.eligible and script.is_enabled and script.has_code and not global_note
            verdicts.append(SelectionVerdict(script=script, decision=decision, runnable=runnable, note=note))
        return verdicts
