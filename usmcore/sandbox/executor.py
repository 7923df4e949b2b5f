"""
usmcore/sandbox/executor.py
ExecutionSandbox: runs a selected batch against one page instance.

For each script, in batch order:
  1. build a capability set scoped to the script id
  2. compile the source and call the entry with only those capabilities
  3. classify: returned normally -> ok; raised (or failed to compile) -> failure
  4. report RunOutcome(script_id, ok, error) to the reporter
  5. on success bump the page's run counter and refresh the indicator

One failing script never stops the batch. Errors raised later by relay
callbacks belong to the relay, not to the invocation that scheduled them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from usmcore.base.config import SandboxConfig, get_config
from usmcore.catalog.models import Script
from usmcore.page.document import PageDocument
from usmcore.sandbox.capabilities import build_capabilities
from usmcore.sandbox.interpreter import compile_script
from usmcore.sandbox.relay import NetworkRelay
from usmcore.sandbox.storage import OriginStorage, ScopedValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOutcome:
    script_id: Optional[int]
    ok: bool
    error: Optional[str] = None
    name: str = ""


Reporter = Callable[[RunOutcome], None]


def describe_error(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


class ExecutionSandbox:
    """One sandbox per page instance; owns that page's successful-run counter."""

    def __init__(
        self,
        page: PageDocument,
        relay: NetworkRelay,
        storage: Optional[OriginStorage] = None,
        reporter: Optional[Reporter] = None,
        config: Optional[SandboxConfig] = None,
    ):
        self.page = page
        self.relay = relay
        self.storage = storage or OriginStorage.instance()
        self.reporter = reporter
        self.config = config or get_config().sandbox
        self.run_count = 0

    def run_script(self, script: Script) -> RunOutcome:
        values = ScopedValueStore(script.id, self.page.origin, self.storage, self.config)
        capabilities = build_capabilities(script.id, self.page, values, self.relay)
        try:
            entry = compile_script(script.code, script.id, script.name, self.config)
            entry(**capabilities.as_kwargs())
        except Exception as e:
            logger.error(f"[Sandbox] Script error in {script.name or script.id}: {describe_error(e)}")
            outcome = RunOutcome(script.id, ok=False, error=describe_error(e), name=script.name)
        else:
            self.run_count += 1
            self.page.indicator.update(self.run_count)
            outcome = RunOutcome(script.id, ok=True, error=None, name=script.name)

        self._report(outcome)
        return outcome

    def run_batch(self, scripts: Iterable[Script]) -> List[RunOutcome]:
        return [self.run_script(script) for script in scripts]

    def _report(self, outcome: RunOutcome) -> None:
        if self.reporter is None:
            return
        try:
            self.reporter(outcome)
        except Exception as e:
            logger.warning(f"[Sandbox] Could not report run of script {outcome.script_id}: {e}")
