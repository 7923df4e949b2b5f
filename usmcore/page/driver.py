"""
usmcore/page/driver.py
Page Lifecycle Driver: attaches the engine to one page instance.

Exactly three phase requests per page instance:

    document-start   immediately on attach
    document-end     on DOMContentLoaded (immediately if parsing is done)
    document-idle    on load, after one event-loop yield (immediately after
                     the yield if the page is already complete)

Each phase asks the bridge for its batch and hands it to the sandbox. Phases
run in that order; a later phase waits for the earlier one. A bridge failure
is logged and that phase runs nothing (fail closed). Nothing is retried.

All per-page state (counter, indicator, relay, pending reports) lives in the
PageSession created by attach(); attaching twice to the same document
returns the first session and starts nothing new.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, List, Optional, Set

from usmcore.base.config import UsmConfig, get_config
from usmcore.bridge.local import EngineBridge
from usmcore.page.document import COMPLETE, DOM_CONTENT_LOADED, LOAD, LOADING, PageDocument
from usmcore.sandbox.executor import ExecutionSandbox, RunOutcome
from usmcore.sandbox.relay import NetworkRelay
from usmcore.sandbox.storage import OriginStorage
from usmcore.schedule.phase import RunAt

logger = logging.getLogger(__name__)


class PageSession:
    """Engine state for one page instance."""

    def __init__(
        self,
        document: PageDocument,
        bridge: EngineBridge,
        config: Optional[UsmConfig] = None,
        storage: Optional[OriginStorage] = None,
        relay: Optional[NetworkRelay] = None,
    ):
        self.config = config or get_config()
        self.document = document
        self.bridge = bridge
        self.relay = relay or NetworkRelay(cookies=document.cookies, config=self.config.relay)
        self.sandbox = ExecutionSandbox(
            page=document,
            relay=self.relay,
            storage=storage,
            reporter=self._report,
            config=self.config.sandbox,
        )
        self.phases_requested: List[str] = []
        self.outcomes: List[RunOutcome] = []
        self._previous_phase: Optional[asyncio.Task] = None
        self._phase_tasks: Set[asyncio.Task] = set()
        self._report_tasks: Set[asyncio.Task] = set()
        self._idle_done = asyncio.Event()
        self._started = False

    @property
    def run_count(self) -> int:
        return self.sandbox.run_count

    # ------------------------------------------------------------------
    # Lifecycle wiring
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._started:
            return
        self._started = True

        self._schedule_phase(RunAt.DOCUMENT_START)

        if self.document.ready_state == LOADING:
            self.document.add_event_listener(
                DOM_CONTENT_LOADED, lambda: self._schedule_phase(RunAt.DOCUMENT_END)
            )
        else:
            self._schedule_phase(RunAt.DOCUMENT_END)

        if self.document.ready_state == COMPLETE:
            self._schedule_phase(RunAt.DOCUMENT_IDLE, yield_first=True)
        else:
            self.document.add_event_listener(
                LOAD, lambda: self._schedule_phase(RunAt.DOCUMENT_IDLE, yield_first=True)
            )

    def _schedule_phase(self, phase: RunAt, yield_first: bool = False) -> None:
        previous = self._previous_phase
        task = asyncio.get_running_loop().create_task(self._run_after(previous, phase, yield_first))
        self._previous_phase = task
        self._phase_tasks.add(task)
        task.add_done_callback(self._phase_tasks.discard)

    async def _run_after(self, previous: Optional[asyncio.Task], phase: RunAt, yield_first: bool) -> None:
        try:
            if yield_first:
                await asyncio.sleep(0)
            if previous is not None:
                await previous
            await self.run_phase(phase)
        finally:
            if phase == RunAt.DOCUMENT_IDLE:
                self._idle_done.set()

    async def run_phase(self, phase: RunAt) -> List[RunOutcome]:
        self.phases_requested.append(phase.value)
        try:
            scripts = await self.bridge.select_for_phase(self.document.url, phase.value)
        except Exception as e:
            logger.warning(f"[Driver] {phase.value} on {self.document.url}: no batch ({e})")
            return []

        if scripts:
            logger.info(f"[Driver] {phase.value} on {self.document.url}: running {len(scripts)} script(s)")
        outcomes = self.sandbox.run_batch(scripts)
        self.outcomes.extend(outcomes)
        return outcomes

    # ------------------------------------------------------------------
    # Run reporting (fire-and-forget)
    # ------------------------------------------------------------------

    def _report(self, outcome: RunOutcome) -> None:
        if outcome.script_id is None:
            return
        coro = self.bridge.report_run(outcome.script_id, outcome.ok, outcome.error)
        task = asyncio.get_running_loop().create_task(self._deliver(coro, outcome))
        self._report_tasks.add(task)
        task.add_done_callback(self._report_tasks.discard)

    @staticmethod
    async def _deliver(coro: Awaitable[None], outcome: RunOutcome) -> None:
        try:
            await coro
        except Exception as e:
            logger.warning(f"[Driver] Run report for script {outcome.script_id} lost: {e}")

    # ------------------------------------------------------------------
    # Waiting / shutdown
    # ------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Resolve once the document-idle phase has finished (or failed)."""
        await self._idle_done.wait()

    async def flush(self) -> None:
        """Wait for queued phases, run reports and relayed requests."""
        while self._phase_tasks or self._report_tasks:
            await asyncio.gather(*list(self._phase_tasks | self._report_tasks), return_exceptions=True)
        await self.relay.drain()

    async def close(self) -> None:
        await self.flush()
        await self.relay.aclose()


def attach(
    document: PageDocument,
    bridge: EngineBridge,
    config: Optional[UsmConfig] = None,
    storage: Optional[OriginStorage] = None,
    relay: Optional[NetworkRelay] = None,
) -> PageSession:
    """
    Attach the engine to a page instance and fire document-start.

    Must be called from a running event loop. A second call for the same
    document is a no-op that returns the existing session.
    """
    if document.engine_session is not None:
        logger.debug(f"[Driver] Already attached to {document.url}")
        return document.engine_session

    session = PageSession(document, bridge, config=config, storage=storage, relay=relay)
    document.engine_session = session
    session.start()
    return session
