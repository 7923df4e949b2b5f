"""
Unit tests for the page lifecycle driver.
"""
from typing import List, Optional

import pytest

from usmcore.base.exceptions import CollaboratorUnavailableError
from usmcore.bridge.local import EngineBridge, LocalBridge
from usmcore.catalog.models import Script, Settings
from usmcore.catalog.store import InMemoryCatalogStore
from usmcore.page.document import COMPLETE, PageDocument
from usmcore.page.driver import attach
from usmcore.sandbox.storage import OriginStorage

URL = "https://www.example.com/article"


class _RecordingBridge(EngineBridge):
    """Serves a fixed batch per phase and remembers what was asked."""

    def __init__(self, batches=None, fail=False):
        self.batches = batches or {}
        self.fail = fail
        self.requests: List[str] = []
        self.reports: List[tuple] = []

    async def select_for_phase(self, url: str, phase: str) -> List[Script]:
        self.requests.append(phase)
        if self.fail:
            raise CollaboratorUnavailableError("catalog offline")
        return list(self.batches.get(phase, []))

    async def report_run(self, script_id: int, ok: bool, error: Optional[str] = None) -> None:
        self.reports.append((script_id, ok, error))


async def _load_fully(document: PageDocument, bridge: EngineBridge):
    session = attach(document, bridge, storage=OriginStorage())
    document.finish_parsing()
    document.finish_loading()
    await session.wait_idle()
    await session.close()
    return session


class TestPhases:

    @pytest.mark.asyncio
    async def test_three_phases_in_order(self):
        bridge = _RecordingBridge()
        session = await _load_fully(PageDocument(URL), bridge)
        assert bridge.requests == ["document-start", "document-end", "document-idle"]
        assert session.phases_requested == bridge.requests

    @pytest.mark.asyncio
    async def test_document_start_fires_on_attach(self):
        bridge = _RecordingBridge()
        document = PageDocument(URL)
        session = attach(document, bridge)
        await session.flush()
        assert bridge.requests == ["document-start"]
        await session.close()

    @pytest.mark.asyncio
    async def test_already_complete_document(self):
        bridge = _RecordingBridge()
        document = PageDocument(URL, ready_state=COMPLETE)
        session = attach(document, bridge)
        await session.wait_idle()
        await session.close()
        assert bridge.requests == ["document-start", "document-end", "document-idle"]

    @pytest.mark.asyncio
    async def test_double_attach_is_a_no_op(self):
        bridge = _RecordingBridge()
        document = PageDocument(URL)
        first = attach(document, bridge)
        second = attach(document, bridge)
        assert first is second
        document.finish_loading()
        await first.wait_idle()
        await first.close()
        assert bridge.requests.count("document-start") == 1
        assert len(bridge.requests) == 3

    @pytest.mark.asyncio
    async def test_fail_closed(self):
        bridge = _RecordingBridge(fail=True)
        document = PageDocument(URL)
        session = await _load_fully(document, bridge)
        assert len(bridge.requests) == 3
        assert session.run_count == 0
        assert session.outcomes == []
        assert document.indicator.render() == ""


class TestRuns:

    @pytest.mark.asyncio
    async def test_document_end_script_runs_at_end_and_idle(self):
        """End-phase scripts are admitted again at idle, so they run twice."""
        script = Script(id=1, name="twice", code="GM_addStyle('b { font-weight: 700 }')")
        store = InMemoryCatalogStore([script])
        document = PageDocument(URL)
        session = await _load_fully(document, LocalBridge(store))

        assert session.run_count == 2
        assert len(document.styles) == 2
        assert document.indicator.text == "MiniUSM: 2"
        records = await store.get_run_records()
        assert records[1].last_error is None
        assert records[1].last_run_time is not None

    @pytest.mark.asyncio
    async def test_failures_are_reported_not_counted(self):
        batches = {
            "document-start": [Script(id=1, name="bad", code="raise RuntimeError('nope')", run_at="document-start")],
            "document-idle": [Script(id=2, name="good", code="pass", run_at="document-idle")],
        }
        bridge = _RecordingBridge(batches)
        document = PageDocument(URL)
        session = await _load_fully(document, bridge)

        assert session.run_count == 1
        assert sorted(bridge.reports) == [(1, False, "RuntimeError: nope"), (2, True, None)]
        assert document.indicator.text == "MiniUSM: 1"

    @pytest.mark.asyncio
    async def test_safe_mode_runs_nothing(self):
        store = InMemoryCatalogStore([Script(id=1, code="pass")], Settings(safe_mode=True))
        session = await _load_fully(PageDocument(URL), LocalBridge(store))
        assert session.run_count == 0
        assert await store.get_run_records() == {}

    @pytest.mark.asyncio
    async def test_scripts_share_values_across_phases(self):
        counter = "GM_setValue('n', GM_getValue('n', 0) + 1)"
        store = InMemoryCatalogStore([Script(id=4, code=counter)])
        storage = OriginStorage()
        document = PageDocument(URL)
        session = attach(document, LocalBridge(store), storage=storage)
        document.finish_loading()
        await session.wait_idle()
        await session.close()
        assert storage.get_item("https://www.example.com", "musp_4_n") == "2"


class TestIndicator:

    @pytest.mark.asyncio
    async def test_dismissed_badge_stays_hidden(self):
        script = Script(id=1, code="pass")
        document = PageDocument(URL)
        session = attach(document, LocalBridge(InMemoryCatalogStore([script])), storage=OriginStorage())
        document.finish_parsing()
        await session.flush()
        assert document.indicator.visible

        document.indicator.dismiss()
        document.finish_loading()
        await session.wait_idle()
        await session.close()

        assert session.run_count == 2
        assert document.indicator.count == 2
        assert document.indicator.render() == ""

    @pytest.mark.asyncio
    async def test_render_splices_styles_and_badge(self):
        script = Script(id=1, code="GM_addStyle('h1 { color: teal }')")
        document = PageDocument(URL)
        await _load_fully(document, LocalBridge(InMemoryCatalogStore([script])))

        html = document.render("<html><head><title>t</title></head><body><h1>x</h1></body></html>")
        head, body = html.split("</head>")
        assert "h1 { color: teal }" in head
        assert 'id="miniUSM-badge"' in body
        assert body.index("MiniUSM: 2") < body.index("</body>")
