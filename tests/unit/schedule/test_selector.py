"""
Unit tests for the script selector.
"""
from unittest.mock import AsyncMock

import pytest

from usmcore.base.exceptions import CollaboratorUnavailableError
from usmcore.catalog.models import Script, Settings
from usmcore.catalog.store import InMemoryCatalogStore
from usmcore.schedule.selector import ScriptSelector, is_web_url, normalize_host

URL = "https://www.example.com/page"


def _scripts():
    return [
        Script(id=1, name="start", code="pass", matches=["*://*.example.com/*"], run_at="document-start"),
        Script(id=2, name="end", code="pass", matches=["*://*.example.com/*"], run_at="document-end"),
        Script(id=3, name="idle", code="pass", matches=["*://*.example.com/*"], run_at="document-idle"),
        Script(id=4, name="default", code="pass", matches=["*://*.example.com/*"]),
        Script(id=5, name="off", code="pass", enabled=False),
        Script(id=6, name="empty", code=""),
        Script(id=7, name="elsewhere", code="pass", matches=["https://other.test/*"]),
    ]


def _selector(scripts=None, settings=None) -> ScriptSelector:
    return ScriptSelector(InMemoryCatalogStore(scripts if scripts is not None else _scripts(), settings))


class TestHosts:

    def test_normalize_host(self):
        assert normalize_host("https://WWW.Example.COM/x") == "example.com"
        assert normalize_host("https://www.www.example.com/") == "www.example.com"
        assert normalize_host("not a url") == ""

    def test_is_web_url(self):
        assert is_web_url("http://a.test/")
        assert is_web_url("HTTPS://a.test/")
        assert not is_web_url("chrome://settings")
        assert not is_web_url("file:///etc/hosts")
        assert not is_web_url(None)


class TestSelect:

    @pytest.mark.asyncio
    async def test_batches_per_phase(self):
        selector = _selector()
        start = await selector.select(URL, "document-start")
        end = await selector.select(URL, "document-end")
        idle = await selector.select(URL, "document-idle")
        assert [s.id for s in start] == [1]
        assert [s.id for s in end] == [2, 4]
        assert [s.id for s in idle] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_catalog_order_is_kept(self):
        scripts = [
            Script(id=9, name="b", code="pass"),
            Script(id=2, name="a", code="pass"),
        ]
        batch = await _selector(scripts).select(URL, "document-end")
        assert [s.id for s in batch] == [9, 2]

    @pytest.mark.asyncio
    async def test_non_web_url_selects_nothing(self):
        store = InMemoryCatalogStore(_scripts())
        store.get_catalog = AsyncMock(side_effect=AssertionError("catalog must not be read"))
        assert await ScriptSelector(store).select("chrome://extensions", "document-end") == []

    @pytest.mark.asyncio
    async def test_safe_mode_selects_nothing(self):
        selector = _selector(settings=Settings(safe_mode=True))
        for phase in ("document-start", "document-end", "document-idle"):
            assert await selector.select(URL, phase) == []

    @pytest.mark.asyncio
    async def test_paused_host_ignores_www_and_case(self):
        selector = _selector(settings=Settings(script_disabled_hosts=["Example.com"]))
        assert await selector.select(URL, "document-end") == []
        assert await selector.select("https://example.com/", "document-end") == []

    @pytest.mark.asyncio
    async def test_pause_is_per_host(self):
        selector = _selector(settings=Settings(script_disabled_hosts=["other.test"]))
        assert [s.id for s in await selector.select(URL, "document-end")] == [2, 4]

    @pytest.mark.asyncio
    async def test_unknown_phase_selects_nothing(self):
        assert await _selector().select(URL, "document-never") == []

    @pytest.mark.asyncio
    async def test_catalog_failure_is_collaborator_error(self):
        store = InMemoryCatalogStore()
        store.get_catalog = AsyncMock(side_effect=RuntimeError("disk gone"))
        with pytest.raises(CollaboratorUnavailableError, match="disk gone"):
            await ScriptSelector(store).select(URL, "document-end")

    @pytest.mark.asyncio
    async def test_match_include_exclude_scenario(self):
        """A script matched by @match, narrowed by @exclude, reached via @include."""
        scripts = [
            Script(
                id=1,
                name="news",
                code="pass",
                matches=["https://news.test/*"],
                includes=["https://mirror.test/news/*"],
                excludes=["*/login*"],
                run_at="document-idle",
            ),
        ]
        selector = _selector(scripts)
        assert [s.id for s in await selector.select("https://news.test/today", "document-idle")] == [1]
        assert [s.id for s in await selector.select("https://mirror.test/news/1", "document-idle")] == [1]
        assert await selector.select("https://news.test/login?next=/", "document-idle") == []
        assert await selector.select("https://news.test/today", "document-end") == []


class TestExplain:

    @pytest.mark.asyncio
    async def test_notes(self):
        verdicts = {v.script.id: v for v in await _selector().explain(URL)}
        assert verdicts[1].runnable
        assert verdicts[5].note == "disabled" and not verdicts[5].runnable
        assert verdicts[6].note == "no code" and not verdicts[6].runnable
        assert not verdicts[7].decision.eligible and not verdicts[7].runnable

    @pytest.mark.asyncio
    async def test_safe_mode_note(self):
        verdicts = await _selector(settings=Settings(safe_mode=True)).explain(URL)
        assert all(not v.runnable for v in verdicts)
        assert verdicts[0].note == "safe mode is on"

    @pytest.mark.asyncio
    async def test_paused_note(self):
        verdicts = await _selector(settings=Settings(script_disabled_hosts=["example.com"])).explain(URL)
        assert verdicts[0].note == "scripts paused on example.com"
