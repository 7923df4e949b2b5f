"""
usmcore/proxy/addon.py
The Userscript Proxy: runs userscripts against HTML pages in transit.

    Browser  <->  mitmproxy + UserscriptAddon  <->  Website

For every HTML response to a GET on an http(s) URL the addon builds a page
instance, attaches the engine, walks it through its full lifecycle
(start -> DOMContentLoaded -> load) and writes the document back with the
injected styles and the run indicator spliced in. Anything that goes wrong
leaves the original response untouched.
"""

import asyncio
import logging
from typing import Optional, Set

from mitmproxy import http, options
from mitmproxy.tools.dump import DumpMaster

from usmcore.base.config import UsmConfig, get_config
from usmcore.bridge.local import EngineBridge
from usmcore.page.document import PageDocument
from usmcore.page.driver import PageSession, attach
from usmcore.sandbox.storage import OriginStorage
from usmcore.schedule.selector import is_web_url

logger = logging.getLogger(__name__)

RUNS_HEADER = "X-MiniUSM-Runs"


class UserscriptAddon:
    """mitmproxy addon that hosts one page instance per HTML response."""

    def __init__(
        self,
        bridge: EngineBridge,
        config: Optional[UsmConfig] = None,
        storage: Optional[OriginStorage] = None,
    ):
        self.bridge = bridge
        self.config = config or get_config()
        self.storage = storage
        self._closing: Set[asyncio.Task] = set()

    def should_process(self, flow: http.HTTPFlow) -> bool:
        if flow.response is None or flow.request.method != "GET":
            return False
        if not is_web_url(flow.request.pretty_url):
            return False
        content_type = flow.response.headers.get("content-type", "")
        if "text/html" not in content_type.lower():
            return False
        content = flow.response.content or b""
        return len(content) <= self.config.proxy.max_document_bytes

    async def response(self, flow: http.HTTPFlow):
        """Mitmproxy async hook, called for every response."""
        if not self.should_process(flow):
            return

        try:
            original = flow.response.text or ""
            document = PageDocument(
                url=flow.request.pretty_url,
                cookies=dict(flow.request.cookies),
            )
            session = attach(document, self.bridge, config=self.config, storage=self.storage)
            document.finish_parsing()
            document.finish_loading()
            await session.wait_idle()

            flow.response.text = document.render(original)
            flow.response.headers[RUNS_HEADER] = str(session.run_count)
            self._close_later(session)
        except Exception as e:
            logger.error(f"[Proxy] Userscripts skipped for {flow.request.pretty_url}: {e}")

    def _close_later(self, session: PageSession) -> None:
        # Relayed requests may outlive the response; let them finish in the background
        task = asyncio.get_running_loop().create_task(session.close())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def done(self):
        """Mitmproxy shutdown hook."""
        if self._closing:
            await asyncio.gather(*list(self._closing), return_exceptions=True)
        await self.bridge.aclose()


class UserscriptProxy:
    """Manages the background mitmproxy instance."""

    def __init__(self, bridge: EngineBridge, config: Optional[UsmConfig] = None):
        self.config = config or get_config()
        self.bridge = bridge
        self.host = self.config.proxy.listen_host
        self.port = self.config.proxy.listen_port or self._find_free_port()
        self.master: Optional[DumpMaster] = None
        self._task: Optional[asyncio.Task] = None

    @staticmethod
    def _find_free_port() -> int:
        import socket
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            s.listen(1)
            return s.getsockname()[1]

    async def start(self):
        opts = options.Options(listen_host=self.host, listen_port=self.port)
        self.master = DumpMaster(opts, with_termlog=False, with_dumper=False)
        self.master.addons.add(UserscriptAddon(self.bridge, config=self.config))
        logger.info(f"[Proxy] Userscript proxy listening on {self.host}:{self.port}")
        self._task = asyncio.create_task(self._run_master())

    async def _run_master(self):
        try:
            await self.master.run()
        except Exception as e:
            logger.error(f"[Proxy] Proxy error: {e}")

    async def wait(self):
        if self._task is not None:
            await self._task

    def stop(self):
        if self.master:
            self.master.shutdown()
        if self._task and not self._task.done():
            self._task.cancel()
        logger.info("[Proxy] Userscript proxy stopped")
