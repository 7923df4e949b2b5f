"""
usmcore/page/document.py
The page model the engine runs against.

A PageDocument is one page instance: its URL, its load state, the style nodes
scripts have injected, the page's cookies (ambient credentials for the network
relay), and the run indicator. Hosts drive its lifecycle:

    doc = PageDocument("https://example.com/")      # ready_state "loading"
    attach(doc, bridge)                             # document-start fires
    doc.finish_parsing()                            # DOMContentLoaded -> document-end
    doc.finish_loading()                            # load -> document-idle

render() splices the injected styles and the indicator into an HTML string so
a proxy host can hand the modified page to the browser.
"""

from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from usmcore.page.indicator import RunIndicator

logger = logging.getLogger(__name__)

LOADING = "loading"
INTERACTIVE = "interactive"
COMPLETE = "complete"

DOM_CONTENT_LOADED = "DOMContentLoaded"
LOAD = "load"

_node_ids = itertools.count(1)

_HEAD_CLOSE_RE = re.compile(r"</head\s*>", re.IGNORECASE)
_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)
_HTML_CLOSE_RE = re.compile(r"</html\s*>", re.IGNORECASE)


@dataclass
class StyleNode:
    """A <style> element appended by a script. There is no removal API."""

    css: str
    owner_script_id: Optional[int] = None
    node_id: int = field(default_factory=lambda: next(_node_ids))

    def render(self) -> str:
        # Keep the stylesheet from closing its own element early
        css = self.css.replace("</", "<\\/")
        return f'<style data-usm-node="{self.node_id}">{css}</style>'


class PageDocument:
    """One page instance."""

    def __init__(
        self,
        url: str,
        ready_state: str = LOADING,
        cookies: Optional[Dict[str, str]] = None,
        indicator: Optional[RunIndicator] = None,
    ):
        self.url = url
        self.ready_state = ready_state
        self.cookies: Dict[str, str] = dict(cookies or {})
        self.styles: List[StyleNode] = []
        self.indicator = indicator or RunIndicator()
        self.engine_session: Optional[Any] = None   # set once by usmcore.page.driver.attach
        self._listeners: Dict[str, List[Callable[[], Any]]] = {}

    @property
    def origin(self) -> str:
        parsed = urlparse(self.url)
        return f"{parsed.scheme}://{parsed.netloc}".lower()

    # ------------------------------------------------------------------
    # DOM-ish operations
    # ------------------------------------------------------------------

    def append_style(self, css: str, owner_script_id: Optional[int] = None) -> StyleNode:
        node = StyleNode(css=str(css), owner_script_id=owner_script_id)
        self.styles.append(node)
        return node

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def add_event_listener(self, event: str, callback: Callable[[], Any]) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def dispatch_event(self, event: str) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                callback()
            except Exception as e:
                logger.error(f"[Page] {event} listener failed on {self.url}: {e}")

    def finish_parsing(self) -> None:
        """loading -> interactive, fires DOMContentLoaded once."""
        if self.ready_state != LOADING:
            return
        self.ready_state = INTERACTIVE
        self.dispatch_event(DOM_CONTENT_LOADED)

    def finish_loading(self) -> None:
        """-> complete, fires load once (and DOMContentLoaded first if still pending)."""
        if self.ready_state == COMPLETE:
            return
        self.finish_parsing()
        self.ready_state = COMPLETE
        self.dispatch_event(LOAD)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def render(self, html: str) -> str:
        """Return `html` with injected styles before </head> and the indicator before </body>."""
        styles = "".join(node.render() for node in self.styles)
        if styles:
            html = _insert_before(html, _HEAD_CLOSE_RE, styles, prepend_if_missing=True)

        badge = self.indicator.render()
        if badge:
            html = _insert_before(html, _BODY_CLOSE_RE, badge, fallback=_HTML_CLOSE_RE)
        return html


def _insert_before(
    html: str,
    pattern: "re.Pattern[str]",
    fragment: str,
    fallback: Optional["re.Pattern[str]"] = None,
    prepend_if_missing: bool = False,
) -> str:
    found = pattern.search(html)
    if found is None and fallback is not None:
        found = fallback.search(html)
    if found is None:
        return fragment + html if prepend_if_missing else html + fragment
    return html[:found.start()] + fragment + html[found.start():]
