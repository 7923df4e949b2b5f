"""
The capability object handed to one script.

Exactly four functions, closed over the script id and the page:

    GM_addStyle(css)               -> StyleNode appended to the page
    GM_getValue(key, default=None) -> scoped, JSON-decoded value or default
    GM_setValue(key, value)        -> scoped JSON write; failures are swallowed
    GM_xmlhttpRequest(details)     -> fire-and-forget request via the relay

Plain closures rather than bound methods, so there is no `__self__` path back
to the page or the relay.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from usmcore.page.document import PageDocument, StyleNode
from usmcore.sandbox.relay import NetworkRelay
from usmcore.sandbox.storage import ScopedValueStore


@dataclass(frozen=True)
class CapabilitySet:
    script_id: Optional[int]
    GM_addStyle: Callable[[str], StyleNode]
    GM_getValue: Callable[..., Any]
    GM_setValue: Callable[[Any, Any], None]
    GM_xmlhttpRequest: Callable[[Mapping[str, Any]], None]

    def as_kwargs(self) -> Dict[str, Callable[..., Any]]:
        return {
            "GM_addStyle": self.GM_addStyle,
            "GM_getValue": self.GM_getValue,
            "GM_setValue": self.GM_setValue,
            "GM_xmlhttpRequest": self.GM_xmlhttpRequest,
        }


def build_capabilities(
    script_id: Optional[int],
    page: PageDocument,
    values: ScopedValueStore,
    relay: NetworkRelay,
) -> CapabilitySet:
    def GM_addStyle(css: str) -> StyleNode:
        return page.append_style(css, owner_script_id=script_id)

    def GM_getValue(key: Any, default: Any = None) -> Any:
        return values.get(key, default)

    def GM_setValue(key: Any, value: Any) -> None:
        values.set(key, value)

    def GM_xmlhttpRequest(details: Mapping[str, Any]) -> None:
        relay.request(details)

    return CapabilitySet(
        script_id=script_id,
        GM_addStyle=GM_addStyle,
        GM_getValue=GM_getValue,
        GM_setValue=GM_setValue,
        GM_xmlhttpRequest=GM_xmlhttpRequest,
    )
