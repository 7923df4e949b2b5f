"""
usmcore/sandbox/relay.py
NetworkRelay: HTTP requests made on behalf of scripts (GM_xmlhttpRequest).

Design:
  - Fire-and-forget. request() schedules an asyncio task and returns at once,
    so a script invocation is classified before its requests finish.
  - Credentials: non-anonymous requests go through a client sharing the page's
    cookie jar; anonymous requests go through a client with no cookies.
  - Results only ever reach the script's own callbacks:
        onload(response_dict)  on any HTTP response (any status)
        onerror(exception)     on transport failure
    Anything those callbacks raise is logged and dropped.
  - No timeout: a request runs until it completes or the network fails.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Set

import httpx

from usmcore.base.config import RelayConfig, get_config

logger = logging.getLogger(__name__)


def render_headers(headers: httpx.Headers) -> str:
    """Every header as "name: value", one per line."""
    return "\n".join(f"{name}: {value}" for name, value in headers.items())


def response_payload(response: httpx.Response) -> Dict[str, Any]:
    return {
        "finalUrl": str(response.url),
        "status": response.status_code,
        "statusText": response.reason_phrase,
        "responseText": response.text,
        "responseHeaders": render_headers(response.headers),
    }


def _request_body(method: str, data: Any) -> Optional[bytes]:
    if method == "GET" or data is None:
        return None
    if isinstance(data, bytes):
        return data
    if isinstance(data, str):
        return data.encode("utf-8")
    return json.dumps(data).encode("utf-8")


class NetworkRelay:
    """One relay per page instance."""

    def __init__(
        self,
        cookies: Optional[Mapping[str, str]] = None,
        config: Optional[RelayConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or get_config().relay
        self._cookies = httpx.Cookies(dict(cookies or {}))
        self._transport = transport
        self._credentialed: Optional[httpx.AsyncClient] = None
        self._anonymous: Optional[httpx.AsyncClient] = None
        self._tasks: Set[asyncio.Task] = set()

    def _client(self, anonymous: bool) -> httpx.AsyncClient:
        if anonymous:
            if self._anonymous is None:
                self._anonymous = self._make_client(cookies=None)
            return self._anonymous
        if self._credentialed is None:
            self._credentialed = self._make_client(cookies=self._cookies)
        return self._credentialed

    def _make_client(self, cookies: Optional[httpx.Cookies]) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            cookies=cookies,
            headers={"User-Agent": self.config.user_agent},
            verify=self.config.verify_tls,
            follow_redirects=self.config.follow_redirects,
            timeout=None,
            transport=self._transport,
        )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def request(self, details: Mapping[str, Any]) -> None:
        """Schedule one request described by a GM_xmlhttpRequest details mapping."""
        if not isinstance(details, Mapping):
            raise TypeError("GM_xmlhttpRequest expects a dict of request details")
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._perform(dict(details)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _perform(self, details: Dict[str, Any]) -> None:
        onload: Optional[Callable[[Dict[str, Any]], Any]] = details.get("onload")
        onerror: Optional[Callable[[BaseException], Any]] = details.get("onerror")

        method = str(details.get("method") or "GET").upper()
        url = details.get("url")
        try:
            headers = {str(k): str(v) for k, v in dict(details.get("headers") or {}).items()}
            client = self._client(bool(details.get("anonymous")))
            response = await client.request(
                method,
                str(url),
                headers=headers,
                content=_request_body(method, details.get("data")),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"[Relay] {method} {url} failed: {e}")
            self._callback("onerror", onerror, e)
            return

        logger.debug(f"[Relay] {method} {url} -> {response.status_code}")
        self._callback("onload", onload, response_payload(response))

    @staticmethod
    def _callback(name: str, callback: Optional[Callable[[Any], Any]], arg: Any) -> None:
        if not callable(callback):
            return
        try:
            callback(arg)
        except Exception as e:
            # Belongs to nobody: the script invocation finished long ago
            logger.warning(f"[Relay] {name} callback raised {type(e).__name__}: {e}")

    async def drain(self) -> None:
        """Wait for every scheduled request (and its callback) to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        for client in (self._credentialed, self._anonymous):
            if client is not None:
                await client.aclose()
        self._credentialed = None
        self._anonymous = None
