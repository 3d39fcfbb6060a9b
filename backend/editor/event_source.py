from __future__ import annotations

import logging
from typing import AsyncIterator, Protocol

import httpx

from backend.editor.events import ServerSentEvent, aiter_sse_events
from backend.enhance.provider import ProviderError

logger = logging.getLogger(__name__)


class EventConnection(Protocol):
    closed: bool

    def events(self) -> AsyncIterator[ServerSentEvent]:
        ...


class HttpEventSource:
    """Long-lived GET connection to the enhancement relay."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._http_client = http_client
        self.url = url
        self.params = dict(params or {})
        self.headers = {"Accept": "text/event-stream", **dict(headers or {})}
        self.opened = False
        self.closed = False

    async def events(self) -> AsyncIterator[ServerSentEvent]:
        if self.opened:
            raise RuntimeError("HttpEventSource can only be opened once")
        self.opened = True
        try:
            async with self._http_client.stream(
                "GET",
                self.url,
                params=self.params,
                headers=self.headers,
            ) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise ProviderError(
                        f"Enhancement stream rejected with HTTP {response.status_code}: {body[:200]}",
                        status_code=response.status_code,
                    )
                async for sse in aiter_sse_events(response.aiter_lines()):
                    yield sse
        except httpx.HTTPError as exc:
            logger.warning("enhance_connection_failed url=%s error=%s", self.url, exc)
            raise ProviderError(f"Enhancement stream connection failed: {exc}") from exc
        finally:
            self.closed = True
