from __future__ import annotations

"""
Parse the relay's `text/event-stream` wire format on the editor side.

Design intent:
- Decode line-by-line so partial network reads never produce half events.
- Keep relay payload interpretation (content/error/close) in one place.
- Ignore malformed payloads instead of aborting the session.
"""

import json
import logging
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, Literal

logger = logging.getLogger(__name__)

RelayMessageKind = Literal["content", "error", "close"]


@dataclass(frozen=True)
class ServerSentEvent:
    event: str = "message"
    data: str = ""


@dataclass(frozen=True)
class RelayMessage:
    kind: RelayMessageKind
    chunk: str = ""
    typing_delay_ms: int | None = None
    error: str | None = None


class SSEDecoder:
    def __init__(self) -> None:
        self._event = ""
        self._data: list[str] = []

    def decode(self, line: str) -> ServerSentEvent | None:
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        # id and retry are not used by the relay.
        return None

    def _dispatch(self) -> ServerSentEvent | None:
        if not self._event and not self._data:
            return None
        if not self._data:
            # Events without data lines are dropped.
            self._event = ""
            return None
        sse = ServerSentEvent(
            event=self._event or "message",
            data="\n".join(self._data),
        )
        self._event = ""
        self._data = []
        return sse


def iter_sse_events(lines: Iterable[str]) -> Iterator[ServerSentEvent]:
    decoder = SSEDecoder()
    for line in lines:
        sse = decoder.decode(line)
        if sse is not None:
            yield sse


async def aiter_sse_events(lines: AsyncIterable[str]) -> AsyncIterator[ServerSentEvent]:
    decoder = SSEDecoder()
    async for line in lines:
        sse = decoder.decode(line)
        if sse is not None:
            yield sse


def _coerce_delay(raw: object) -> int | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    value = int(raw)
    return value if value > 0 else None


def decode_relay_message(sse: ServerSentEvent) -> RelayMessage | None:
    if sse.event == "close":
        return RelayMessage(kind="close")

    try:
        payload = json.loads(sse.data)
    except json.JSONDecodeError:
        logger.debug("relay_event_unparseable data=%s", sse.data[:100])
        return None
    if not isinstance(payload, dict):
        logger.debug("relay_event_unexpected_shape data=%s", sse.data[:100])
        return None

    chunk = payload.get("chunk")
    chunk = chunk if isinstance(chunk, str) else ""
    delay = _coerce_delay(payload.get("typingDelayMs"))

    error = payload.get("error")
    if error:
        return RelayMessage(kind="error", chunk=chunk, typing_delay_ms=delay, error=str(error))
    if not chunk:
        return None
    return RelayMessage(kind="content", chunk=chunk, typing_delay_ms=delay)
