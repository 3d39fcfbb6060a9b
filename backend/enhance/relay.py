from __future__ import annotations

"""
Relay provider fragments to the browser as Server-Sent Events.

Design intent:
- One provider fragment becomes exactly one flushed content event.
- A terminal `close` event is always emitted, also after a provider failure.
- Provider failures surface as an error-bearing fragment, never as a dropped stream.
"""

import json
import logging
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Callable

from backend.enhance.models import EnhancementChunk
from backend.enhance.provider import ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)

SSE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
SSE_MEDIA_TYPE = "text/event-stream"
CLOSE_EVENT = "close"


class RelayState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


def format_sse_event(data: dict[str, Any], *, event: str | None = None) -> str:
    lines = []
    if event:
        lines.append(f"event: {event}")
    lines.append("data: " + json.dumps(data, ensure_ascii=False))
    return "\n".join(lines) + "\n\n"


def close_frame() -> str:
    return format_sse_event({"done": True}, event=CLOSE_EVENT)


def _sanitize_detail(detail: str) -> str:
    detail = (detail or "").replace("\n", " ").strip()
    if len(detail) > 200:
        detail = detail[:200] + "..."
    return detail


class EnhancementRelay:
    def __init__(
        self,
        fragments: AsyncIterable[str],
        *,
        typing_delay_ms: int,
        on_state_change: Callable[[RelayState], None] | None = None,
        log_context: dict[str, Any] | None = None,
    ) -> None:
        self._fragments = fragments
        self._typing_delay_ms = int(typing_delay_ms)
        self._on_state_change = on_state_change
        self._log_context = dict(log_context or {})
        self.state = RelayState.IDLE
        self.chunks_sent = 0
        self.chars_sent = 0
        self.error: str | None = None

    def _set_state(self, state: RelayState) -> None:
        self.state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _content_frame(self, text: str) -> str:
        chunk = EnhancementChunk(text=text, suggested_delay_ms=self._typing_delay_ms)
        return format_sse_event(chunk.to_wire())

    async def events(self) -> AsyncIterator[str]:
        if self.state is not RelayState.IDLE:
            raise RuntimeError(f"Relay already consumed (state={self.state.value})")
        try:
            async for fragment in self._fragments:
                if not fragment:
                    continue
                if self.state is RelayState.IDLE:
                    self._set_state(RelayState.STREAMING)
                self.chunks_sent += 1
                self.chars_sent += len(fragment)
                yield self._content_frame(fragment)
        except ProviderError as exc:
            message = _sanitize_detail(str(exc))
            self.error = message
            self._set_state(RelayState.FAILED)
            logger.error(
                "enhance_stream_failed kind=%s context=%s chunks_sent=%s partial_chars=%s error=%s",
                "timeout" if isinstance(exc, ProviderTimeout) else "provider",
                self._log_context,
                self.chunks_sent,
                len(exc.partial_text or ""),
                message,
            )
            payload = EnhancementChunk(
                text=f"\nError: {message}\n",
                suggested_delay_ms=self._typing_delay_ms,
            ).to_wire()
            payload["error"] = message
            yield format_sse_event(payload)
            yield close_frame()
            return

        self._set_state(RelayState.CLOSING)
        yield close_frame()
        self._set_state(RelayState.CLOSED)
        logger.info(
            "enhance_stream_closed context=%s chunks_sent=%s chars_sent=%s",
            self._log_context,
            self.chunks_sent,
            self.chars_sent,
        )
