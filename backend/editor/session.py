from __future__ import annotations

"""
Editor-side consumer of the enhancement relay stream.

Design intent:
- One live session per editor context; a new start tears the previous one down.
- Network arrival only grows the buffer; the animator owns the reveal pace.
- Every terminal path (close, error, timeout) keeps the partial output.
"""

import asyncio
import contextlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Literal

from backend.editor.event_source import EventConnection
from backend.editor.events import RelayMessage, decode_relay_message
from backend.editor.notices import NoticeBoard
from backend.editor.reveal import (
    FINISH_DELAY_MS,
    AsyncioTimers,
    EnhancementAccumulator,
    RevealRenderer,
    ScrollLatch,
    TextRenderer,
    TimerHandle,
    TimerScheduler,
    TypingAnimator,
)
from backend.enhance.models import (
    EnhancementResult,
    ensure_enhanceable_content,
    resolve_typing_delay_ms,
)
from backend.enhance.provider import ProviderError

logger = logging.getLogger(__name__)

SessionStatus = Literal["streaming", "completed", "failed", "timed_out", "cancelled"]

INSTANT_REVEAL_CHARS = 1000
DEFAULT_SESSION_TIMEOUT_SEC = 60.0
TIMEOUT_MESSAGE = "Enhancement timed out. Please try again."

ConnectFn = Callable[[str, str], EventConnection]


@dataclass
class EnhancementSession:
    action: str
    typing_speed: str
    connection: EventConnection
    accumulator: EnhancementAccumulator
    animator: TypingAnimator
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.monotonic)
    status: SessionStatus = "streaming"
    loading: bool = True
    error: str | None = None
    chunks_received: int = 0
    pump_task: asyncio.Task | None = None
    timeout_handle: TimerHandle | None = None

    @property
    def finished(self) -> bool:
        return self.status != "streaming"

    @property
    def final_text(self) -> str:
        return self.accumulator.complete_buffer

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


class EnhancementConsumer:
    def __init__(
        self,
        connect: ConnectFn,
        *,
        timers: TimerScheduler | None = None,
        renderer: RevealRenderer | None = None,
        notices: NoticeBoard | None = None,
        session_timeout_sec: float = DEFAULT_SESSION_TIMEOUT_SEC,
    ) -> None:
        self._connect = connect
        self._timers = timers or AsyncioTimers()
        self.renderer = renderer or TextRenderer()
        self.notices = notices or NoticeBoard()
        self.scroll_latch = ScrollLatch()
        self._session_timeout_sec = float(session_timeout_sec)
        self.session: EnhancementSession | None = None
        self._start_lock = asyncio.Lock()

    @property
    def loading(self) -> bool:
        return self.session is not None and self.session.loading

    async def start(self, action: str, content: str, typing_speed: str = "medium") -> EnhancementSession:
        ensure_enhanceable_content(content)
        async with self._start_lock:
            await self.cancel()
            return self._open_session(action, typing_speed)

    def _open_session(self, action: str, typing_speed: str) -> EnhancementSession:
        self.scroll_latch.reset()
        accumulator = EnhancementAccumulator(current_delay_ms=resolve_typing_delay_ms(typing_speed))
        animator = TypingAnimator(
            accumulator,
            timers=self._timers,
            renderer=self.renderer,
            scroll_latch=self.scroll_latch,
        )
        self.renderer.render("")
        session = EnhancementSession(
            action=action,
            typing_speed=typing_speed,
            connection=self._connect(action, typing_speed),
            accumulator=accumulator,
            animator=animator,
        )
        self.session = session
        session.timeout_handle = self._timers.call_later(
            self._session_timeout_sec,
            lambda: self._on_timeout(session),
        )
        session.pump_task = asyncio.get_running_loop().create_task(self._pump(session))
        logger.info(
            "enhance_session_start session_id=%s action=%s typing_speed=%s",
            session.session_id,
            action,
            typing_speed,
        )
        return session

    async def wait_closed(self) -> None:
        session = self.session
        if session is not None and session.pump_task is not None:
            await asyncio.wait({session.pump_task})

    async def cancel(self) -> None:
        session = self.session
        if session is None:
            return
        if not session.finished:
            session.status = "cancelled"
            session.loading = False
            logger.info("enhance_session_cancelled session_id=%s", session.session_id)
        self._teardown(session)
        await self.wait_closed()

    async def aclose(self) -> None:
        await self.cancel()
        self.session = None

    def outcome(self) -> EnhancementResult | None:
        session = self.session
        if session is None or not session.finished or session.status == "cancelled":
            return None
        if not session.final_text.strip():
            return None
        return EnhancementResult.from_text(session.action, session.final_text)

    def _teardown(self, session: EnhancementSession) -> None:
        session.animator.stop()
        self._clear_timeout(session)
        if session.pump_task is not None and not session.pump_task.done():
            session.pump_task.cancel()

    def _clear_timeout(self, session: EnhancementSession) -> None:
        if session.timeout_handle is not None:
            session.timeout_handle.cancel()
            session.timeout_handle = None

    async def _pump(self, session: EnhancementSession) -> None:
        try:
            async with contextlib.aclosing(session.connection.events()) as events:
                async for sse in events:
                    if session.finished:
                        return
                    message = decode_relay_message(sse)
                    if message is None:
                        continue
                    if message.kind == "close":
                        self._on_close(session)
                        return
                    if message.kind == "error":
                        self._on_error_message(session, message)
                    else:
                        self._on_chunk(session, message)
        except ProviderError as exc:
            self._fail(session, str(exc), status="failed")
            return
        if not session.finished:
            self._fail(session, "Connection closed before the enhancement finished.", status="failed")

    def _on_chunk(self, session: EnhancementSession, message: RelayMessage) -> None:
        acc = session.accumulator
        acc.append(message.chunk)
        session.chunks_received += 1
        if message.typing_delay_ms is not None:
            acc.current_delay_ms = message.typing_delay_ms
        acc.catch_up()
        session.animator.notify()

    def _on_error_message(self, session: EnhancementSession, message: RelayMessage) -> None:
        session.error = message.error
        logger.warning(
            "enhance_session_provider_error session_id=%s received_chars=%s error=%s",
            session.session_id,
            len(session.final_text),
            message.error,
        )

    def _on_close(self, session: EnhancementSession) -> None:
        self._clear_timeout(session)
        session.loading = False
        acc = session.accumulator
        if session.error:
            session.status = "failed"
            self.notices.post("error", f"Enhancement failed: {session.error}. Please try again.")
            session.animator.reveal_all()
        else:
            session.status = "completed"
            if len(acc.complete_buffer) > INSTANT_REVEAL_CHARS:
                session.animator.reveal_all()
            else:
                acc.current_delay_ms = FINISH_DELAY_MS
                session.animator.notify()
        logger.info(
            "enhance_session_closed session_id=%s status=%s chunks=%s chars=%s elapsed_ms=%s",
            session.session_id,
            session.status,
            session.chunks_received,
            len(acc.complete_buffer),
            session.elapsed_ms(),
        )

    def _fail(self, session: EnhancementSession, message: str, *, status: SessionStatus) -> None:
        if session.finished:
            return
        session.status = status
        session.loading = False
        session.error = session.error or message
        self._clear_timeout(session)
        session.animator.reveal_all()
        if status == "timed_out":
            self.notices.post("error", TIMEOUT_MESSAGE)
        else:
            self.notices.post("error", f"Enhancement failed: {message}. Please try again.")
        logger.warning(
            "enhance_session_failed session_id=%s status=%s kept_chars=%s elapsed_ms=%s error=%s",
            session.session_id,
            status,
            len(session.final_text),
            session.elapsed_ms(),
            message,
        )

    def _on_timeout(self, session: EnhancementSession) -> None:
        session.timeout_handle = None
        if session.finished:
            return
        self._fail(session, TIMEOUT_MESSAGE, status="timed_out")
        if session.pump_task is not None and not session.pump_task.done():
            session.pump_task.cancel()
