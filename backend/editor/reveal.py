from __future__ import annotations

"""
Typing-style reveal of an enhancement buffer, decoupled from network arrival.

Design intent:
- Reveal at a bounded per-tick rate derived from the current delay tier.
- Cap the unrevealed backlog so the animation never falls far behind.
- Run at most one tick timer per animator; cancellation is explicit.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Protocol

CATCH_UP_TRIGGER_CHARS = 50
CATCH_UP_BACKLOG_CHARS = 30
SCROLL_BOTTOM_TOLERANCE_PX = 10
FINISH_DELAY_MS = 5


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class TimerScheduler(Protocol):
    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioTimers:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, float(delay_sec)), callback)


class RevealRenderer(Protocol):
    def render(self, visible_text: str) -> None:
        ...

    def scroll_to_bottom(self) -> None:
        ...


class TextRenderer:
    """Headless renderer that keeps the last visible text."""

    def __init__(self) -> None:
        self.visible_text = ""
        self.render_count = 0
        self.scroll_count = 0

    def render(self, visible_text: str) -> None:
        self.visible_text = visible_text
        self.render_count += 1

    def scroll_to_bottom(self) -> None:
        self.scroll_count += 1


def chars_per_tick(delay_ms: int) -> int:
    if delay_ms <= 10:
        return 3
    if delay_ms <= 30:
        return 2
    return 1


class ScrollLatch:
    def __init__(self) -> None:
        self.auto_scroll = True

    def reset(self) -> None:
        self.auto_scroll = True

    def on_scroll(self, scroll_top: float, scroll_height: float, client_height: float) -> bool:
        at_bottom = abs(scroll_height - scroll_top - client_height) < SCROLL_BOTTOM_TOLERANCE_PX
        self.auto_scroll = at_bottom
        return self.auto_scroll


@dataclass
class EnhancementAccumulator:
    complete_buffer: str = ""
    reveal_cursor: int = 0
    current_delay_ms: int = 30

    @property
    def backlog(self) -> int:
        return len(self.complete_buffer) - self.reveal_cursor

    @property
    def visible_text(self) -> str:
        return self.complete_buffer[: self.reveal_cursor]

    @property
    def fully_revealed(self) -> bool:
        return self.reveal_cursor >= len(self.complete_buffer)

    def append(self, text: str) -> None:
        self.complete_buffer += text

    def catch_up(self) -> bool:
        if self.backlog > CATCH_UP_TRIGGER_CHARS:
            self.reveal_cursor = len(self.complete_buffer) - CATCH_UP_BACKLOG_CHARS
            return True
        return False

    def advance(self, count: int) -> int:
        self.reveal_cursor = min(self.reveal_cursor + max(0, int(count)), len(self.complete_buffer))
        return self.reveal_cursor

    def snap_to_end(self) -> None:
        self.reveal_cursor = len(self.complete_buffer)


class TypingAnimator:
    def __init__(
        self,
        accumulator: EnhancementAccumulator,
        *,
        timers: TimerScheduler,
        renderer: RevealRenderer,
        scroll_latch: ScrollLatch,
    ) -> None:
        self.accumulator = accumulator
        self._timers = timers
        self._renderer = renderer
        self._scroll_latch = scroll_latch
        self._handle: TimerHandle | None = None
        self._stopped = False
        self.ticks = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def notify(self) -> None:
        """Buffer or delay changed; start ticking if idle."""
        if self._stopped or self._handle is not None:
            return
        if not self.accumulator.fully_revealed:
            self._schedule()

    def _schedule(self) -> None:
        self._cancel_pending()
        delay_sec = max(0, self.accumulator.current_delay_ms) / 1000.0
        self._handle = self._timers.call_later(delay_sec, self._tick)

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self) -> None:
        self._handle = None
        if self._stopped:
            return
        self.ticks += 1
        acc = self.accumulator
        if not acc.catch_up():
            acc.advance(chars_per_tick(acc.current_delay_ms))
        self._present()
        if not acc.fully_revealed:
            self._schedule()

    def _present(self) -> None:
        self._renderer.render(self.accumulator.visible_text)
        if self._scroll_latch.auto_scroll:
            self._renderer.scroll_to_bottom()

    def reveal_all(self) -> None:
        self._cancel_pending()
        self.accumulator.snap_to_end()
        self._present()

    def stop(self) -> None:
        self._stopped = True
        self._cancel_pending()
