import asyncio
import heapq
import itertools
import json

import pytest

from backend.api.main import app
from backend.editor.events import ServerSentEvent
from backend.editor.reveal import TextRenderer
from backend.internal_core.note_store import InMemoryNoteStore


class ManualTimerHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimers:
    """Deterministic clock: callbacks only run inside `advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list = []
        self._seq = itertools.count()

    def call_later(self, delay_sec, callback):
        handle = ManualTimerHandle()
        heapq.heappush(self._queue, (self.now + float(delay_sec), next(self._seq), callback, handle))
        return handle

    def pending(self) -> int:
        return sum(1 for item in self._queue if not item[3].cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + float(seconds)
        while self._queue and self._queue[0][0] <= target + 1e-9:
            due, _, callback, handle = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if handle.cancelled:
                continue
            callback()
        self.now = target


class FakeConnection:
    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()
        self.opened = False
        self.closed = False

    async def events(self):
        self.opened = True
        try:
            while True:
                item = await self.queue.get()
                if item is None:
                    return
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed = True

    def push_chunk(self, text: str, delay_ms: int | None = 30) -> None:
        payload = {"chunk": text}
        if delay_ms is not None:
            payload["typingDelayMs"] = delay_ms
        self.queue.put_nowait(ServerSentEvent(data=json.dumps(payload)))

    def push_error(self, message: str) -> None:
        payload = {"chunk": f"\nError: {message}\n", "typingDelayMs": 30, "error": message}
        self.queue.put_nowait(ServerSentEvent(data=json.dumps(payload)))

    def push_raw(self, data: str) -> None:
        self.queue.put_nowait(ServerSentEvent(data=data))

    def push_close(self) -> None:
        self.queue.put_nowait(ServerSentEvent(event="close", data='{"done": true}'))

    def end(self) -> None:
        self.queue.put_nowait(None)

    def fail(self, exc: BaseException) -> None:
        self.queue.put_nowait(exc)


class RecordingRenderer(TextRenderer):
    def __init__(self) -> None:
        super().__init__()
        self.history: list[str] = []

    def render(self, visible_text: str) -> None:
        super().render(visible_text)
        self.history.append(visible_text)


class FakeCompletionClient:
    def __init__(self, fragments, *, fail_with: Exception | None = None) -> None:
        self.fragments = list(fragments)
        self.fail_with = fail_with
        self.calls: list[dict] = []

    def stream_completion(self, prompt, *, model, max_tokens):
        self.calls.append({"prompt": prompt, "model": model, "max_tokens": max_tokens})
        return self._iterate()

    async def _iterate(self):
        for fragment in self.fragments:
            yield fragment
        if self.fail_with is not None:
            raise self.fail_with


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def manual_timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def recording_renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def connection_factory():
    created: list[FakeConnection] = []

    def connect(action: str, typing_speed: str) -> FakeConnection:
        _ = (action, typing_speed)
        connection = FakeConnection()
        created.append(connection)
        return connection

    connect.created = created
    return connect


@pytest.fixture
def fake_completion_client():
    def install(fragments, *, fail_with: Exception | None = None) -> FakeCompletionClient:
        client = FakeCompletionClient(fragments, fail_with=fail_with)
        app.state.enhancement_completion_client = client
        return client

    yield install
    if hasattr(app.state, "enhancement_completion_client"):
        delattr(app.state, "enhancement_completion_client")


@pytest.fixture
def note_store() -> InMemoryNoteStore:
    store = InMemoryNoteStore()
    app.state.note_store = store
    yield store
    if hasattr(app.state, "note_store"):
        delattr(app.state, "note_store")
