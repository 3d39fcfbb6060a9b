import asyncio
import dataclasses

import httpx

from backend.api.main import app
from backend.editor.session import TIMEOUT_MESSAGE
from backend.editor.workspace import EditorWorkspace
from backend.internal_core.config import load_config


def _config(**overrides):
    return dataclasses.replace(load_config(), **overrides)


def test_workspace_enhance_and_apply_summary(
    note_store, fake_completion_client, manual_timers, recording_renderer
) -> None:
    note = note_store.create_note("alice", title="Trip", content="We drove to the coast and hiked.")
    completion = fake_completion_client(["A coastal ", "hiking trip."])
    config = _config(NOTES_DEFAULT_TYPING_SPEED="slow")

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as http:
            workspace = await EditorWorkspace.open(
                http,
                note.id,
                config=config,
                actor_id="alice",
                timers=manual_timers,
                renderer=recording_renderer,
            )
            session = await workspace.enhance("summarize")
            await workspace.consumer.wait_closed()
            applied = await workspace.apply_enhancement()
            await workspace.close()
            return workspace, session, applied

    workspace, session, applied = asyncio.run(scenario())

    assert session.typing_speed == "slow"
    assert session.status == "completed"
    assert completion.calls[0]["prompt"].endswith("We drove to the coast and hiked.")
    assert applied is True
    assert workspace.editor.summary == "A coastal hiking trip."
    assert workspace.editor.has_unsaved_changes is False
    assert note_store.get_note(note.id, "alice").summary == "A coastal hiking trip."


def test_workspace_edit_schedules_autosave_with_configured_delay(note_store, manual_timers) -> None:
    note = note_store.create_note("alice", title="t", content="draft")
    config = _config(NOTES_AUTOSAVE_DEBOUNCE_SEC=5.0)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as http:
            workspace = await EditorWorkspace.open(http, note.id, config=config, actor_id="alice", timers=manual_timers)
            workspace.edit(title="renamed")
            manual_timers.advance(4.9)
            assert workspace.autosave.pending is True
            manual_timers.advance(0.1)
            await workspace.autosave.flush()
            return workspace

    workspace = asyncio.run(scenario())

    assert note_store.get_note(note.id, "alice").title == "renamed"
    assert workspace.editor.has_unsaved_changes is False


def test_workspace_uses_configured_session_timeout(note_store, manual_timers, recording_renderer) -> None:
    note = note_store.create_note("alice", title="t", content="draft")
    config = _config(NOTES_SESSION_TIMEOUT_SEC=5.0)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as http:
            workspace = await EditorWorkspace.open(
                http,
                note.id,
                config=config,
                actor_id="alice",
                timers=manual_timers,
                renderer=recording_renderer,
            )
            workspace.consumer._connect = lambda action, speed: _SilentConnection()
            session = await workspace.enhance("improve")
            manual_timers.advance(5.0)
            await workspace.consumer.wait_closed()
            return workspace, session

    workspace, session = asyncio.run(scenario())

    assert session.status == "timed_out"
    assert workspace.notices.latest().message == TIMEOUT_MESSAGE
    assert workspace.consumer.outcome() is None


class _SilentConnection:
    def __init__(self) -> None:
        self.closed = False

    async def events(self):
        try:
            await asyncio.Event().wait()
            yield
        finally:
            self.closed = True
