from __future__ import annotations

"""
One open note in the editor, wired to the enhancement consumer and save paths.

Design intent:
- Compose the editor collaborators from `AppConfig` in one place.
- Keep every user action a single awaitable call.
"""

import logging
from typing import Any

import httpx

from backend.editor.apply import AutosaveDebouncer, EditorState, NotesApiClient, SaveApplyGateway
from backend.editor.notices import NoticeBoard
from backend.editor.reveal import RevealRenderer, TimerScheduler
from backend.editor.session import EnhancementConsumer, EnhancementSession
from backend.internal_core.config import AppConfig

logger = logging.getLogger(__name__)


class EditorWorkspace:
    def __init__(
        self,
        api: NotesApiClient,
        editor: EditorState,
        *,
        config: AppConfig,
        timers: TimerScheduler | None = None,
        renderer: RevealRenderer | None = None,
        autosave_enabled: bool = True,
    ) -> None:
        self.api = api
        self.editor = editor
        self.typing_speed = config.NOTES_DEFAULT_TYPING_SPEED
        self.notices = NoticeBoard()
        self.consumer = EnhancementConsumer(
            lambda action, speed: api.enhancement_source(editor.note_id, action, speed),
            timers=timers,
            renderer=renderer,
            notices=self.notices,
            session_timeout_sec=config.NOTES_SESSION_TIMEOUT_SEC,
        )
        self.autosave = AutosaveDebouncer(
            editor,
            api,
            notices=self.notices,
            timers=timers,
            delay_sec=config.NOTES_AUTOSAVE_DEBOUNCE_SEC,
            enabled=autosave_enabled,
        )
        self.gateway = SaveApplyGateway(api, editor, notices=self.notices, autosave=self.autosave)

    @classmethod
    async def open(
        cls,
        http_client: httpx.AsyncClient,
        note_id: str,
        *,
        config: AppConfig,
        actor_id: str | None = None,
        **kwargs: Any,
    ) -> "EditorWorkspace":
        api = NotesApiClient(http_client, actor_id=actor_id or config.NOTES_DEFAULT_ACTOR)
        editor = EditorState.from_note(await api.get_note(note_id))
        logger.info("editor_open note_id=%s", note_id)
        return cls(api, editor, config=config, **kwargs)

    def edit(self, **fields: Any) -> None:
        self.editor.edit(**fields)
        self.autosave.schedule()

    async def enhance(self, action: str, typing_speed: str | None = None) -> EnhancementSession:
        return await self.consumer.start(action, self.editor.content, typing_speed or self.typing_speed)

    async def apply_enhancement(self) -> bool:
        return await self.gateway.apply(self.consumer.outcome())

    async def close(self) -> None:
        await self.consumer.aclose()
        self.autosave.cancel()
        await self.autosave.flush()
