from __future__ import annotations

"""
Persist accepted enhancement results and keep the editor's autosave consistent.

Design intent:
- Nothing persists until the user explicitly applies a finished result.
- A successful apply updates editor state and marks it dirty for the normal save path.
- Persistence failures become notices; editor state is never discarded.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from backend.editor.event_source import HttpEventSource
from backend.editor.notices import NoticeBoard
from backend.editor.reveal import AsyncioTimers, TimerHandle, TimerScheduler
from backend.enhance.models import EnhancementResult

logger = logging.getLogger(__name__)

_EDITOR_FIELDS = ("title", "content", "tags", "summary")


class PersistenceError(RuntimeError):
    """Raised when a note or enhancement save fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class EditorState:
    note_id: str
    title: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    summary: str | None = None
    has_unsaved_changes: bool = False
    _saved: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if not self._saved:
            self._saved = self.snapshot()

    @classmethod
    def from_note(cls, note: dict[str, Any]) -> "EditorState":
        return cls(
            note_id=str(note["id"]),
            title=str(note.get("title") or ""),
            content=str(note.get("content") or ""),
            tags=[str(item) for item in list(note.get("tags") or [])],
            summary=note.get("summary"),
        )

    def snapshot(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "summary": self.summary,
        }

    def changed_fields(self) -> dict[str, Any]:
        current = self.snapshot()
        return {name: value for name, value in current.items() if self._saved.get(name) != value}

    def _refresh_dirty(self) -> None:
        self.has_unsaved_changes = self.snapshot() != self._saved

    def edit(self, **fields: Any) -> None:
        for name, value in fields.items():
            if name not in _EDITOR_FIELDS:
                raise ValueError(f"Unknown editor field: {name}")
            setattr(self, name, list(value) if name == "tags" else value)
        self._refresh_dirty()

    def apply_enhancement(self, kind: str, data: str | list[str]) -> None:
        if kind == "tags":
            self.tags = [str(item) for item in data]
        elif kind == "summary":
            self.summary = str(data)
        elif kind == "content":
            self.content = str(data)
        else:
            raise ValueError(f"Unknown enhancement type: {kind}")
        # The save path must run even if the server copy already matches.
        self.has_unsaved_changes = True

    def mark_saved(self, snapshot: dict[str, Any] | None = None) -> None:
        self._saved = dict(snapshot) if snapshot is not None else self.snapshot()
        self._refresh_dirty()


class NotesApiClient:
    def __init__(self, http_client: httpx.AsyncClient, *, actor_id: str | None = None) -> None:
        self._http_client = http_client
        self._headers = {"X-Actor-Id": actor_id} if actor_id else {}

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._http_client.request(method, url, headers=self._headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PersistenceError(
                f"{method} {url} failed with HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise PersistenceError(f"{method} {url} failed: {exc}") from exc
        return response.json()

    async def get_note(self, note_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/notes/{note_id}")

    async def update_note(self, note_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PATCH", f"/notes/{note_id}", json=fields)

    async def save_enhancement(self, note_id: str, kind: str, data: str | list[str]) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/notes/{note_id}/save-enhancement",
            json={"type": kind, "data": data},
        )

    def enhancement_source(self, note_id: str, action: str, typing_speed: str) -> HttpEventSource:
        return HttpEventSource(
            self._http_client,
            f"/notes/{note_id}/enhance",
            params={"action": action, "typingSpeed": typing_speed},
            headers=self._headers,
        )


class AutosaveDebouncer:
    def __init__(
        self,
        editor: EditorState,
        api: NotesApiClient,
        *,
        notices: NoticeBoard,
        timers: TimerScheduler | None = None,
        delay_sec: float = 2.0,
        enabled: bool = True,
    ) -> None:
        self._editor = editor
        self._api = api
        self._notices = notices
        self._timers = timers or AsyncioTimers()
        self._delay_sec = float(delay_sec)
        self.enabled = enabled
        self._handle: TimerHandle | None = None
        self._save_task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        """Restart the debounce window after an edit."""
        self.cancel()
        if self.enabled and self._editor.has_unsaved_changes:
            self._handle = self._timers.call_later(self._delay_sec, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._save_task = asyncio.get_running_loop().create_task(self.save_now())

    async def flush(self) -> None:
        if self._save_task is not None:
            await asyncio.wait({self._save_task})

    async def save_now(self) -> bool:
        self.cancel()
        if not self._editor.has_unsaved_changes:
            return False
        snapshot = self._editor.snapshot()
        changes = self._editor.changed_fields()
        try:
            if changes:
                await self._api.update_note(self._editor.note_id, changes)
        except PersistenceError as exc:
            logger.warning("note_autosave_failed note_id=%s error=%s", self._editor.note_id, exc)
            self._notices.post("error", "Failed to save note")
            return False
        self._editor.mark_saved(snapshot)
        self._notices.post("success", "Note saved successfully!")
        return True


class SaveApplyGateway:
    def __init__(
        self,
        api: NotesApiClient,
        editor: EditorState,
        *,
        notices: NoticeBoard,
        autosave: AutosaveDebouncer | None = None,
    ) -> None:
        self._api = api
        self._editor = editor
        self._notices = notices
        self._autosave = autosave

    async def apply(self, result: EnhancementResult | None) -> bool:
        if result is None:
            self._notices.post("error", "There is no finished enhancement to save.")
            return False
        kind = result.enhancement_type()
        if kind is None:
            self._notices.post("info", f"{result.action} results cannot be saved to the note.")
            return False

        try:
            await self._api.save_enhancement(self._editor.note_id, kind, result.final_text)
        except PersistenceError as exc:
            logger.warning(
                "enhancement_save_failed note_id=%s type=%s error=%s",
                self._editor.note_id,
                kind,
                exc,
            )
            self._notices.post("error", "Failed to save enhancement")
            return False

        self._editor.apply_enhancement(kind, result.final_text)
        self._notices.post("success", "Enhancement saved successfully!")
        if self._autosave is not None and self._autosave.enabled:
            await self._autosave.save_now()
        return True
