from __future__ import annotations

import datetime as _dt
import uuid
from threading import RLock
from typing import Any, Dict, List, Optional

from .contracts import Note

_UPDATABLE_FIELDS = ("title", "content", "tags", "summary")


class NoteNotFoundError(KeyError):
    """Raised when a note id is unknown to the store."""


class NoteAccessDenied(PermissionError):
    """Raised when the acting user does not own the note."""


def _ts_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat()


class InMemoryNoteStore:
    def __init__(self) -> None:
        self._lock = RLock()
        self._notes: Dict[str, Dict[str, Any]] = {}

    def create_note(
        self,
        owner_id: str,
        *,
        title: str,
        content: str = "",
        tags: Optional[List[str]] = None,
        summary: Optional[str] = None,
        note_id: Optional[str] = None,
    ) -> Note:
        note_id = note_id or uuid.uuid4().hex
        now = _ts_iso()
        with self._lock:
            self._notes[note_id] = {
                "id": note_id,
                "owner_id": owner_id,
                "title": title,
                "content": content,
                "tags": list(tags or []),
                "summary": summary,
                "created_at": now,
                "updated_at": now,
            }
            return self._to_model(self._notes[note_id])

    def _to_model(self, record: Dict[str, Any]) -> Note:
        return Note(
            id=record["id"],
            owner_id=record["owner_id"],
            title=record["title"],
            content=record["content"],
            tags=list(record["tags"]),
            summary=record["summary"],
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )

    def _get_record(self, note_id: str) -> Dict[str, Any]:
        record = self._notes.get(note_id)
        if record is None:
            raise NoteNotFoundError(f"Unknown note_id: {note_id}")
        return record

    def _authorize(self, record: Dict[str, Any], actor_id: str) -> None:
        if record["owner_id"] != actor_id:
            raise NoteAccessDenied(f"Actor {actor_id} does not own note {record['id']}")

    def get_note(self, note_id: str, actor_id: str) -> Note:
        with self._lock:
            record = self._get_record(note_id)
            self._authorize(record, actor_id)
            return self._to_model(record)

    def list_notes(self, actor_id: str) -> List[Note]:
        with self._lock:
            owned = [
                self._to_model(record)
                for record in self._notes.values()
                if record["owner_id"] == actor_id
            ]
        owned.sort(key=lambda item: item.updated_at, reverse=True)
        return owned

    def update_fields(self, note_id: str, actor_id: str, fields: Dict[str, Any]) -> Note:
        unknown = sorted(set(fields) - set(_UPDATABLE_FIELDS))
        if unknown:
            raise ValueError(f"Unsupported note fields: {', '.join(unknown)}")
        with self._lock:
            record = self._get_record(note_id)
            self._authorize(record, actor_id)
            for name, value in fields.items():
                record[name] = list(value) if name == "tags" else value
            record["updated_at"] = _ts_iso()
            return self._to_model(record)

    def delete_note(self, note_id: str, actor_id: str) -> None:
        with self._lock:
            record = self._get_record(note_id)
            self._authorize(record, actor_id)
            self._notes.pop(note_id, None)

    def clear(self) -> None:
        with self._lock:
            self._notes = {}
