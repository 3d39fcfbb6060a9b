from __future__ import annotations

"""
HTTP surface for notes and streamed AI enhancement.

Design intent:
- Keep API orchestration thin and typed.
- Delegate prompt/provider/relay logic to the enhance modules.
- Treat the note store and ownership gate as collaborators behind small helpers.
"""

import logging
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from backend.enhance.models import (
    DEFAULT_TYPING_SPEED,
    TYPING_DELAY_MS,
    EnhancementAction,
    EnhancementRequest,
    EnhancementType,
    EnhancementValidationError,
    ensure_enhanceable_content,
    resolve_typing_delay_ms,
)
from backend.enhance.prompts import build_enhancement_prompt
from backend.enhance.provider import OpenAICompatibleStreamClient
from backend.enhance.relay import SSE_HEADERS, SSE_MEDIA_TYPE, EnhancementRelay
from backend.internal_core.config import AppConfig, load_config
from backend.internal_core.contracts import Note, NoteFieldsUpdate
from backend.internal_core.note_store import InMemoryNoteStore, NoteAccessDenied, NoteNotFoundError


class NoteCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    content: str
    tags: list[str] = Field(default_factory=list)


class NoteListResponse(BaseModel):
    notes: list[Note] = Field(default_factory=list)


class SaveEnhancementRequest(BaseModel):
    type: EnhancementType
    data: str | list[str]


class SaveEnhancementResponse(BaseModel):
    message: str
    note: Note


app = FastAPI(title="notes enhancement service")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_config() -> AppConfig:
    existing = getattr(app.state, "config", None)
    if isinstance(existing, AppConfig):
        return existing
    created = load_config()
    logging.getLogger("backend").setLevel(created.NOTES_LOG_LEVEL.upper())
    setattr(app.state, "config", created)
    return created


def _get_note_store() -> InMemoryNoteStore:
    existing = getattr(app.state, "note_store", None)
    if isinstance(existing, InMemoryNoteStore):
        return existing
    created = InMemoryNoteStore()
    setattr(app.state, "note_store", created)
    return created


def _get_completion_client() -> Any:
    # Tests inject a fake exposing `stream_completion(prompt, *, model, max_tokens)`.
    existing = getattr(app.state, "enhancement_completion_client", None)
    if existing is not None:
        return existing
    created = OpenAICompatibleStreamClient.from_config(_get_config())
    setattr(app.state, "enhancement_completion_client", created)
    return created


def _resolve_actor(raw: str | None) -> str:
    actor = str(raw or "").strip()
    return actor or _get_config().NOTES_DEFAULT_ACTOR


def _normalize_typing_speed(raw: str | None) -> str:
    value = str(raw or "").strip().lower()
    if value in TYPING_DELAY_MS:
        return value
    configured = _get_config().NOTES_DEFAULT_TYPING_SPEED
    return configured if configured in TYPING_DELAY_MS else DEFAULT_TYPING_SPEED


def _get_owned_note(note_id: str, actor_id: str) -> Note:
    try:
        return _get_note_store().get_note(note_id, actor_id)
    except NoteNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Note not found: {note_id}") from exc
    except NoteAccessDenied as exc:
        raise HTTPException(status_code=403, detail="You do not have access to this note.") from exc


def _update_owned_note(note_id: str, actor_id: str, fields: dict[str, Any]) -> Note:
    try:
        return _get_note_store().update_fields(note_id, actor_id, fields)
    except NoteNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Note not found: {note_id}") from exc
    except NoteAccessDenied as exc:
        raise HTTPException(status_code=403, detail="You do not have access to this note.") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _validate_enhancement_data(kind: str, data: str | list[str]) -> str | list[str]:
    if kind == "tags":
        if not isinstance(data, list):
            raise HTTPException(status_code=400, detail="tags data must be a list of strings.")
        tags = [str(item).strip() for item in data if str(item).strip()]
        if not tags:
            raise HTTPException(status_code=400, detail="tags data must not be empty.")
        return tags
    if not isinstance(data, str):
        raise HTTPException(status_code=400, detail=f"{kind} data must be a string.")
    if not data.strip():
        raise HTTPException(status_code=400, detail=f"{kind} data must not be empty.")
    return data


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/notes", response_model=NoteListResponse)
async def list_notes(x_actor_id: str | None = Header(default=None)) -> NoteListResponse:
    actor_id = _resolve_actor(x_actor_id)
    return NoteListResponse(notes=_get_note_store().list_notes(actor_id))


@app.post("/notes", response_model=Note, status_code=201)
async def create_note(
    payload: NoteCreateRequest,
    x_actor_id: str | None = Header(default=None),
) -> Note:
    actor_id = _resolve_actor(x_actor_id)
    note = _get_note_store().create_note(
        actor_id,
        title=payload.title,
        content=payload.content,
        tags=payload.tags,
    )
    logger.info("note_created note_id=%s actor=%s", note.id, actor_id)
    return note


@app.get("/notes/{note_id}", response_model=Note)
async def get_note(note_id: str, x_actor_id: str | None = Header(default=None)) -> Note:
    return _get_owned_note(note_id, _resolve_actor(x_actor_id))


@app.patch("/notes/{note_id}", response_model=Note)
async def update_note(
    note_id: str,
    payload: NoteFieldsUpdate,
    x_actor_id: str | None = Header(default=None),
) -> Note:
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="Provide at least one of: title, content, tags, summary.")
    return _update_owned_note(note_id, _resolve_actor(x_actor_id), fields)


@app.delete("/notes/{note_id}")
async def delete_note(note_id: str, x_actor_id: str | None = Header(default=None)) -> dict[str, str]:
    actor_id = _resolve_actor(x_actor_id)
    try:
        _get_note_store().delete_note(note_id, actor_id)
    except NoteNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Note not found: {note_id}") from exc
    except NoteAccessDenied as exc:
        raise HTTPException(status_code=403, detail="You do not have access to this note.") from exc
    return {"status": "deleted", "note_id": note_id}


@app.get("/notes/{note_id}/enhance")
async def enhance_note(
    note_id: str,
    action: EnhancementAction = Query(),
    typing_speed: str | None = Query(default=None, alias="typingSpeed"),
    x_actor_id: str | None = Header(default=None),
) -> StreamingResponse:
    actor_id = _resolve_actor(x_actor_id)
    note = _get_owned_note(note_id, actor_id)
    try:
        content = ensure_enhanceable_content(note.content)
    except EnhancementValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    request = EnhancementRequest(
        note_id=note.id,
        action=action,
        source_content=content,
        typing_speed=_normalize_typing_speed(typing_speed),
    )
    config = _get_config()
    fragments = _get_completion_client().stream_completion(
        build_enhancement_prompt(request.action, request.source_content),
        model=config.NOTES_LLM_MODEL,
        max_tokens=config.NOTES_LLM_MAX_TOKENS,
    )
    relay = EnhancementRelay(
        fragments,
        typing_delay_ms=resolve_typing_delay_ms(request.typing_speed),
        log_context={"note_id": request.note_id, "action": request.action},
    )
    logger.info(
        "enhance_stream_open note_id=%s action=%s typing_speed=%s model=%s",
        request.note_id,
        request.action,
        request.typing_speed,
        config.NOTES_LLM_MODEL,
    )
    return StreamingResponse(relay.events(), media_type=SSE_MEDIA_TYPE, headers=SSE_HEADERS)


@app.post("/notes/{note_id}/save-enhancement", response_model=SaveEnhancementResponse)
async def save_enhancement(
    note_id: str,
    payload: SaveEnhancementRequest,
    x_actor_id: str | None = Header(default=None),
) -> SaveEnhancementResponse:
    actor_id = _resolve_actor(x_actor_id)
    data = _validate_enhancement_data(payload.type, payload.data)
    note = _update_owned_note(note_id, actor_id, {payload.type: data})
    logger.info("enhancement_saved note_id=%s type=%s actor=%s", note_id, payload.type, actor_id)
    return SaveEnhancementResponse(message="Enhancement saved", note=note)
