from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Note(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    owner_id: str
    title: str
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    summary: Optional[str] = None
    created_at: str
    updated_at: str


class NoteFieldsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, max_length=255)
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    summary: Optional[str] = None
