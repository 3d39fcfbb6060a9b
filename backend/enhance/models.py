from __future__ import annotations

"""
Typed enhancement contracts shared by the relay endpoint and the editor consumer.

Design intent:
- Keep action/speed vocabularies closed so both sides agree on the wire.
- Resolve typing delay tiers in one place.
- Map finished results onto note fields without guessing.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

EnhancementAction = Literal["summarize", "improve", "generate_tags", "insights"]
TypingSpeed = Literal["slow", "medium", "fast"]
EnhancementType = Literal["summary", "tags", "content"]

TYPING_DELAY_MS: dict[str, int] = {
    "slow": 70,
    "medium": 30,
    "fast": 10,
}
DEFAULT_TYPING_SPEED = "medium"

# insights is display-only and has no note field.
ENHANCEMENT_TYPE_BY_ACTION: dict[str, str] = {
    "summarize": "summary",
    "improve": "content",
    "generate_tags": "tags",
}


class EnhancementValidationError(ValueError):
    """Raised when an enhancement is requested for blank content."""


def resolve_typing_delay_ms(speed: str | None) -> int:
    key = str(speed or "").strip().lower()
    return TYPING_DELAY_MS.get(key, TYPING_DELAY_MS[DEFAULT_TYPING_SPEED])


def ensure_enhanceable_content(content: str | None) -> str:
    text = str(content or "")
    if not text.strip():
        raise EnhancementValidationError("Please write some content first")
    return text


def split_tags(text: str) -> list[str]:
    return [item.strip() for item in str(text or "").split(",") if item.strip()]


class EnhancementRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    note_id: str = Field(min_length=1, max_length=128)
    action: EnhancementAction
    source_content: str = Field(min_length=1)
    typing_speed: TypingSpeed = "medium"


class EnhancementChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    suggested_delay_ms: int = Field(ge=0)

    def to_wire(self) -> dict[str, object]:
        return {"chunk": self.text, "typingDelayMs": self.suggested_delay_ms}


class EnhancementResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: EnhancementAction
    final_text: str | list[str]

    @classmethod
    def from_text(cls, action: str, text: str) -> "EnhancementResult":
        if action == "generate_tags":
            return cls(action=action, final_text=split_tags(text))
        return cls(action=action, final_text=text)

    def enhancement_type(self) -> str | None:
        return ENHANCEMENT_TYPE_BY_ACTION.get(self.action)
