import pytest

from backend.enhance.models import (
    EnhancementResult,
    EnhancementValidationError,
    ensure_enhanceable_content,
    resolve_typing_delay_ms,
    split_tags,
)
from backend.enhance.prompts import build_chat_messages, build_enhancement_prompt


def test_build_prompt_prefixes_each_action() -> None:
    content = "Meeting notes about the launch."
    summarize = build_enhancement_prompt("summarize", content)
    improve = build_enhancement_prompt("improve", content)
    tags = build_enhancement_prompt("generate_tags", content)
    insights = build_enhancement_prompt("insights", content)

    assert summarize.startswith("Please provide a concise summary")
    assert improve.startswith("Please improve the writing quality")
    assert "comma-separated list" in tags
    assert "key themes, tone, structure" in insights
    for prompt in (summarize, improve, tags, insights):
        assert prompt.endswith("\n\n" + content)


def test_build_prompt_unknown_action_returns_content_unmodified() -> None:
    assert build_enhancement_prompt("translate", "keep me") == "keep me"


def test_build_chat_messages_single_user_turn() -> None:
    assert build_chat_messages("hi") == [{"role": "user", "content": "hi"}]


def test_blank_content_is_rejected_before_dispatch() -> None:
    with pytest.raises(EnhancementValidationError):
        ensure_enhanceable_content("   \n\t ")
    with pytest.raises(EnhancementValidationError):
        ensure_enhanceable_content(None)
    assert ensure_enhanceable_content(" text ") == " text "


def test_typing_delay_tiers() -> None:
    assert resolve_typing_delay_ms("slow") == 70
    assert resolve_typing_delay_ms("medium") == 30
    assert resolve_typing_delay_ms("FAST") == 10
    assert resolve_typing_delay_ms("warp") == 30
    assert resolve_typing_delay_ms(None) == 30


def test_split_tags_trims_and_drops_empty_entries() -> None:
    assert split_tags("ai, notes , productivity") == ["ai", "notes", "productivity"]
    assert split_tags(",ai,, notes ,") == ["ai", "notes"]
    assert split_tags("") == []


def test_enhancement_result_maps_action_to_note_field() -> None:
    tags = EnhancementResult.from_text("generate_tags", "ai, notes , productivity")
    assert tags.final_text == ["ai", "notes", "productivity"]
    assert tags.enhancement_type() == "tags"
    assert EnhancementResult.from_text("summarize", "short").enhancement_type() == "summary"
    assert EnhancementResult.from_text("improve", "better").enhancement_type() == "content"
    assert EnhancementResult.from_text("insights", "themes").enhancement_type() is None
