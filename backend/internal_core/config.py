from __future__ import annotations

import os
from dataclasses import dataclass


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_str_chain(names: list[str], default: str) -> str:
    for name in names:
        value = os.getenv(name)
        if value is not None and value != "":
            return value
    return default


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _normalize_typing_speed(raw: str) -> str:
    value = (raw or "").strip().lower()
    if value in {"slow", "medium", "fast"}:
        return value
    return "medium"


@dataclass(frozen=True)
class AppConfig:
    NOTES_LLM_BASE_URL: str
    NOTES_LLM_API_KEY: str
    NOTES_LLM_MODEL: str
    NOTES_LLM_MAX_TOKENS: int
    NOTES_LLM_CONNECT_TIMEOUT_SEC: float
    NOTES_LLM_READ_TIMEOUT_SEC: float
    NOTES_DEFAULT_TYPING_SPEED: str
    NOTES_SESSION_TIMEOUT_SEC: float
    NOTES_AUTOSAVE_DEBOUNCE_SEC: float
    NOTES_DEFAULT_ACTOR: str
    NOTES_LOG_LEVEL: str


def load_config() -> AppConfig:
    return AppConfig(
        NOTES_LLM_BASE_URL=_getenv_str("NOTES_LLM_BASE_URL", "https://api.openai.com/v1"),
        NOTES_LLM_API_KEY=_getenv_str_chain(["NOTES_LLM_API_KEY", "OPENAI_API_KEY"], ""),
        NOTES_LLM_MODEL=_getenv_str_chain(["NOTES_LLM_MODEL", "OPENAI_MODEL"], "gpt-4o-mini"),
        NOTES_LLM_MAX_TOKENS=_getenv_int("NOTES_LLM_MAX_TOKENS", 1000),
        NOTES_LLM_CONNECT_TIMEOUT_SEC=_getenv_float("NOTES_LLM_CONNECT_TIMEOUT_SEC", 10.0),
        NOTES_LLM_READ_TIMEOUT_SEC=_getenv_float("NOTES_LLM_READ_TIMEOUT_SEC", 30.0),
        NOTES_DEFAULT_TYPING_SPEED=_normalize_typing_speed(
            _getenv_str("NOTES_DEFAULT_TYPING_SPEED", "medium")
        ),
        NOTES_SESSION_TIMEOUT_SEC=_getenv_float("NOTES_SESSION_TIMEOUT_SEC", 60.0),
        NOTES_AUTOSAVE_DEBOUNCE_SEC=_getenv_float("NOTES_AUTOSAVE_DEBOUNCE_SEC", 2.0),
        NOTES_DEFAULT_ACTOR=_getenv_str("NOTES_DEFAULT_ACTOR", "demo"),
        NOTES_LOG_LEVEL=_getenv_str("NOTES_LOG_LEVEL", "INFO"),
    )
