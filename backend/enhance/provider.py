from __future__ import annotations

"""
OpenAI-compatible chat-completion client with incremental (streamed) output.

Design intent:
- Expose provider deltas as a lazy, finite, single-use async sequence.
- Fail with typed errors that still carry the partial text already yielded.
- Keep wire parsing strict so malformed framing is never mistaken for content.
"""

import json
import logging
from typing import Any, AsyncIterator

import httpx

from backend.enhance.prompts import build_chat_messages
from backend.internal_core.config import AppConfig

logger = logging.getLogger(__name__)

_DONE_SENTINEL = "[DONE]"
_DONE = object()


class ProviderError(RuntimeError):
    """Raised when the provider stream fails (network, status, framing)."""

    def __init__(
        self,
        message: str,
        *,
        partial_text: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.partial_text = partial_text
        self.status_code = status_code


class ProviderTimeout(ProviderError):
    """Raised when no data arrives from the provider within the read window."""


def parse_stream_line(line: str) -> Any:
    """
    Decode one provider SSE line.

    Returns the delta text, `_DONE` for the end sentinel, or None for lines
    that carry no content (blank keep-alives, comments, role-only deltas).
    """
    stripped = (line or "").strip()
    if not stripped or stripped.startswith(":"):
        return None
    if not stripped.startswith("data:"):
        # event:/id:/retry: fields carry nothing we need.
        return None

    data = stripped[len("data:") :].strip()
    if data == _DONE_SENTINEL:
        return _DONE
    try:
        obj = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ProviderError(f"Malformed stream frame: {data[:100]}") from exc
    if not isinstance(obj, dict):
        raise ProviderError(f"Malformed stream frame: {data[:100]}")

    if "error" in obj:
        error = obj.get("error")
        message = error.get("message") if isinstance(error, dict) else error
        raise ProviderError(f"Provider reported error: {message}")

    choices = obj.get("choices")
    if not isinstance(choices, list):
        raise ProviderError("Malformed stream frame: missing choices")
    if not choices:
        return None

    first = choices[0] if isinstance(choices[0], dict) else {}
    delta = first.get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    if isinstance(content, str) and content:
        return content
    return None


class CompletionStream:
    """Single-use async iterator over the text deltas of one completion."""

    def __init__(self, client: "OpenAICompatibleStreamClient", payload: dict[str, Any]) -> None:
        self._client = client
        self._payload = payload
        self._parts: list[str] = []
        self._started = False
        self.finished = False

    @property
    def partial_text(self) -> str:
        return "".join(self._parts)

    def __aiter__(self) -> AsyncIterator[str]:
        if self._started:
            raise RuntimeError("CompletionStream can only be iterated once")
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        http_client, owns_client = self._client._open_http_client()
        try:
            async with http_client.stream(
                "POST",
                self._client.completions_url,
                json=self._payload,
                headers=self._client._headers(),
            ) as response:
                if response.status_code < 200 or response.status_code >= 300:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise ProviderError(
                        f"Provider returned HTTP {response.status_code}: {body[:200]}",
                        partial_text=self.partial_text,
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    try:
                        delta = parse_stream_line(line)
                    except ProviderError as exc:
                        exc.partial_text = self.partial_text
                        raise
                    if delta is _DONE:
                        break
                    if delta is None:
                        continue
                    self._parts.append(delta)
                    yield delta
            self.finished = True
        except httpx.TimeoutException as exc:
            logger.warning(
                "provider_stream_timeout url=%s received_chars=%s",
                self._client.completions_url,
                len(self.partial_text),
            )
            raise ProviderTimeout(
                f"Provider stream timed out: {exc.__class__.__name__}",
                partial_text=self.partial_text,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"Provider request failed: {exc}",
                partial_text=self.partial_text,
            ) from exc
        finally:
            if owns_client:
                await http_client.aclose()


class OpenAICompatibleStreamClient:
    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        timeout: httpx.Timeout | float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout if isinstance(timeout, httpx.Timeout) else httpx.Timeout(float(timeout))
        self._http_client = http_client
        self._transport = transport

    @classmethod
    def from_config(cls, config: AppConfig) -> "OpenAICompatibleStreamClient":
        timeout = httpx.Timeout(
            config.NOTES_LLM_READ_TIMEOUT_SEC,
            connect=config.NOTES_LLM_CONNECT_TIMEOUT_SEC,
        )
        return cls(
            base_url=config.NOTES_LLM_BASE_URL,
            api_key=config.NOTES_LLM_API_KEY,
            timeout=timeout,
        )

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _open_http_client(self) -> tuple[httpx.AsyncClient, bool]:
        if self._http_client is not None:
            return self._http_client, False
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport), True

    def stream_completion(self, prompt: str, *, model: str, max_tokens: int = 1000) -> CompletionStream:
        payload = {
            "model": model,
            "messages": build_chat_messages(prompt),
            "stream": True,
            "max_tokens": int(max_tokens),
        }
        return CompletionStream(self, payload)
