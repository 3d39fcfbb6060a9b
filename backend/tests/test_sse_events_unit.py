from backend.editor.events import (
    ServerSentEvent,
    decode_relay_message,
    iter_sse_events,
)


def test_iter_sse_events_parses_fields_and_multiline_data() -> None:
    lines = [
        ": comment",
        "id: 7",
        "data: first",
        "data: second",
        "",
        "event: close",
        'data: {"done": true}',
        "",
        "event: orphan",
        "",
        "data: trailing without blank line",
    ]
    events = list(iter_sse_events(lines))

    assert events == [
        ServerSentEvent(event="message", data="first\nsecond"),
        ServerSentEvent(event="close", data='{"done": true}'),
    ]


def test_iter_sse_events_handles_missing_space_and_crlf() -> None:
    events = list(iter_sse_events(["data:{\"chunk\": \"a\"}\r\n", "\r\n"]))
    assert events == [ServerSentEvent(data='{"chunk": "a"}')]


def test_decode_relay_message_content_and_delay() -> None:
    message = decode_relay_message(ServerSentEvent(data='{"chunk": "Hi", "typingDelayMs": 10}'))
    assert message is not None
    assert message.kind == "content"
    assert message.chunk == "Hi"
    assert message.typing_delay_ms == 10


def test_decode_relay_message_without_delay_hint() -> None:
    message = decode_relay_message(ServerSentEvent(data='{"chunk": "Hi", "typingDelayMs": 0}'))
    assert message is not None
    assert message.typing_delay_ms is None


def test_decode_relay_message_close_and_error() -> None:
    close = decode_relay_message(ServerSentEvent(event="close", data='{"done": true}'))
    assert close is not None and close.kind == "close"

    error = decode_relay_message(
        ServerSentEvent(data='{"chunk": "\\nError: boom\\n", "typingDelayMs": 30, "error": "boom"}')
    )
    assert error is not None
    assert error.kind == "error"
    assert error.error == "boom"


def test_decode_relay_message_ignores_malformed_payloads() -> None:
    assert decode_relay_message(ServerSentEvent(data="not json")) is None
    assert decode_relay_message(ServerSentEvent(data="[1, 2]")) is None
    assert decode_relay_message(ServerSentEvent(data='{"chunk": ""}')) is None
