"""
AI enhancement pipeline for notes.

Design intent:
- Turn (action, content) into a provider prompt and a streamed completion.
- Relay provider fragments as typed, individually flushed SSE events.
- Keep the provider contract narrow: chunked deltas ended by a sentinel.
"""
