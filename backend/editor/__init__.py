"""
Editor-side enhancement client.

Design intent:
- Consume the relay stream into a session-scoped buffer.
- Reveal the buffer with a typing animation that is independent of arrival timing.
- Persist results only on explicit apply, through the ordinary note save path.
"""
