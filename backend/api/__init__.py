"""
API orchestration boundary for the notes enhancement backend.

Design intent:
- Expose thin, typed endpoints for note and enhancement flows.
- Keep request validation explicit and failure modes predictable.
- Stream enhancement output without buffering between events.
"""
