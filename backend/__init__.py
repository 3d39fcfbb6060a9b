"""
Notes enhancement backend package.

Design intent:
- Serve note CRUD and streamed AI enhancement over a thin FastAPI surface.
- Keep the enhance pipeline (prompt/provider/relay) independent from the HTTP layer.
- Ship the editor-side stream consumer alongside the service it talks to.
"""
