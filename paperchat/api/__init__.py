"""FastAPI endpoints for the paper chat engine.

HTTP and streaming routes with async request handling.
Supports Server-Sent Events for real-time chat streaming.

Endpoints:
    - GET /health: Service health status
    - POST /chat/stream: Streamed chat replies
    - GET /chat/sessions/{id}: Conversation state
    - POST /chat/sessions/{id}/reset: Start a new session
    - PUT /chat/sessions/{id}/papers: Paper selection for grounding
    - POST /documents/extract: PDF text extraction
    - GET /documents/cache: Extraction cache statistics
"""

from paperchat.api.app import app, create_app

__all__ = ["app", "create_app"]
