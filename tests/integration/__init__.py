"""Integration tests for components working together as a system.

Coverage:
    - Orchestrator turns from send_message to finalized message
    - Grounding with extracted PDFs
    - API endpoints with real HTTP requests over ASGI
    - SSE streaming from provider to client

Providers are served by httpx.MockTransport so the full request and
response path runs without external services.
"""
