"""Paper Chat - a conversation engine for discussing academic papers.

Combines httpx for provider streaming, pypdf for document extraction,
FastAPI for the HTTP surface, and Pydantic for data validation.

Components:
    - streaming: Incremental decoding of provider streams
    - providers: One adapter per provider protocol family
    - parsing: PDF extraction, normalization, and caching
    - agent: Grounding context and conversation orchestration
    - api: HTTP endpoints and streaming responses
    - models: Domain types and request/response schemas
"""

__version__ = "0.1.0"
