"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - provider_config: OpenAI-compatible config with a test key
    - papers: Two sample papers with local PDF paths
    - make_pdf: Builds small valid PDFs in memory
    - sse_body: Builds a Server-Sent Events response body
    - adapter_factory_for: Routes adapters through an httpx.MockTransport
    - async_client: HTTPX client for API testing
"""

import json
from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from paperchat.agent.config import ChatSettings
from paperchat.agent.sessions import SessionStore
from paperchat.models import Paper, ProviderConfig, ServiceKind
from paperchat.providers import ProviderAdapter, get_adapter

Handler = Callable[[httpx.Request], httpx.Response]


def sse_frames(*deltas: str, done: bool = True) -> str:
    """Render deltas as ``data:`` frames, optionally ending with [DONE]."""
    frames = [
        "data: " + json.dumps({"choices": [{"delta": {"content": delta}}]}) + "\n\n"
        for delta in deltas
    ]
    if done:
        frames.append("data: [DONE]\n\n")
    return "".join(frames)


def build_pdf(pages: list[str]) -> bytes:
    """Build a minimal valid PDF with one line of Helvetica text per page.

    Text must not contain parentheses or backslashes.
    """
    page_ids = [4 + 2 * index for index in range(len(pages))]
    kids = " ".join(f"{page_id} 0 R" for page_id in page_ids)
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for page_id, text in zip(page_ids, pages):
        stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode() if text else b""
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_id + 1} 0 R >>"
            ).encode()
        )
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF\n"
    ).encode()
    return bytes(out)


@pytest.fixture
def make_pdf() -> Callable[[list[str]], bytes]:
    """Return the in-memory PDF builder."""
    return build_pdf


@pytest.fixture
def sse_body() -> Callable[..., str]:
    """Return the SSE body builder."""
    return sse_frames


@pytest.fixture
def provider_config() -> ProviderConfig:
    """OpenAI-compatible config pointing at a fake endpoint."""
    return ProviderConfig(
        service_kind=ServiceKind.OPENAI,
        endpoint="https://llm.test/v1/chat/completions",
        credential="sk-test-key",
        model="m",
        word_delay=0.0,
    )


@pytest.fixture
def papers() -> list[Paper]:
    """Two papers with local PDFs."""
    return [
        Paper(
            id="2401.00001",
            title="Attention Is Still All You Need",
            authors=["Ada Lovelace", "Alan Turing"],
            abstract="We revisit attention.",
            categories=["cs.CL", "cs.LG"],
            published_date="2024-01-02",
            source="arxiv",
            arxiv_id="2401.00001",
            local_path="/papers/attention.pdf",
        ),
        Paper(
            id="2401.00002",
            title="Sparse Mixtures Revisited",
            authors=["Grace Hopper"],
            abstract="Sparse experts at scale.",
            categories=["cs.LG"],
            published_date="2024-01-03",
            source="arxiv",
            doi="10.1000/sparse",
            local_path="/papers/sparse.pdf",
        ),
    ]


@pytest.fixture
def adapter_factory_for() -> Callable[[Handler], Callable[[ServiceKind], ProviderAdapter]]:
    """Build an adapter factory whose adapters talk to a mock handler."""

    def _factory(handler: Handler) -> Callable[[ServiceKind], ProviderAdapter]:
        transport = httpx.MockTransport(handler)
        return lambda kind: get_adapter(kind, transport=transport)

    return _factory


@pytest.fixture
def settings() -> ChatSettings:
    """Settings independent of the developer's environment."""
    return ChatSettings(
        service_kind=ServiceKind.OPENAI,
        api_key="sk-test-key",
        base_url="https://llm.test/v1/chat/completions",
        model_name="m",
        word_delay=0.0,
    )


@pytest.fixture
def session_store(
    settings: ChatSettings,
    sse_body: Callable[..., str],
    adapter_factory_for: Callable[[Handler], Callable[[ServiceKind], ProviderAdapter]],
) -> SessionStore:
    """Session store whose provider streams "Hello world"."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            text=sse_body("Hello", " world"),
            headers={"content-type": "text/event-stream"},
        )

    return SessionStore(settings=settings, adapter_factory=adapter_factory_for(handler))


@pytest.fixture
async def async_client(
    session_store: SessionStore,
    settings: ChatSettings,
) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    from paperchat.agent.config import get_provider_config
    from paperchat.agent.sessions import get_session_store
    from paperchat.api import app

    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_provider_config] = settings.provider_config

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
