"""Pydantic models for the conversation engine.

Provides the domain types shared by every layer of the engine.

Models:
    - Message: One chat message with its streaming status
    - Paper: Read-only paper record supplied by the paper repository
    - ExtractedDocument: Normalized text extracted from a paper's PDF
    - ProviderConfig: Immutable per-call provider settings
    - ContextBundle: Grounding text injected ahead of the conversation
    - ChatEvent: Delta, completion or error published during a turn
"""

import itertools
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from paperchat.errors import ConfigurationError

_message_ids = itertools.count(1)


class MessageRole(str, Enum):
    """Speaker of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    ERROR = "error"


class MessageStatus(str, Enum):
    """Lifecycle state of a message: pending -> streaming -> complete | failed."""

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"


class Message(BaseModel):
    """A single chat message in the conversation.

    Attributes:
        id: Process-wide monotonic identifier, ordered by creation.
        role: The speaker (user, assistant, or error).
        content: Message text, only mutated while streaming.
        status: Current lifecycle state.
        created_at: Creation timestamp.
    """

    id: int = Field(default_factory=lambda: next(_message_ids))
    role: MessageRole
    content: str = ""
    status: MessageStatus = MessageStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_terminal(self) -> bool:
        return self.status in (MessageStatus.COMPLETE, MessageStatus.FAILED)


class Paper(BaseModel):
    """A paper as supplied by the paper repository.

    Attributes:
        id: Stable identifier.
        title: Paper title.
        authors: Author names in publication order.
        abstract: Paper abstract.
        categories: Subject categories.
        published_date: Publication date as reported by the source.
        pdf_url: Remote PDF location, used when the local copy is unavailable.
        local_path: Path of the downloaded PDF, if any.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    authors: list[str] = Field(default_factory=list)
    abstract: str = ""
    categories: list[str] = Field(default_factory=list)
    published_date: str | None = None
    source: str | None = None
    doi: str | None = None
    arxiv_id: str | None = None
    pdf_url: str | None = None
    local_path: str | None = None


class ExtractedDocument(BaseModel):
    """Text extracted from a paper's PDF.

    Callers must check ``truncated`` before assuming they hold the whole
    document, and ``error`` before using ``content`` at all.
    """

    paper_id: str = ""
    path: str
    content: str = ""
    word_count: int = Field(default=0, ge=0)
    pages_extracted: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)
    truncated: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.content.strip())


class ServiceKind(str, Enum):
    """Supported provider families."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
    CUSTOM = "custom"


_SERVICE_DEFAULTS: dict[ServiceKind, tuple[str, str]] = {
    ServiceKind.OPENAI: ("https://api.openai.com/v1/chat/completions", "gpt-3.5-turbo"),
    ServiceKind.ANTHROPIC: ("https://api.anthropic.com/v1/messages", "claude-3-sonnet-20240229"),
    ServiceKind.OLLAMA: ("http://localhost:11434/v1/chat/completions", "llama2"),
}

_CREDENTIAL_REQUIRED = {ServiceKind.OPENAI, ServiceKind.ANTHROPIC}


class ProviderConfig(BaseModel):
    """Provider settings for a single call.

    Immutable; build a new one (``model_copy(update=...)``) to change it.

    Attributes:
        service_kind: Provider family used to pick the adapter.
        endpoint: Full URL of the completion endpoint.
        credential: API key, attached per request.
        model: Model identifier.
        max_tokens: Maximum tokens in the generated response.
        timeout: Request timeout in seconds.
        word_delay: Pause between synthetic deltas for non-streaming providers.
    """

    model_config = ConfigDict(frozen=True)

    service_kind: ServiceKind = ServiceKind.OPENAI
    endpoint: str = ""
    credential: str | None = None
    model: str = ""
    max_tokens: int = Field(default=1000, ge=1, le=128000)
    timeout: float = Field(default=120.0, gt=0)
    word_delay: float = Field(default=0.02, ge=0.0)

    @classmethod
    def for_service(cls, service_kind: ServiceKind | str, **overrides: object) -> "ProviderConfig":
        """Create a config pre-filled with the service's default endpoint and model."""
        kind = ServiceKind(service_kind)
        endpoint, model = _SERVICE_DEFAULTS.get(kind, ("", ""))
        values: dict[str, object] = {"service_kind": kind, "endpoint": endpoint, "model": model}
        values.update({k: v for k, v in overrides.items() if v is not None and v != ""})
        return cls.model_validate(values)

    def ensure_ready(self) -> None:
        """Check that the config can be used for a request.

        Raises:
            ConfigurationError: If endpoint, model, or a required credential is missing.
        """
        if self.service_kind in _CREDENTIAL_REQUIRED and not (self.credential or "").strip():
            raise ConfigurationError(
                "AI API key not configured. Please set your API key in settings."
            )
        if not self.endpoint.strip():
            raise ConfigurationError("AI endpoint not configured. Please set the API endpoint in settings.")
        if not self.model.strip():
            raise ConfigurationError("AI model not configured. Please choose a model in settings.")


class ContextBundle(BaseModel):
    """Grounding context built for one paper selection."""

    model_config = ConfigDict(frozen=True)

    system_preamble: str
    document_section: str = ""
    signature: str
    has_full_text: bool = False

    @property
    def system_prompt(self) -> str:
        if not self.document_section:
            return self.system_preamble
        return f"{self.system_preamble}\n\nContext: {self.document_section}"


class ChatEvent(BaseModel):
    """Event published while a turn is served.

    Attributes:
        type: delta, complete, or error.
        message_id: The in-flight assistant message.
        content: Full accumulated content (or error text for error events).
        delta: The fragment that produced this event, for delta events.
    """

    type: Literal["delta", "complete", "error"]
    message_id: int
    content: str
    delta: str = ""


__all__ = [
    "ChatEvent",
    "ContextBundle",
    "ExtractedDocument",
    "Message",
    "MessageRole",
    "MessageStatus",
    "Paper",
    "ProviderConfig",
    "ServiceKind",
]
