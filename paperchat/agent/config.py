"""Engine configuration with environment variable loading.

Pydantic-based settings for the provider and the PDF extraction layer.
Settings are read fresh on every call and converted into an immutable
ProviderConfig; nothing here is held as shared mutable state.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from paperchat.models import ProviderConfig, ServiceKind
from paperchat.parsing.cache import ExtractionOptions

# Load environment variables from .env file
load_dotenv()


class ChatSettings(BaseModel):
    """Configuration for the chat engine.

    Attributes:
        service_kind: Provider family (openai, anthropic, ollama, custom).
        api_key: API key for the provider.
        base_url: Completion endpoint (None for the service default).
        model_name: Model identifier (None for the service default).
        max_tokens: Maximum tokens in generated response.
        timeout: Chat request timeout in seconds.
        word_delay: Pause between replayed words for non-streaming providers.
        pdf_max_pages: Pages extracted per PDF.
        pdf_cache_size: Extracted documents kept in memory.
        pdf_extraction_timeout: Upper bound for a single extraction in seconds.
    """

    service_kind: ServiceKind = Field(
        default_factory=lambda: ServiceKind(os.getenv("LLM_SERVICE_KIND", "openai").lower()),
        description="Provider family",
    )
    api_key: str | None = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY")) or None,
        description="API key for LLM provider",
    )
    base_url: str | None = Field(
        default_factory=lambda: os.getenv("LLM_BASE_URL") or None,
        description="Completion endpoint URL (None for service default)",
    )
    model_name: str | None = Field(
        default_factory=lambda: os.getenv("LLM_MODEL") or None,
        description="Model to use (None for service default)",
    )
    max_tokens: int = Field(
        default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "1000")),
        ge=1,
        le=128000,
        description="Maximum tokens in generated response",
    )
    timeout: float = Field(
        default_factory=lambda: float(os.getenv("LLM_TIMEOUT", "120")),
        gt=0,
        description="Chat request timeout in seconds",
    )
    word_delay: float = Field(
        default_factory=lambda: float(os.getenv("LLM_WORD_DELAY", "0.02")),
        ge=0.0,
        le=1.0,
        description="Delay between simulated stream deltas",
    )
    pdf_max_pages: int = Field(
        default_factory=lambda: int(os.getenv("PDF_MAX_PAGES", "30")),
        ge=1,
        le=500,
        description="Maximum pages extracted per PDF",
    )
    pdf_cache_size: int = Field(
        default_factory=lambda: int(os.getenv("PDF_CACHE_SIZE", "50")),
        ge=1,
        description="Number of extracted documents kept in memory",
    )
    pdf_extraction_timeout: float = Field(
        default_factory=lambda: float(os.getenv("PDF_EXTRACTION_TIMEOUT", "60")),
        gt=0,
        description="Upper bound for one PDF extraction in seconds",
    )

    @field_validator("api_key")
    @classmethod
    def strip_api_key(cls, v: str | None) -> str | None:
        """Strip whitespace from the API key; blank keys count as missing."""
        if v is None:
            return None
        return v.strip() or None

    def provider_config(self) -> ProviderConfig:
        """Build the immutable provider config for one call."""
        return ProviderConfig.for_service(
            self.service_kind,
            endpoint=self.base_url,
            model=self.model_name,
            credential=self.api_key,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
            word_delay=self.word_delay,
        )

    def extraction_options(self) -> ExtractionOptions:
        return ExtractionOptions(max_pages=self.pdf_max_pages)


def get_settings() -> ChatSettings:
    """Create settings from environment.

    Returns:
        A fresh ChatSettings instance.
    """
    return ChatSettings()


def get_provider_config() -> ProviderConfig:
    """Read the provider config for a single request."""
    return get_settings().provider_config()
