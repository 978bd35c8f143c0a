"""Provider adapter interface shared by every protocol family."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from paperchat.errors import AuthError, ProtocolError, RateLimitError
from paperchat.models import ContextBundle, Message, MessageRole, MessageStatus, ProviderConfig

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant helping with academic research. You can help users "
    "understand papers, suggest research directions, and answer questions about "
    "academic content."
)


class RequestDescriptor(BaseModel):
    """A fully built provider request.

    Attributes:
        url: Endpoint to POST to.
        headers: HTTP headers, credentials included.
        body: JSON body.
        timeout: Request timeout in seconds.
        word_delay: Inter-delta pause used by monolithic adapters.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    headers: dict[str, str]
    body: dict[str, Any]
    timeout: float
    word_delay: float = 0.0


def conversation_messages(history: Sequence[Message], user_message: str) -> list[dict[str, str]]:
    """Render completed history plus the new user message as wire messages.

    Failed turns and error messages are not part of what the model sees.
    """
    messages = [
        {"role": message.role.value, "content": message.content}
        for message in history
        if message.status == MessageStatus.COMPLETE
        and message.role in (MessageRole.USER, MessageRole.ASSISTANT)
    ]
    messages.append({"role": "user", "content": user_message})
    return messages


def raise_for_provider_status(response: httpx.Response) -> None:
    """Map an error status to the engine's error taxonomy.

    The response body must already be read.

    Raises:
        AuthError: On 401 or 403.
        RateLimitError: On 429.
        ProtocolError: On any other non-2xx status.
    """
    if response.is_success:
        return

    status = response.status_code
    detail = f"HTTP {status}: {response.text[:200]}"
    logger.warning(f"Provider returned {detail}")

    if status in (401, 403):
        raise AuthError(detail)
    if status == 429:
        retry_after = response.headers.get("retry-after")
        try:
            seconds = float(retry_after) if retry_after else None
        except ValueError:
            seconds = None
        raise RateLimitError(detail, retry_after=seconds)
    raise ProtocolError(detail)


class ProviderAdapter(ABC):
    """Builds requests for one protocol family and streams text deltas back.

    Adapters hold no conversation state and never retry; retry policy is
    the caller's concern.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Initialize the adapter.

        Args:
            transport: Optional httpx transport, mainly for tests.
        """
        self._transport = transport

    def _client(self, descriptor: RequestDescriptor) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=descriptor.timeout, transport=self._transport)

    @staticmethod
    def system_prompt(context: ContextBundle | None) -> str:
        return context.system_prompt if context is not None else DEFAULT_SYSTEM_PROMPT

    @abstractmethod
    def build_request(
        self,
        history: Sequence[Message],
        user_message: str,
        context: ContextBundle | None,
        config: ProviderConfig,
    ) -> RequestDescriptor:
        """Build the request for a new user message.

        Args:
            history: Completed conversation so far, oldest first.
            user_message: The message being sent.
            context: Grounding context, or None for the default system prompt.
            config: Provider settings for this call.

        Returns:
            The request descriptor to pass to ``stream``.
        """

    @abstractmethod
    def stream(self, descriptor: RequestDescriptor) -> AsyncIterator[str]:
        """Send the request and yield text deltas as they become available."""
