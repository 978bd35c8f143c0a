"""Adapters for providers that return the whole answer in one payload.

The answer is replayed as word-sized deltas with a short pause between them,
so callers consume every provider through the same async iterator. The pause
is a UX compatibility shim, not a latency guarantee; set
``ProviderConfig.word_delay`` to 0 to disable it.
"""

import asyncio
import logging
import re
from abc import abstractmethod
from collections.abc import AsyncGenerator, Sequence
from typing import Any

import httpx

from paperchat.errors import NetworkError, ProtocolError
from paperchat.models import ContextBundle, Message, ProviderConfig
from paperchat.providers.base import (
    ProviderAdapter,
    RequestDescriptor,
    conversation_messages,
    raise_for_provider_status,
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"

# Split after whitespace that is followed by a word, keeping every character.
_WORD_BOUNDARY_RE = re.compile(r"(?<=\s)(?=\S)")


def split_words(text: str) -> list[str]:
    """Split text into word-sized pieces whose concatenation is ``text``.

    Example:
        split_words("Hello big world") -> ["Hello ", "big ", "world"]
    """
    return [piece for piece in _WORD_BOUNDARY_RE.split(text) if piece]


class MonolithicAdapter(ProviderAdapter):
    """Base for request/response providers adapted to incremental output."""

    @abstractmethod
    def extract_text(self, payload: Any) -> str:
        """Return the completion text from a decoded response body.

        Raises:
            ProtocolError: If the payload does not have the expected shape.
        """

    async def stream(self, descriptor: RequestDescriptor) -> AsyncGenerator[str]:
        try:
            async with self._client(descriptor) as client:
                response = await client.post(
                    descriptor.url, headers=descriptor.headers, json=descriptor.body
                )
        except httpx.TimeoutException as e:
            raise NetworkError("request timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(str(e) or type(e).__name__) from e

        raise_for_provider_status(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise ProtocolError(f"response is not JSON: {response.text[:200]}") from e

        text = self.extract_text(payload)
        words = split_words(text)
        logger.debug(f"Replaying {len(words)} words with {descriptor.word_delay}s delay")

        for index, word in enumerate(words):
            if index and descriptor.word_delay > 0:
                await asyncio.sleep(descriptor.word_delay)
            yield word


class AnthropicAdapter(MonolithicAdapter):
    """Anthropic Messages API, called without streaming."""

    def build_request(
        self,
        history: Sequence[Message],
        user_message: str,
        context: ContextBundle | None,
        config: ProviderConfig,
    ) -> RequestDescriptor:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": config.credential or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        return RequestDescriptor(
            url=config.endpoint,
            headers=headers,
            body={
                "model": config.model,
                "max_tokens": config.max_tokens,
                "stream": False,
                "system": self.system_prompt(context),
                "messages": conversation_messages(history, user_message),
            },
            timeout=config.timeout,
            word_delay=config.word_delay,
        )

    def extract_text(self, payload: Any) -> str:
        try:
            blocks = payload["content"]
        except (KeyError, TypeError) as e:
            raise ProtocolError(f"unexpected response shape: {str(payload)[:200]}") from e

        if not isinstance(blocks, list) or not blocks:
            raise ProtocolError("response contains no content blocks")

        try:
            return "".join(
                block["text"] for block in blocks if block.get("type", "text") == "text"
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ProtocolError(f"malformed content block: {str(blocks)[:200]}") from e
