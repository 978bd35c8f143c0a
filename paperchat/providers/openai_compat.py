"""Adapter for OpenAI-compatible chat completion endpoints.

Covers OpenAI itself, Ollama's ``/v1`` endpoint and custom compatible
servers. Responses are Server-Sent Events decoded by StreamDecoder.
"""

import logging
from collections.abc import AsyncGenerator, Sequence

import httpx

from paperchat.errors import NetworkError, ProtocolError
from paperchat.models import ContextBundle, Message, ProviderConfig
from paperchat.providers.base import (
    ProviderAdapter,
    RequestDescriptor,
    conversation_messages,
    raise_for_provider_status,
)
from paperchat.streaming import StreamDecoder

logger = logging.getLogger(__name__)


class DeltaStreamingAdapter(ProviderAdapter):
    """True incremental streaming over ``data: <json>`` frames."""

    def build_request(
        self,
        history: Sequence[Message],
        user_message: str,
        context: ContextBundle | None,
        config: ProviderConfig,
    ) -> RequestDescriptor:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if config.credential:
            headers["Authorization"] = f"Bearer {config.credential}"

        messages = [{"role": "system", "content": self.system_prompt(context)}]
        messages.extend(conversation_messages(history, user_message))

        return RequestDescriptor(
            url=config.endpoint,
            headers=headers,
            body={
                "model": config.model,
                "max_tokens": config.max_tokens,
                "stream": True,
                "messages": messages,
            },
            timeout=config.timeout,
        )

    async def stream(self, descriptor: RequestDescriptor) -> AsyncGenerator[str]:
        """Yield deltas as frames arrive.

        Raises:
            AuthError: If the credential is rejected.
            RateLimitError: If the provider throttles the request.
            ProtocolError: On other error statuses or a stream without frames.
            NetworkError: On connection failures and timeouts.
        """
        decoder = StreamDecoder()
        try:
            async with self._client(descriptor) as client, client.stream(
                "POST", descriptor.url, headers=descriptor.headers, json=descriptor.body
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise_for_provider_status(response)

                async for chunk in response.aiter_bytes():
                    for delta in decoder.feed(chunk):
                        yield delta
                    if decoder.done:
                        break
                else:
                    for delta in decoder.flush():
                        yield delta
        except httpx.TimeoutException as e:
            raise NetworkError("request timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(str(e) or type(e).__name__) from e

        if not decoder.done and decoder.frames == 0:
            raise ProtocolError("stream ended without any data frames")
        logger.debug(f"Stream finished after {decoder.frames} frames")
