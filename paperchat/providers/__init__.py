"""Model provider adapters.

Normalizes the wire protocols of several providers into one async iterator
of text deltas.

Responsibilities:
    - Building provider-specific requests from the conversation
    - Attaching credentials per request
    - Decoding incremental or monolithic responses into deltas
    - Mapping HTTP failures onto the engine's error taxonomy
"""

from paperchat.providers.anthropic import AnthropicAdapter, MonolithicAdapter, split_words
from paperchat.providers.base import ProviderAdapter, RequestDescriptor
from paperchat.providers.factory import get_adapter, register_adapter
from paperchat.providers.openai_compat import DeltaStreamingAdapter

__all__ = [
    "AnthropicAdapter",
    "DeltaStreamingAdapter",
    "MonolithicAdapter",
    "ProviderAdapter",
    "RequestDescriptor",
    "get_adapter",
    "register_adapter",
    "split_words",
]
