"""Adapter selection keyed on the provider's service kind."""

import httpx

from paperchat.models import ServiceKind
from paperchat.providers.anthropic import AnthropicAdapter
from paperchat.providers.base import ProviderAdapter
from paperchat.providers.openai_compat import DeltaStreamingAdapter

_ADAPTERS: dict[ServiceKind, type[ProviderAdapter]] = {
    ServiceKind.OPENAI: DeltaStreamingAdapter,
    ServiceKind.OLLAMA: DeltaStreamingAdapter,
    ServiceKind.CUSTOM: DeltaStreamingAdapter,
    ServiceKind.ANTHROPIC: AnthropicAdapter,
}


def register_adapter(service_kind: ServiceKind, adapter_class: type[ProviderAdapter]) -> None:
    """Route a service kind to a different adapter class."""
    _ADAPTERS[ServiceKind(service_kind)] = adapter_class


def get_adapter(
    service_kind: ServiceKind | str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderAdapter:
    """Create the adapter for a service kind.

    Args:
        service_kind: The provider family from ProviderConfig.
        transport: Optional httpx transport passed to the adapter.

    Returns:
        A new adapter instance.

    Raises:
        ValueError: If no adapter is registered for the kind.
    """
    kind = ServiceKind(service_kind)
    try:
        adapter_class = _ADAPTERS[kind]
    except KeyError:
        raise ValueError(f"No provider adapter registered for {kind.value!r}") from None
    return adapter_class(transport=transport)
