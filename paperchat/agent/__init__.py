"""Conversation engine: configuration, grounding context, and orchestration.

Responsibilities:
    - Reading provider and extraction settings from the environment
    - Assembling paper grounding context for the selected papers
    - Conversation and message state across streaming turns
    - Publishing delta, completion, and error events

Maintains clean separation from the HTTP layer.
"""

from paperchat.agent.config import ChatSettings, get_provider_config, get_settings
from paperchat.agent.context import ContextAssembler, selection_signature
from paperchat.agent.orchestrator import ChatOrchestrator

__all__ = [
    "ChatOrchestrator",
    "ChatSettings",
    "ContextAssembler",
    "get_provider_config",
    "get_settings",
    "selection_signature",
]
