"""Session registry for chat orchestrators.

Each chat session gets its own ChatOrchestrator; all sessions share one
DocumentExtractionCache so a paper extracted for one conversation is not
extracted again for another.
"""

import logging
import uuid
from collections.abc import Callable

from paperchat.agent.config import ChatSettings, get_settings
from paperchat.agent.context import ContextAssembler
from paperchat.agent.orchestrator import AdapterFactory, ChatOrchestrator
from paperchat.models import Message
from paperchat.parsing.cache import DocumentExtractionCache
from paperchat.providers import get_adapter

logger = logging.getLogger(__name__)


class SessionStore:
    """Creates and tracks one ChatOrchestrator per session id."""

    def __init__(
        self,
        settings: ChatSettings | None = None,
        adapter_factory: AdapterFactory = get_adapter,
        extraction_cache: DocumentExtractionCache | None = None,
        on_conversation_changed: Callable[[str, list[Message]], None] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            settings: Settings used for the extraction layer.
                      Loads from environment if not provided.
            adapter_factory: Adapter factory handed to every orchestrator.
            extraction_cache: Shared cache; built from settings if omitted.
            on_conversation_changed: Persistence hook, called with the
                session id and its messages after every turn.
        """
        self._settings = settings or get_settings()
        self._adapter_factory = adapter_factory
        self._on_conversation_changed = on_conversation_changed
        self.extraction_cache = extraction_cache or DocumentExtractionCache(
            capacity=self._settings.pdf_cache_size,
            timeout=self._settings.pdf_extraction_timeout,
        )
        self._sessions: dict[str, ChatOrchestrator] = {}

    def new_session_id(self) -> str:
        return str(uuid.uuid4())

    def get(self, session_id: str) -> ChatOrchestrator | None:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> ChatOrchestrator:
        """Return the session's orchestrator, creating it on first use."""
        orchestrator = self._sessions.get(session_id)
        if orchestrator is None:
            orchestrator = ChatOrchestrator(
                assembler=ContextAssembler(),
                extraction_cache=self.extraction_cache,
                adapter_factory=self._adapter_factory,
                extraction_options=self._settings.extraction_options(),
                on_conversation_changed=self._change_hook(session_id),
            )
            self._sessions[session_id] = orchestrator
            logger.info(f"Created chat session {session_id}")
        return orchestrator

    def _change_hook(self, session_id: str) -> Callable[[list[Message]], None] | None:
        hook = self._on_conversation_changed
        if hook is None:
            return None
        return lambda messages: hook(session_id, messages)

    def __len__(self) -> int:
        return len(self._sessions)


# Module-level singleton instance
_session_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Get or create the global session store.

    Returns:
        The SessionStore instance.
    """
    global _session_store
    if _session_store is None:
        _session_store = SessionStore()
    return _session_store
