"""Chat orchestration: conversation state, grounding, and streaming turns.

The orchestrator is the single entry point of the engine. One instance
serves one conversation:

1. **One stream at a time** - ``send_message`` checks and claims the
   in-flight slot before its first ``await``, so a second call made while a
   reply is streaming is rejected without touching any state.

2. **Grounding on demand** - extraction and context assembly run only when
   the paper selection changed since the last bundle (or on the first turn);
   otherwise the previous bundle is reused.

3. **Errors end the turn, not the conversation** - any provider, protocol
   or network error fails the in-flight message and leaves the history
   ready for the next message.

4. **Explicit events** - every delta, completion and failure is published as
   a ChatEvent to listeners, carrying the full accumulated content.
"""

import logging
from collections.abc import Callable, Sequence
from contextlib import aclosing

from paperchat.agent.context import ContextAssembler, selection_signature
from paperchat.errors import EngineError, MessageRejectedError, ProtocolError
from paperchat.models import (
    ChatEvent,
    ContextBundle,
    ExtractedDocument,
    Message,
    MessageRole,
    MessageStatus,
    Paper,
    ProviderConfig,
    ServiceKind,
)
from paperchat.parsing.cache import DocumentExtractionCache, ExtractionOptions
from paperchat.providers import ProviderAdapter, get_adapter

logger = logging.getLogger(__name__)

EventListener = Callable[[ChatEvent], None]
ChangeListener = Callable[[list[Message]], None]
AdapterFactory = Callable[[ServiceKind], ProviderAdapter]


class ChatOrchestrator:
    """Owns one conversation and serves its turns.

    Example:
        orchestrator = ChatOrchestrator()
        orchestrator.select_papers(papers)
        reply = await orchestrator.send_message("Compare the methods", config)
    """

    def __init__(
        self,
        assembler: ContextAssembler | None = None,
        extraction_cache: DocumentExtractionCache | None = None,
        adapter_factory: AdapterFactory = get_adapter,
        extraction_options: ExtractionOptions | None = None,
        on_conversation_changed: ChangeListener | None = None,
        keep_partial_on_error: bool = False,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            assembler: Context assembler; a default one is created if omitted.
            extraction_cache: Shared extraction cache; a private one if omitted.
            adapter_factory: Returns the adapter for a service kind.
            extraction_options: Options used for paper extraction.
            on_conversation_changed: Persistence hook called after each turn.
            keep_partial_on_error: Keep streamed text and append the error
                instead of replacing it.
        """
        self._assembler = assembler or ContextAssembler()
        self._extraction_cache = extraction_cache or DocumentExtractionCache()
        self._adapter_factory = adapter_factory
        self._extraction_options = extraction_options
        self._on_conversation_changed = on_conversation_changed
        self._keep_partial_on_error = keep_partial_on_error
        self._listeners: list[EventListener] = []

        self._history: list[Message] = []
        self._in_flight: Message | None = None
        self._selected: tuple[Paper, ...] = ()
        self._documents: dict[str, ExtractedDocument] = {}
        self._bundle: ContextBundle | None = None
        self._signature: str | None = None
        self._generation = 0

    # -- read-only state -------------------------------------------------

    @property
    def history(self) -> tuple[Message, ...]:
        """Finalized messages, oldest first."""
        return tuple(self._history)

    @property
    def messages(self) -> tuple[Message, ...]:
        """History plus the message currently streaming, if any."""
        if self._in_flight is None:
            return tuple(self._history)
        return (*self._history, self._in_flight)

    @property
    def is_streaming(self) -> bool:
        return self._in_flight is not None

    @property
    def selected_papers(self) -> tuple[Paper, ...]:
        return self._selected

    @property
    def context_bundle(self) -> ContextBundle | None:
        return self._bundle

    # -- listeners -------------------------------------------------------

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- commands --------------------------------------------------------

    def select_papers(self, papers: Sequence[Paper]) -> None:
        """Set the papers used for grounding, in the order given."""
        self._selected = tuple(papers)

    def new_session(self) -> None:
        """Start over: clear history, grounding state, and abort any stream.

        A stream still in flight stops at its next delta and its message is
        dropped without events.
        """
        if self._in_flight is not None:
            logger.info(f"Aborting in-flight message {self._in_flight.id} for new session")
        self._generation += 1
        self._history.clear()
        self._in_flight = None
        self._documents.clear()
        self._bundle = None
        self._signature = None

    async def send_message(
        self,
        text: str,
        config: ProviderConfig,
        on_event: EventListener | None = None,
    ) -> Message:
        """Send a user message and stream the assistant's reply.

        Args:
            text: The user's message.
            config: Provider settings for this call.
            on_event: Optional listener for this turn only.

        Returns:
            The finalized assistant (or error) message.

        Raises:
            MessageRejectedError: If the text is blank or a reply is already
                streaming. Nothing is changed in that case.
        """
        if not text or not text.strip():
            raise MessageRejectedError("Message must not be empty")
        if self._in_flight is not None:
            raise MessageRejectedError("Another message is still streaming")

        generation = self._generation
        user_message = Message(
            role=MessageRole.USER, content=text.strip(), status=MessageStatus.COMPLETE
        )
        prior_history = list(self._history)
        self._history.append(user_message)

        reply = Message(role=MessageRole.ASSISTANT, status=MessageStatus.STREAMING)
        self._in_flight = reply
        listeners = [*self._listeners, *([on_event] if on_event else [])]

        try:
            config.ensure_ready()
            context = await self._prepare_context(generation)
            if generation != self._generation:
                return reply

            adapter = self._adapter_factory(config.service_kind)
            descriptor = adapter.build_request(prior_history, user_message.content, context, config)
            logger.info(
                f"Streaming message {reply.id} via {config.service_kind.value} ({config.model})"
            )

            async with aclosing(adapter.stream(descriptor)) as deltas:
                async for delta in deltas:
                    if generation != self._generation:
                        logger.info(f"Discarding message {reply.id}: session was reset")
                        return reply
                    reply.content += delta
                    self._publish(
                        listeners,
                        ChatEvent(
                            type="delta", message_id=reply.id, content=reply.content, delta=delta
                        ),
                    )
        except EngineError as e:
            if generation == self._generation:
                logger.warning(f"Message {reply.id} failed: {e}")
                self._fail(reply, e, listeners)
            return reply
        except Exception as e:
            if generation == self._generation:
                logger.exception(f"Unexpected error while streaming message {reply.id}")
                self._fail(reply, ProtocolError(str(e)), listeners)
            return reply
        finally:
            if generation == self._generation:
                self._in_flight = None

        if generation != self._generation:
            return reply

        reply.status = MessageStatus.COMPLETE
        self._history.append(reply)
        self._publish(listeners, ChatEvent(type="complete", message_id=reply.id, content=reply.content))
        self._notify_changed()
        return reply

    # -- internals -------------------------------------------------------

    async def _prepare_context(self, generation: int) -> ContextBundle | None:
        """Return the bundle for the current selection, rebuilding if needed.

        The selection is captured before extraction; if the session is reset
        while extraction is pending, no orchestrator state is written.
        """
        selected = list(self._selected)
        if self._signature is not None and self._signature == selection_signature(selected):
            return self._bundle

        selected_ids = {paper.id for paper in selected}
        documents = {
            paper_id: document
            for paper_id, document in self._documents.items()
            if paper_id in selected_ids and document.error is None
        }
        pending = [paper for paper in selected if paper.id not in documents]
        if pending:
            documents.update(
                await self._extraction_cache.extract_many(pending, self._extraction_options)
            )
            if generation != self._generation:
                logger.info("Dropping extracted documents: session was reset")
                return None

        self._documents = documents
        bundle = self._assembler.build(selected, documents, self._signature)
        if bundle is not None:
            self._bundle = bundle
            self._signature = bundle.signature
        return self._bundle

    def _fail(self, reply: Message, error: EngineError, listeners: list[EventListener]) -> None:
        if self._keep_partial_on_error and reply.content:
            reply.content = f"{reply.content}\n\n[{error.user_message}]"
        else:
            reply.content = error.user_message
        reply.role = MessageRole.ERROR
        reply.status = MessageStatus.FAILED
        self._history.append(reply)
        self._publish(listeners, ChatEvent(type="error", message_id=reply.id, content=reply.content))
        self._notify_changed()

    def _publish(self, listeners: list[EventListener], event: ChatEvent) -> None:
        for listener in listeners:
            listener(event)

    def _notify_changed(self) -> None:
        if self._on_conversation_changed is not None:
            self._on_conversation_changed(list(self._history))
