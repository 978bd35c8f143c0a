"""Chat endpoints: SSE streaming, session state, and paper selection."""

import asyncio
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from paperchat.agent.config import get_provider_config
from paperchat.agent.context import selection_signature
from paperchat.agent.orchestrator import ChatOrchestrator
from paperchat.agent.sessions import SessionStore, get_session_store
from paperchat.models import ChatEvent, ProviderConfig
from paperchat.models.schemas import (
    ChatRequest,
    ConversationResponse,
    PaperSelectionRequest,
    PaperSelectionResponse,
    StreamChunk,
    StreamStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def _sse(chunk: StreamChunk) -> str:
    return f"data: {chunk.model_dump_json()}\n\n"


def _chunk_for_event(event: ChatEvent, session_id: str) -> StreamChunk:
    if event.type == "delta":
        return StreamChunk(
            content=event.delta,
            done=False,
            status=StreamStatus.GENERATING,
            session_id=session_id,
            message_id=event.message_id,
        )
    if event.type == "complete":
        return StreamChunk(
            content="",
            done=True,
            status=StreamStatus.COMPLETE,
            session_id=session_id,
            message_id=event.message_id,
        )
    return StreamChunk(
        content="",
        done=True,
        status=StreamStatus.ERROR,
        error=event.content,
        session_id=session_id,
        message_id=event.message_id,
    )


async def _stream_turn(
    orchestrator: ChatOrchestrator,
    session_id: str,
    message: str,
    config: ProviderConfig,
) -> AsyncGenerator[str]:
    """Run one turn and relay its events as SSE frames.

    The turn runs as its own task, so a client disconnect does not abort it;
    the orchestrator still finalizes the message.
    """
    queue: asyncio.Queue[ChatEvent | None] = asyncio.Queue()
    task = asyncio.create_task(orchestrator.send_message(message, config, on_event=queue.put_nowait))
    task.add_done_callback(lambda _: queue.put_nowait(None))

    yield _sse(StreamChunk(content="", done=False, status=StreamStatus.RECEIVED, session_id=session_id))

    finished = False
    while (event := await queue.get()) is not None:
        chunk = _chunk_for_event(event, session_id)
        finished = finished or chunk.done
        yield _sse(chunk)

    if finished:
        return

    error = None
    if not task.cancelled() and task.exception() is not None:
        error = str(task.exception())
        logger.warning(f"Chat turn for session {session_id} did not run: {error}")
    yield _sse(
        StreamChunk(
            content="",
            done=True,
            status=StreamStatus.ERROR if error else StreamStatus.COMPLETE,
            error=error,
            session_id=session_id,
        )
    )


@router.post("/stream")
async def chat_stream(
    request: ChatRequest,
    store: SessionStore = Depends(get_session_store),
    config: ProviderConfig = Depends(get_provider_config),
) -> StreamingResponse:
    """Stream the assistant's reply as Server-Sent Events.

    Each ``data:`` frame is a StreamChunk. The last frame has ``done=true``
    and, if the turn failed, the user-facing error text in ``error``.

    Raises:
        409: A reply is already streaming for this session.
        422: Empty or missing message.
    """
    session_id = request.session_id or store.new_session_id()
    orchestrator = store.get_or_create(session_id)

    if orchestrator.is_streaming:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A reply is already streaming for this session",
        )

    return StreamingResponse(
        _stream_turn(orchestrator, session_id, request.message, config),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Session-Id": session_id},
    )


def _require_session(store: SessionStore, session_id: str) -> ChatOrchestrator:
    orchestrator = store.get(session_id)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown session: {session_id}",
        )
    return orchestrator


@router.get("/sessions/{session_id}", response_model=ConversationResponse)
async def get_conversation(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> ConversationResponse:
    """Return the session's messages, including one still streaming."""
    orchestrator = _require_session(store, session_id)
    return ConversationResponse(
        session_id=session_id,
        messages=list(orchestrator.messages),
        is_streaming=orchestrator.is_streaming,
    )


@router.post("/sessions/{session_id}/reset", response_model=ConversationResponse)
async def reset_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> ConversationResponse:
    """Clear the conversation and its grounding context."""
    orchestrator = _require_session(store, session_id)
    orchestrator.new_session()
    logger.info(f"Reset chat session {session_id}")
    return ConversationResponse(session_id=session_id, messages=[], is_streaming=False)


@router.put("/sessions/{session_id}/papers", response_model=PaperSelectionResponse)
async def select_papers(
    session_id: str,
    request: PaperSelectionRequest,
    store: SessionStore = Depends(get_session_store),
) -> PaperSelectionResponse:
    """Set the papers the session is grounded on.

    The grounding context is rebuilt on the next message.
    """
    orchestrator = store.get_or_create(session_id)
    orchestrator.select_papers(request.papers)
    return PaperSelectionResponse(
        session_id=session_id,
        count=len(request.papers),
        signature=selection_signature(request.papers),
    )
