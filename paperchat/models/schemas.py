from enum import Enum

from pydantic import BaseModel, Field, field_validator

from paperchat.models import Message, Paper


class StreamStatus(str, Enum):
    """Status values for streaming updates."""

    RECEIVED = "received"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


class ChatRequest(BaseModel):
    """Request payload for chat completion endpoint.

    Attributes:
        message: User's question or prompt.
        session_id: Optional session for conversation continuity.
    """

    message: str = Field(..., min_length=1)
    session_id: str | None = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class StreamChunk(BaseModel):
    """A chunk of streamed response data.

    Attributes:
        content: The text delta of this chunk.
        done: Whether this is the final chunk.
        status: Current processing status (received, generating, complete, error).
        error: User-facing error text if the turn failed.
        session_id: Session the chunk belongs to.
        message_id: The assistant message being streamed.
    """

    content: str
    done: bool
    status: StreamStatus | None = None
    error: str | None = None
    session_id: str | None = None
    message_id: int | None = None


class PaperSelectionRequest(BaseModel):
    """Papers to ground the conversation on, in display order."""

    papers: list[Paper] = Field(default_factory=list)


class PaperSelectionResponse(BaseModel):
    """Result of updating a session's paper selection.

    Attributes:
        session_id: Session that was updated.
        count: Number of selected papers.
        signature: Selection signature of the new selection.
    """

    session_id: str
    count: int = Field(ge=0)
    signature: str


class ConversationResponse(BaseModel):
    """Current state of a chat session.

    Attributes:
        session_id: Session identifier.
        messages: Finalized messages plus the one streaming, oldest first.
        is_streaming: Whether a reply is in flight.
    """

    session_id: str
    messages: list[Message]
    is_streaming: bool


class ExtractRequest(BaseModel):
    """Request to extract text from a downloaded PDF.

    Attributes:
        path: Local path of the PDF.
        paper_id: Paper the document belongs to.
        max_pages: Maximum pages to extract.
        include_metadata: Prepend the PDF metadata block.
    """

    path: str = Field(..., min_length=1)
    paper_id: str = ""
    max_pages: int | None = Field(default=None, ge=1, le=500)
    include_metadata: bool = True
