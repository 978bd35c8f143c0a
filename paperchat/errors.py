"""Error taxonomy for the chat engine.

Every error raised while serving a turn derives from EngineError and carries
a ``user_message``: the human-readable text that replaces the content of the
failed assistant message.
"""


class EngineError(Exception):
    """Base class for errors surfaced by the chat engine."""

    default_message = "Something went wrong while talking to the AI service."

    def __init__(self, detail: str | None = None, user_message: str | None = None) -> None:
        self.detail = detail
        self.user_message = user_message or self.default_message
        super().__init__(detail or self.user_message)


class ConfigurationError(EngineError):
    """Raised when credential, endpoint or model is missing."""

    default_message = "AI service is not configured. Please check your settings."

    def __init__(self, detail: str) -> None:
        # The detail names the missing field, so show it as is.
        super().__init__(detail, user_message=detail)


class AuthError(EngineError):
    """Raised when the provider rejects the credential."""

    default_message = "Invalid API key. Please check your credentials."


class RateLimitError(EngineError):
    """Raised when the provider asks the caller to back off.

    Attributes:
        retry_after: Seconds suggested by the provider, when it sent one.
    """

    default_message = "Rate limit exceeded. Please try again later."

    def __init__(self, detail: str | None = None, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        message = self.default_message
        if retry_after is not None:
            message = f"Rate limit exceeded. Please try again in {retry_after:.0f} seconds."
        super().__init__(detail, user_message=message)


class ProtocolError(EngineError):
    """Raised when a response does not match the expected schema."""

    default_message = "Failed to get AI response. Please check your settings and try again."


class NetworkError(EngineError):
    """Raised on connection failures and timeouts."""

    default_message = "Could not reach the AI service. Please check your connection and try again."

    def __init__(self, detail: str | None = None) -> None:
        message = self.default_message
        if detail:
            message = f"Could not reach the AI service ({detail}). Please check your connection."
        super().__init__(detail, user_message=message)


class ExtractionError(EngineError):
    """Raised when text cannot be extracted from a document.

    Never fatal to a conversation: the extraction layer turns it into an
    annotation inside the assembled context.
    """

    default_message = "Failed to extract text from PDF."


class MessageRejectedError(ValueError):
    """Raised when send_message refuses a message without side effects."""

    pass
