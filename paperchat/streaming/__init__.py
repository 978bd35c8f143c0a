"""Streaming transport decoding.

Responsibilities:
    - Reassembling newline-delimited frames across arbitrary chunk boundaries
    - Recognizing the end-of-stream sentinel
    - Tolerating malformed frames without aborting the stream
"""

from paperchat.streaming.decoder import DATA_PREFIX, DONE_SENTINEL, StreamDecoder

__all__ = ["DATA_PREFIX", "DONE_SENTINEL", "StreamDecoder"]
