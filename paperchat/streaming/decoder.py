"""Incremental decoder for Server-Sent Events chat completion streams.

Turns raw network chunks into text deltas. Chunks may split a frame (or a
multi-byte character) anywhere; the decoder buffers the incomplete tail and
prepends it to the next chunk, so the deltas produced never depend on where
the transport cut the stream.
"""

import codecs
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class StreamDecoder:
    """Stateful decoder for ``data: <json>`` frames.

    Example:
        decoder = StreamDecoder()
        for chunk in chunks:
            for delta in decoder.feed(chunk):
                ...
        for delta in decoder.flush():
            ...
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._done = False
        self.frames = 0

    @property
    def done(self) -> bool:
        """Whether the end-of-stream sentinel has been seen."""
        return self._done

    def feed(self, chunk: bytes | str) -> list[str]:
        """Decode a chunk and return the deltas of every complete frame in it.

        Args:
            chunk: Raw bytes or text as delivered by the transport.

        Returns:
            Text deltas in stream order. Empty once the stream is done.
        """
        if self._done:
            return []

        text = self._utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += text

        *lines, self._buffer = self._buffer.split("\n")
        return self._decode_lines(lines)

    def flush(self) -> list[str]:
        """Decode whatever is left once the transport has closed."""
        if self._done:
            return []

        tail = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        return self._decode_lines(tail.split("\n"))

    def _decode_lines(self, lines: list[str]) -> list[str]:
        deltas: list[str] = []
        for line in lines:
            delta = self._decode_line(line)
            if self._done:
                break
            if delta:
                deltas.append(delta)
        return deltas

    def _decode_line(self, line: str) -> str | None:
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            self._done = True
            return None

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed stream frame: {payload[:80]!r}")
            return None

        self.frames += 1
        return _extract_delta(data)


def _extract_delta(data: Any) -> str | None:
    """Pull ``choices[0].delta.content`` out of a decoded frame."""
    try:
        content = data["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        logger.debug("Stream frame has no delta content")
        return None

    if isinstance(content, str) and content:
        return content
    return None
