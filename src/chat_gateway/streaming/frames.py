"""
Frame decoders for streamed HTTP bodies.

A decoder is fed raw chunks exactly as the network layer delivers them
(arbitrary boundaries, str or bytes) and hands back complete logical frames:
one per SSE `data:` record or one per NDJSON line. Frames are decoded JSON
objects. A malformed record is logged as a DecodeError and skipped; it never
aborts the stream. An incomplete trailing line is carried to the next chunk
and silently discarded at end of stream.
"""

import codecs
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional, Union

from ..core.cancellation import CancellationToken
from ..core.errors import DecodeError

logger = logging.getLogger(__name__)

Frame = Dict[str, Any]

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class FrameDecoder(ABC):
    """Incremental line-oriented decoder. One instance per stream."""

    def __init__(self, provider: Optional[str] = None):
        self.provider = provider
        self.done = False
        self.decode_errors: List[DecodeError] = []
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[str, bytes]) -> List[Frame]:
        """
        Add a chunk and return every frame it completed.

        Args:
            chunk: Next piece of the body, text or UTF-8 bytes

        Returns:
            Complete frames, in stream order
        """
        if self.done:
            return []

        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)

        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")

        frames = []
        for line in lines:
            frame = self._parse_line(line.rstrip("\r"))
            if self.done:
                self._buffer = ""
                break
            if frame is not None:
                frames.append(frame)
        return frames

    def finish(self) -> List[Frame]:
        """Signal end of stream. A pending partial line is dropped."""
        self._buffer += self._utf8.decode(b"", final=True)
        if self._buffer.strip():
            logger.debug(
                f"Discarding {len(self._buffer)} chars of incomplete trailing line"
            )
        self._buffer = ""
        return []

    @abstractmethod
    def _parse_line(self, line: str) -> Optional[Frame]:
        """Turn one complete line into a frame, or None if it carries none."""

    def _decode_json(self, payload: str) -> Optional[Frame]:
        try:
            value = json.loads(payload)
        except json.JSONDecodeError as e:
            self._record_error(f"Malformed JSON frame: {e}", payload)
            return None

        if not isinstance(value, dict):
            self._record_error("Frame is not a JSON object", payload)
            return None
        return value

    def _record_error(self, message: str, payload: str) -> None:
        error = DecodeError(message, payload=payload, provider=self.provider)
        self.decode_errors.append(error)
        logger.warning(f"Skipping frame from {self.provider or 'stream'}: {message}")

    def reject(self, frame: Frame, error: DecodeError) -> None:
        """Record a well-formed frame whose shape the consumer could not interpret."""
        self._record_error(error.message, json.dumps(frame))


def as_object(value: Any, field: str) -> Dict[str, Any]:
    """
    A nested JSON object from a frame; absent or null reads as empty.

    Raises:
        DecodeError: If the value is present but not an object
    """
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"{field} is not an object")
    return value


def as_text(value: Any, field: str) -> Optional[str]:
    """
    A string field from a frame, or None when absent.

    Raises:
        DecodeError: If the value is present but not a string
    """
    if value is None or isinstance(value, str):
        return value
    raise DecodeError(f"{field} is not a string")


def as_count(value: Any, field: str) -> Optional[int]:
    """
    A numeric field (token count, duration) from a frame, or None when absent.

    Raises:
        DecodeError: If the value is present but not a number
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"{field} is not a number")
    return int(value)


class SSEFrameDecoder(FrameDecoder):
    """
    Server-Sent-Events decoder.

    Only lines carrying the data prefix are records; `event:`, `id:`,
    comments and blank separators are ignored. A `[DONE]` payload ends
    the frame sequence without producing a frame.
    """

    def __init__(self, prefix: str = SSE_DATA_PREFIX, provider: Optional[str] = None):
        super().__init__(provider=provider)
        self._prefix = prefix

    def _parse_line(self, line: str) -> Optional[Frame]:
        if not line.startswith(self._prefix):
            return None

        payload = line[len(self._prefix):]
        if payload.startswith(" "):
            payload = payload[1:]

        if payload.strip() == SSE_DONE:
            self.done = True
            return None
        if not payload.strip():
            return None

        return self._decode_json(payload)


class NDJSONFrameDecoder(FrameDecoder):
    """Newline-delimited JSON decoder: every non-blank line is one frame."""

    def _parse_line(self, line: str) -> Optional[Frame]:
        if not line.strip():
            return None
        return self._decode_json(line)


async def iter_frames(
    chunks: AsyncIterable[Union[str, bytes]],
    decoder: FrameDecoder,
    cancellation_token: Optional[CancellationToken] = None,
) -> AsyncIterator[Frame]:
    """
    Drive a decoder over an async chunk source.

    Cancellation is checked after every chunk read and before every frame
    is handed out, so at most one chunk is read past a cancel() call.

    Raises:
        ChatCancelledError: If the token is cancelled mid-stream
    """
    async for chunk in chunks:
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled(decoder.provider)

        for frame in decoder.feed(chunk):
            if cancellation_token is not None:
                cancellation_token.raise_if_cancelled(decoder.provider)
            yield frame

        if decoder.done:
            return

    decoder.finish()
