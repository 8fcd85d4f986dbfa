"""
Byte stream -> ``ResponseFrame`` decoding.

``StreamDecoder`` owns the line framing: it buffers partial reads until a
full record is available, hands each record to a provider ``WireDecoder``
and stops at the first ``done`` frame.  It can be consumed with either
``for`` (synchronous byte source) or ``async for`` (asynchronous byte source,
e.g. ``httpx.Response.aiter_bytes()``), but only once.
"""

from __future__ import annotations

import codecs
import logging
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, Union

from ollie.errors import DecodeError
from ollie.llm.providers.base import WireDecoder
from ollie.llm.types import ResponseFrame

logger = logging.getLogger(__name__)

ByteSource = Union[Iterable[bytes], AsyncIterable[bytes]]


class StreamDecoder:
    """
    Lazy, forward-only sequence of frames read from *source*.

    Parameters
    ----------
    source:
        Chunks of the response body, split at arbitrary points.
    decoder:
        Provider-specific record decoder.  Must be a fresh instance; decoders
        may carry per-stream state.
    encoding:
        Text encoding of the body.  Undecodable bytes are replaced.
    """

    def __init__(
        self,
        source: ByteSource,
        decoder: WireDecoder,
        encoding: str = "utf-8",
    ) -> None:
        self._source = source
        self._decoder = decoder
        self._text = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._started = False
        self.done = False

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[ResponseFrame]:
        self._claim()
        yield from self._iter_sync_source()

    async def __aiter__(self) -> AsyncIterator[ResponseFrame]:
        self._claim()
        if not hasattr(self._source, "__aiter__"):
            frames = self._iter_sync_source()
            try:
                for frame in frames:
                    yield frame
            finally:
                frames.close()
            return
        try:
            async for chunk in self._source:  # type: ignore[union-attr]
                for frame in self._feed(chunk):
                    yield frame
                if self.done:
                    return
            for frame in self._flush():
                yield frame
        finally:
            aclose = getattr(self._source, "aclose", None)
            if aclose is not None:
                await aclose()

    def _iter_sync_source(self) -> Iterator[ResponseFrame]:
        try:
            for chunk in self._source:  # type: ignore[union-attr]
                yield from self._feed(chunk)
                if self.done:
                    return
            yield from self._flush()
        finally:
            close = getattr(self._source, "close", None)
            if close is not None:
                close()

    def _claim(self) -> None:
        if self._started:
            raise RuntimeError(
                "StreamDecoder can only be consumed once; "
                "create a new decoder for a new stream"
            )
        self._started = True

    # ------------------------------------------------------------------
    # Framing
    # ------------------------------------------------------------------

    def _feed(self, chunk: bytes | str) -> Iterator[ResponseFrame]:
        if isinstance(chunk, bytes):
            chunk = self._text.decode(chunk)
        self._buffer += chunk

        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            yield from self._decode_line(line)
            if self.done:
                return

    def _flush(self) -> Iterator[ResponseFrame]:
        """Decode whatever is left once the source is exhausted."""
        self._buffer += self._text.decode(b"", final=True)
        remaining, self._buffer = self._buffer, ""
        if remaining.strip():
            yield from self._decode_line(remaining)

    def _decode_line(self, line: str) -> Iterator[ResponseFrame]:
        try:
            frames = self._decoder.decode(line)
        except DecodeError as exc:
            logger.warning("Failed to decode stream record: %s (%r)", exc, exc.record)
            yield ResponseFrame(error=exc)
            return

        for frame in frames:
            if frame.done:
                self.done = True
            yield frame
            if self.done:
                return
