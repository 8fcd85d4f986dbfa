"""
Folds a sequence of ``ResponseFrame`` objects into one assistant ``Message``.

The reducer:

  1. Forwards every non-empty content delta to the caller's sink, before
     appending it to the in-progress reply.
  2. Feeds tool-call deltas into a ``ToolCallAssembler``.
  3. Aborts on the first frame that carries a decode error.
  4. On the ``done`` frame, attaches usage, finalizes tool calls and
     returns the frozen ``Message``.

If the frames run out before ``done`` the reply is discarded and
``TruncatedStreamError`` is raised.  Apart from the sink there are no side
effects, so the same algorithm serves sync and async frame sources.
"""

from __future__ import annotations

import logging
from typing import AsyncIterable, Callable, Iterable

from ollie.errors import TruncatedStreamError
from ollie.llm.tool_call_assembler import ToolCallAssembler
from ollie.llm.types import Message, ResponseFrame, Role

logger = logging.getLogger(__name__)

Sink = Callable[[str], object]


class _ReplyBuilder:
    """Transient, mutable reply local to one reducer run."""

    def __init__(self, model: str | None) -> None:
        self.content_parts: list[str] = []
        self.assembler = ToolCallAssembler()
        self.model = model
        self.frames = 0

    def apply(self, frame: ResponseFrame, sink: Sink | None) -> Message | None:
        """Fold one frame.  Returns the finished message on ``done``."""
        self.frames += 1

        if frame.content_delta:
            if sink is not None:
                sink(frame.content_delta)
            self.content_parts.append(frame.content_delta)

        if frame.tool_call_deltas:
            self.assembler.feed(frame.tool_call_deltas)

        if frame.error is not None:
            logger.warning("Stream aborted after %d frames: %s", self.frames, frame.error)
            raise frame.error

        if frame.model:
            self.model = frame.model

        if frame.done:
            tool_calls = self.assembler.finalize()
            return Message(
                role=Role.ASSISTANT,
                content="".join(self.content_parts),
                tool_calls=tuple(tool_calls),
                model=self.model,
                usage=frame.usage,
            )
        return None

    def truncated(self) -> TruncatedStreamError:
        logger.warning("Stream ended after %d frames without a done marker", self.frames)
        return TruncatedStreamError(
            f"Response stream ended before completion ({self.frames} frames received)"
        )


class StreamingReducer:
    """
    Reduces a frame stream to a single assistant ``Message``.

    Parameters
    ----------
    model:
        Model name recorded on the reply when the stream does not name one.
    """

    def __init__(self, model: str | None = None) -> None:
        self.model = model

    def run(
        self,
        frames: Iterable[ResponseFrame],
        sink: Sink | None = None,
    ) -> Message:
        """Consume a synchronous frame source."""
        builder = _ReplyBuilder(self.model)
        iterator = iter(frames)
        try:
            for frame in iterator:
                message = builder.apply(frame, sink)
                if message is not None:
                    return message
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()
        raise builder.truncated()

    async def arun(
        self,
        frames: AsyncIterable[ResponseFrame],
        sink: Sink | None = None,
    ) -> Message:
        """Consume an asynchronous frame source; the sink is still called synchronously."""
        builder = _ReplyBuilder(self.model)
        iterator = frames.__aiter__()
        try:
            async for frame in iterator:
                message = builder.apply(frame, sink)
                if message is not None:
                    return message
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
        raise builder.truncated()
