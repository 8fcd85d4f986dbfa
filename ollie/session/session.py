"""
Multi-turn conversation state.

A ``Session`` owns an ordered transcript of finalized messages.  Each
``update`` sends the whole transcript, streams the reply through the
caller's sink and appends the finished assistant message.  A turn is
all-or-nothing: if anything fails before the ``done`` frame the transcript
is left exactly as it was, so calling ``update`` again re-sends the same
conversation.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum

from ollie.errors import OllieError, SessionBusyError
from ollie.llm.client import Client
from ollie.llm.options import Options
from ollie.llm.reducer import Sink, StreamingReducer
from ollie.llm.tools import Tools
from ollie.llm.types import Message

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_WINDOW = 2048


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"


class Session:
    """
    Manages a single conversation.

    Parameters
    ----------
    client:
        Client providing the provider and transport.
    model:
        Model identifier, fixed for the life of the session.  Defaults to
        the client's model.
    endpoint:
        Overrides the client's endpoint for this session only.
    system:
        Optional system message to seed the transcript with.
    tools:
        Functions offered to the model on every turn.
    options:
        Generation options sent on every turn.
    """

    def __init__(
        self,
        client: Client,
        model: str | None = None,
        *,
        endpoint: str | None = None,
        system: str | None = None,
        tools: Tools | None = None,
        options: Options | None = None,
    ) -> None:
        if endpoint:
            client = client.with_endpoint(endpoint)
        self._client = client
        self._model = model or client.model
        if not self._model:
            raise ValueError("A session needs a model")
        self.tools = tools
        # Private copy; context_window_size edits stay in this session.
        base = options if options is not None else (client.options or Options())
        self.options = replace(base, stop=list(base.stop))
        self._transcript: list[Message] = []
        self._state = SessionState.IDLE

        if system:
            self.append_system(system)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def model(self) -> str:
        return self._model

    @property
    def endpoint(self) -> str:
        return self._client.endpoint

    @property
    def transcript(self) -> tuple[Message, ...]:
        """Read-only snapshot of the conversation so far."""
        return tuple(self._transcript)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def context_window_size(self) -> int:
        """Context window in tokens (``num_ctx``), 2048 when unset."""
        return self.options.num_ctx or DEFAULT_CONTEXT_WINDOW

    @context_window_size.setter
    def context_window_size(self, num_ctx: int) -> None:
        self.options.num_ctx = num_ctx

    def __len__(self) -> int:
        return len(self._transcript)

    # ------------------------------------------------------------------
    # Transcript
    # ------------------------------------------------------------------

    def append(self, message: Message) -> None:
        """Append an already finalized message."""
        self._check_idle()
        self._transcript.append(message)

    def append_system(self, text: str) -> None:
        self.append(Message.system(text))

    def append_user(self, text: str) -> None:
        self.append(Message.user(text))

    def append_assistant(self, text: str) -> None:
        self.append(Message.assistant(text))

    def append_tool(
        self,
        content: str,
        name: str | None = None,
        tool_call_id: str | None = None,
    ) -> None:
        """Feed a tool result back to the model on the next ``update``."""
        self.append(Message.tool(content, name=name, tool_call_id=tool_call_id))

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def update(self, sink: Sink | None = None) -> Message:
        """
        Send the transcript and append the model's reply.

        *sink* receives each content delta as it arrives.  Returns the
        appended assistant message.  Tool calls in the reply are recorded
        as-is; running them and appending the results is up to the caller.

        Raises
        ------
        SessionBusyError
            If another ``update`` on this session has not finished.
        OllieError
            ``DecodeError``, ``TruncatedStreamError`` or ``TransportError``.
            The transcript is unchanged.
        """
        if self._state is not SessionState.IDLE:
            raise SessionBusyError("Session.update is already in progress")

        self._state = SessionState.REQUESTING
        try:
            request = self._client.provider.build_chat_request(
                self._model,
                self._transcript,
                tools=self.tools,
                options=self.options,
            )
            async with self._client.open_stream(request) as frames:
                self._state = SessionState.STREAMING
                reply = await StreamingReducer(self._model).arun(frames, sink)
        except OllieError as exc:
            logger.warning(
                "Turn failed (%s); transcript left at %d messages",
                exc.code,
                len(self._transcript),
            )
            raise
        finally:
            self._state = SessionState.IDLE

        self._transcript.append(reply)
        logger.debug(
            "Turn complete: %d chars, %d tool calls",
            len(reply.content),
            len(reply.tool_calls),
        )
        return reply

    def _check_idle(self) -> None:
        if self._state is not SessionState.IDLE:
            raise SessionBusyError("Cannot modify the transcript during an update")
