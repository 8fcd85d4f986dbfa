"""
Tests for the Session manager: transcript bookkeeping, turn atomicity and
the request state machine.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from ollie.errors import (
    DecodeError,
    SessionBusyError,
    TransportError,
    TruncatedStreamError,
)
from ollie.llm.options import Options
from ollie.llm.tools import FunctionParameter, Tools
from ollie.llm.types import Role
from ollie.session import Session, SessionState
from tests.mock_transport import (
    RecordingHandler,
    chunked,
    make_client,
    ndjson,
    ollama_text_body,
)


def _ok(*words: str) -> httpx.Response:
    return httpx.Response(200, content=ollama_text_body(*words))


def _streamed(*parts: bytes, error: Exception | None = None):
    """A response factory whose body is produced lazily, per request."""
    return lambda: httpx.Response(200, content=chunked(*parts, error=error))


# ---------------------------------------------------------------------------
# Successful turns
# ---------------------------------------------------------------------------


class TestUpdate:
    @pytest.mark.asyncio
    async def test_reply_is_appended_and_streamed(self):
        handler = RecordingHandler(_ok("Hel", "lo", "!"))
        session = Session(make_client(handler))
        session.append_user("Hi")

        seen: list[str] = []
        reply = await session.update(seen.append)

        assert seen == ["Hel", "lo", "!"]
        assert reply.role is Role.ASSISTANT
        assert reply.content == "Hello!"
        assert session.transcript[-1] is reply
        assert len(session) == 2
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_two_updates_send_growing_transcript(self):
        handler = RecordingHandler(_ok("one"), _ok("two"))
        session = Session(make_client(handler))

        session.append_user("first")
        await session.update()
        session.append_user("second")
        await session.update()

        assert [m.content for m in session.transcript] == ["first", "one", "second", "two"]
        first_body, second_body = handler.bodies
        assert [m["content"] for m in first_body["messages"]] == ["first"]
        assert [m["content"] for m in second_body["messages"]] == ["first", "one", "second"]

    @pytest.mark.asyncio
    async def test_usage_is_recorded(self):
        session = Session(make_client(RecordingHandler(_ok("a", "b"))))
        session.append_user("x")
        reply = await session.update()

        assert reply.usage.prompt_tokens == 12
        assert reply.usage.completion_tokens == 2
        assert reply.usage.done_reason == "stop"
        assert reply.model == "mock-model"

    @pytest.mark.asyncio
    async def test_tool_call_reply_is_appended_as_is(self):
        body = ndjson(
            {
                "message": {
                    "role": "assistant",
                    "content": "",
                    "tool_calls": [{"function": {"name": "get_weather", "arguments": {"city": "Oslo"}}}],
                },
                "done": False,
            },
            {"message": {"role": "assistant", "content": ""}, "done": True},
        )
        tools = Tools()
        tools.add_function("get_weather", "Weather", [FunctionParameter("city", "string", required=True)])
        handler = RecordingHandler(httpx.Response(200, content=body), _ok("3C in Oslo"))
        session = Session(make_client(handler), tools=tools)
        session.append_user("Weather in Oslo?")

        reply = await session.update()
        [call] = reply.tool_calls
        assert call.name == "get_weather"
        assert call.parsed == {"city": "Oslo"}
        assert tools.validate(call) == (True, None)
        assert handler.bodies[0]["tools"][0]["function"]["name"] == "get_weather"

        session.append_tool(json.dumps({"temp": 3}), name="get_weather", tool_call_id=call.id)
        final = await session.update()

        assert final.content == "3C in Oslo"
        roles = [m["role"] for m in handler.bodies[1]["messages"]]
        assert roles == ["user", "assistant", "tool"]

    @pytest.mark.asyncio
    async def test_system_seed(self):
        handler = RecordingHandler(_ok("ok"))
        session = Session(make_client(handler), system="You are terse.")
        session.append_user("Hi")
        await session.update()

        assert session.transcript[0].role is Role.SYSTEM
        assert handler.bodies[0]["messages"][0] == {"role": "system", "content": "You are terse."}


# ---------------------------------------------------------------------------
# Failed turns leave the transcript unchanged
# ---------------------------------------------------------------------------


class TestAtomicity:
    async def _session_after_failure(self, response, exc_type):
        handler = RecordingHandler(response)
        session = Session(make_client(handler))
        session.append_user("Hi")
        before = session.transcript

        with pytest.raises(exc_type):
            await session.update()

        assert session.transcript == before
        assert session.state is SessionState.IDLE
        return session, handler

    @pytest.mark.asyncio
    async def test_decode_error(self):
        body = ndjson({"message": {"content": "par"}, "done": False}) + b"{broken\n"
        await self._session_after_failure(httpx.Response(200, content=body), DecodeError)

    @pytest.mark.asyncio
    async def test_server_error_record(self):
        body = ndjson({"error": "model 'x' not found"})
        await self._session_after_failure(httpx.Response(200, content=body), DecodeError)

    @pytest.mark.asyncio
    async def test_truncated_stream(self):
        body = ndjson({"message": {"content": "never"}, "done": False})
        await self._session_after_failure(httpx.Response(200, content=body), TruncatedStreamError)

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        response = httpx.Response(500, json={"error": "boom"})
        await self._session_after_failure(response, TransportError)

    @pytest.mark.asyncio
    async def test_interrupted_mid_stream(self):
        first = ndjson({"message": {"content": "partial"}, "done": False})
        response = _streamed(first, error=httpx.ReadError("connection reset"))
        seen: list[str] = []
        handler = RecordingHandler(response)
        session = Session(make_client(handler))
        session.append_user("Hi")

        with pytest.raises(TransportError, match="Stream interrupted"):
            await session.update(seen.append)

        # Partial content reached the sink but never the transcript.
        assert seen == ["partial"]
        assert len(session) == 1

    @pytest.mark.asyncio
    async def test_sink_failure_fails_the_turn(self):
        session = Session(make_client(RecordingHandler(_ok("a", "b"))))
        session.append_user("Hi")

        def sink(delta):
            raise RuntimeError("display gone")

        with pytest.raises(RuntimeError):
            await session.update(sink)
        assert len(session) == 1
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_retry_resends_same_transcript(self):
        broken = httpx.Response(200, content=ndjson({"message": {"content": "x"}, "done": False}))
        handler = RecordingHandler(broken, _ok("fine"))
        session = Session(make_client(handler))
        session.append_user("Hi")

        with pytest.raises(TruncatedStreamError):
            await session.update()
        reply = await session.update()

        assert handler.bodies[0] == handler.bodies[1]
        assert reply.content == "fine"
        assert len(session) == 2


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class TestState:
    @pytest.mark.asyncio
    async def test_overlapping_update_is_rejected(self):
        gate = asyncio.Event()

        async def slow_body():
            yield ndjson({"message": {"content": "a"}, "done": False})
            await gate.wait()
            yield ndjson({"message": {"content": ""}, "done": True})

        handler = RecordingHandler(lambda: httpx.Response(200, content=slow_body()))
        session = Session(make_client(handler))
        session.append_user("Hi")

        first = asyncio.create_task(session.update())
        while session.state is not SessionState.STREAMING:
            await asyncio.sleep(0)

        with pytest.raises(SessionBusyError):
            await session.update()
        with pytest.raises(SessionBusyError):
            session.append_user("interjection")

        gate.set()
        reply = await first
        assert reply.content == "a"
        assert len(handler.requests) == 1
        assert [m.role for m in session.transcript] == [Role.USER, Role.ASSISTANT]

    @pytest.mark.asyncio
    async def test_sink_cannot_modify_transcript(self):
        session = Session(make_client(RecordingHandler(_ok("a"))))
        session.append_user("Hi")

        with pytest.raises(SessionBusyError):
            await session.update(lambda _delta: session.append_user("nested"))
        assert len(session) == 1

    def test_idle_initially(self):
        session = Session(make_client(RecordingHandler()))
        assert session.state is SessionState.IDLE
        assert session.transcript == ()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_model_defaults_to_client(self):
        session = Session(make_client(RecordingHandler(), model="llama3.2"))
        assert session.model == "llama3.2"

    def test_model_required(self):
        with pytest.raises(ValueError):
            Session(make_client(RecordingHandler(), model=""))

    @pytest.mark.asyncio
    async def test_endpoint_override(self):
        handler = RecordingHandler(_ok("hi"))
        session = Session(make_client(handler), endpoint="http://other-host:11434")
        assert session.endpoint == "http://other-host:11434"

        session.append_user("x")
        await session.update()
        assert str(handler.requests[0].url) == "http://other-host:11434/api/chat"

    def test_context_window_default_and_setter(self):
        session = Session(make_client(RecordingHandler()))
        assert session.context_window_size == 2048

        session.context_window_size = 8192
        assert session.context_window_size == 8192
        assert session.options.num_ctx == 8192

    @pytest.mark.asyncio
    async def test_options_are_sent(self):
        handler = RecordingHandler(_ok("x"))
        session = Session(make_client(handler), options=Options(temperature=0.0, seed=42))
        session.context_window_size = 4096
        session.append_user("x")
        await session.update()

        assert handler.bodies[0]["options"] == {"num_ctx": 4096, "temperature": 0.0, "seed": 42}

    def test_sessions_do_not_share_options(self):
        client = make_client(RecordingHandler())
        client.options = Options(temperature=0.5)
        a = Session(client)
        b = Session(client)

        a.context_window_size = 8192

        assert b.context_window_size == 2048
        assert client.options.num_ctx is None
        assert b.options.temperature == 0.5

    def test_caller_options_are_copied(self):
        opts = Options(stop=["###"])
        session = Session(make_client(RecordingHandler()), options=opts)

        session.context_window_size = 1024
        session.options.stop.append("END")

        assert opts.num_ctx is None
        assert opts.stop == ["###"]

    def test_transcript_is_a_snapshot(self):
        session = Session(make_client(RecordingHandler()))
        session.append_user("a")
        snapshot = session.transcript
        session.append_assistant("b")
        assert len(snapshot) == 1
        assert len(session.transcript) == 2
