"""Tests for the CLI commands and the interactive chat handler."""

from __future__ import annotations

import io
from pathlib import Path

import httpx
import pytest
from rich.console import Console
from typer.testing import CliRunner

from ollie import __version__
from ollie.cli.app import app
from ollie.cli.chat import ChatHandler
from ollie.llm.types import Role
from ollie.session import Session
from tests.mock_transport import RecordingHandler, make_client, ndjson, ollama_text_body

runner = CliRunner()


@pytest.fixture
def isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run with no config file and no ollie environment variables."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("OLLAMA_SERVER", raising=False)
    for var in ("OLLIE_PROVIDER", "OLLIE_MODEL", "OLLIE_ENDPOINT"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


def _handler_with(*responses) -> tuple[ChatHandler, io.StringIO, RecordingHandler]:
    recording = RecordingHandler(*responses)
    out = io.StringIO()
    console = Console(file=out, width=120, color_system=None)
    handler = ChatHandler(Session(make_client(recording)), console=console)
    return handler, out, recording


class TestCommands:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_config_show_defaults(self, isolated: Path):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert '"model": "llama3.2"' in result.output

    def test_config_validate_file(self, isolated: Path):
        (isolated / "ollie.yaml").write_text("provider:\n  name: gemini\n  model: gemini-2.0-flash\n")
        result = runner.invoke(app, ["config", "validate"])
        assert result.exit_code == 0
        assert "gemini" in result.output

    def test_config_validate_unknown_provider(self, isolated: Path):
        (isolated / "ollie.yaml").write_text("provider:\n  name: nonsense\n")
        result = runner.invoke(app, ["config", "validate"])
        assert result.exit_code == 1
        assert "nonsense" in result.output


class TestChatHandler:
    @pytest.mark.asyncio
    async def test_turn_streams_reply(self):
        handler, out, _ = _handler_with(httpx.Response(200, content=ollama_text_body("Hi", " there")))
        handler.session.append_user("Hello")

        await handler.run_turn()

        assert "Hi there" in out.getvalue()
        assert handler.session.transcript[-1].content == "Hi there"

    @pytest.mark.asyncio
    async def test_failed_turn_then_retry(self):
        truncated = httpx.Response(200, content=ndjson({"message": {"content": "x"}, "done": False}))
        handler, out, recording = _handler_with(truncated, httpx.Response(200, content=ollama_text_body("ok")))
        handler.session.append_user("Hello")

        await handler.run_turn()
        assert "truncated" in out.getvalue()
        assert len(handler.session) == 1

        assert await handler.handle_command("/retry")
        assert len(handler.session) == 2
        assert recording.bodies[0] == recording.bodies[1]

    @pytest.mark.asyncio
    async def test_system_command(self):
        handler, _, _ = _handler_with()
        assert await handler.handle_command("/system Answer in French.")
        [msg] = handler.session.transcript
        assert msg.role is Role.SYSTEM
        assert msg.content == "Answer in French."

    @pytest.mark.asyncio
    async def test_history_escapes_brackets(self):
        handler, out, _ = _handler_with()
        handler.session.append_user("what does [bold] do?")
        await handler.handle_command("/history")
        assert "[bold]" in out.getvalue()

    @pytest.mark.asyncio
    async def test_tool_call_is_displayed(self):
        body = ndjson(
            {"message": {"tool_calls": [{"function": {"name": "get_time", "arguments": {"tz": "UTC"}}}]},
             "done": False},
            {"message": {"content": ""}, "done": True},
        )
        handler, out, _ = _handler_with(httpx.Response(200, content=body))
        handler.session.append_user("time?")
        await handler.run_turn()
        assert "Tool call: get_time" in out.getvalue()

    @pytest.mark.asyncio
    async def test_quit_and_unknown(self):
        handler, _, _ = _handler_with()
        assert not await handler.handle_command("/unknown")
        assert await handler.handle_command("/quit")
        assert handler._running is False
