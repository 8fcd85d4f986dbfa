"""Tests for tool schemas and argument validation."""

from __future__ import annotations

import pytest

from ollie.llm.tool_call_assembler import finalize_tool_calls
from ollie.llm.tools import FunctionParameter, Tools
from ollie.llm.types import ToolCall


@pytest.fixture
def tools() -> Tools:
    t = Tools()
    t.add_function(
        "get_weather",
        "Current weather for a city",
        [
            FunctionParameter("city", "string", "City name", required=True),
            FunctionParameter("days", "integer", "Forecast length"),
        ],
    )
    return t


def _finalized(name: str, arguments: str) -> ToolCall:
    [call] = finalize_tool_calls([ToolCall(index=0, name=name, arguments=arguments)])
    return call


class TestSchema:
    def test_openai_schema(self, tools: Tools):
        [entry] = tools.to_openai_schema()
        assert entry["type"] == "function"
        fn = entry["function"]
        assert fn["name"] == "get_weather"
        assert fn["parameters"]["required"] == ["city"]
        assert fn["parameters"]["properties"]["days"]["type"] == "integer"

    def test_gemini_schema(self, tools: Tools):
        [group] = tools.to_gemini_schema()
        [decl] = group["functionDeclarations"]
        assert decl["name"] == "get_weather"
        assert "type" not in decl

    def test_empty(self):
        assert not Tools()
        assert Tools().to_gemini_schema() == []

    def test_duplicate_name(self, tools: Tools):
        with pytest.raises(ValueError):
            tools.add_function("get_weather", "again")


class TestValidate:
    def test_valid(self, tools: Tools):
        assert tools.validate(_finalized("get_weather", '{"city": "Oslo", "days": 3}')) == (True, None)

    def test_missing_required(self, tools: Tools):
        ok, msg = tools.validate(_finalized("get_weather", '{"days": 3}'))
        assert not ok
        assert "city" in msg

    def test_wrong_type(self, tools: Tools):
        ok, _ = tools.validate(_finalized("get_weather", '{"city": "Oslo", "days": "three"}'))
        assert not ok

    def test_unknown_function(self, tools: Tools):
        ok, msg = tools.validate(_finalized("launch", "{}"))
        assert not ok
        assert "launch" in msg

    def test_parse_error_is_reported(self, tools: Tools):
        ok, msg = tools.validate(_finalized("get_weather", '{"city": '))
        assert not ok
        assert "tool_call_json_parse_failed" in msg
