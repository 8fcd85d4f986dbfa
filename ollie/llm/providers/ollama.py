"""
Ollama provider.

Streams responses from an Ollama instance via its ``/api/chat`` and
``/api/generate`` endpoints.  Each line of the response body is a complete
JSON object; the last one carries ``"done": true`` plus timing statistics.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from ollie.errors import ServerError
from ollie.llm.options import Options
from ollie.llm.providers.base import (
    HttpRequest,
    Provider,
    WireDecoder,
    expect_str,
    load_json_record,
    record_shape,
)
from ollie.llm.tools import Tools
from ollie.llm.types import Message, ResponseFrame, Role, ToolCallDelta, Usage

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://127.0.0.1:11434"


class OllamaDecoder(WireDecoder):
    """
    Newline-delimited JSON decoder.

    Ollama sends tool calls whole, as JSON objects rather than argument
    fragments, and without a stable index.  Calls are numbered in order of
    arrival across the stream so two frames that each carry one call do
    not collide on index 0.
    """

    def __init__(self) -> None:
        self._next_index = 0

    def decode(self, line: str) -> list[ResponseFrame]:
        line = line.strip()
        if not line:
            return []

        data = load_json_record(line)
        if data.get("error"):
            raise ServerError(f"Ollama: {data['error']}", record=line[:200])

        with record_shape(line):
            return [self._frame(data)]

    def _frame(self, data: dict[str, Any]) -> ResponseFrame:
        message = data.get("message") or {}
        # /api/chat puts text in message.content, /api/generate in response.
        content = expect_str(message.get("content"), "message.content") or expect_str(
            data.get("response"), "response"
        )

        frame = ResponseFrame(
            content_delta=content,
            tool_call_deltas=self._tool_deltas(message.get("tool_calls") or []),
            done=bool(data.get("done", False)),
            model=data.get("model"),
        )
        if frame.done:
            frame.usage = Usage(
                prompt_tokens=data.get("prompt_eval_count"),
                completion_tokens=data.get("eval_count"),
                total_duration_ns=data.get("total_duration"),
                load_duration_ns=data.get("load_duration"),
                prompt_eval_duration_ns=data.get("prompt_eval_duration"),
                eval_duration_ns=data.get("eval_duration"),
                done_reason=data.get("done_reason"),
            )
        return frame

    def _tool_deltas(self, raw_tool_calls: list[dict]) -> list[ToolCallDelta]:
        deltas: list[ToolCallDelta] = []
        for tc in raw_tool_calls:
            func = tc.get("function") or {}
            idx = func.get("index")
            if not isinstance(idx, int):
                idx = self._next_index
            self._next_index = max(self._next_index, idx + 1)

            arguments = func.get("arguments", {})
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)

            deltas.append(
                ToolCallDelta(
                    index=idx,
                    id=tc.get("id"),
                    name=expect_str(func.get("name"), "function.name") or None,
                    arguments=arguments,
                )
            )
        return deltas


class OllamaProvider(Provider):
    """
    Provider for an `Ollama <https://ollama.com>`_ server.

    Parameters
    ----------
    endpoint:
        Base URL of the Ollama HTTP API (e.g. ``"http://localhost:11434"``).
        A bare ``host:port`` is accepted and treated as plain HTTP.
    """

    def __init__(self, endpoint: str = DEFAULT_ENDPOINT, api_key: str = "") -> None:
        if "://" not in endpoint:
            endpoint = f"http://{endpoint}"
        super().__init__(endpoint, api_key)

    @property
    def name(self) -> str:
        return "ollama"

    def headers(self) -> dict[str, str]:
        headers = super().headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def build_chat_request(
        self,
        model: str,
        messages: Sequence[Message],
        tools: Tools | None = None,
        options: Options | None = None,
    ) -> HttpRequest:
        body: dict[str, Any] = {
            "model": model,
            "messages": [self._wire_message(m) for m in messages],
            "stream": True,
        }
        if tools:
            body["tools"] = tools.to_openai_schema()
        if options is not None and not options.is_empty():
            body["options"] = options.to_ollama()

        logger.debug(
            "REQUEST: model=%s tools=%d messages=%d",
            model,
            len(tools) if tools else 0,
            len(messages),
        )
        return HttpRequest(f"{self.endpoint}/api/chat", body, self.headers())

    def build_generate_request(
        self,
        model: str,
        prompt: str,
        system: str | None = None,
        options: Options | None = None,
    ) -> HttpRequest:
        body: dict[str, Any] = {"model": model, "prompt": prompt, "stream": True}
        if system:
            body["system"] = system
        if options is not None and not options.is_empty():
            body["options"] = options.to_ollama()
        return HttpRequest(f"{self.endpoint}/api/generate", body, self.headers())

    @staticmethod
    def _wire_message(msg: Message) -> dict[str, Any]:
        m: dict[str, Any] = {"role": msg.role.value, "content": msg.content}

        if msg.tool_calls:
            m["tool_calls"] = [
                {
                    "function": {
                        "name": tc.name,
                        # Ollama expects a dict, not a string
                        "arguments": tc.parsed if tc.parsed is not None else {},
                    },
                }
                for tc in msg.tool_calls
            ]

        if msg.role is Role.TOOL and msg.tool_name:
            m["tool_name"] = msg.tool_name

        return m

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def new_decoder(self) -> OllamaDecoder:
        return OllamaDecoder()

    def models_url(self) -> str:
        return f"{self.endpoint}/api/tags"

    def parse_models(self, data: dict[str, Any]) -> list[str]:
        return [m.get("name", "") for m in data.get("models", [])]
