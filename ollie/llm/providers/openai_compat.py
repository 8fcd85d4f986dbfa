"""
OpenAI-compatible chat-completion provider.

Works with any endpoint that speaks the OpenAI ``/v1/chat/completions`` wire
protocol -- OpenAI itself, vLLM, LM Studio, LocalAI, Ollama's ``/v1``, etc.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from ollie.errors import ServerError
from ollie.llm.options import Options
from ollie.llm.providers.base import HttpRequest, Provider, SSEDecoder, expect_str, load_json_record
from ollie.llm.tools import Tools
from ollie.llm.types import Message, ResponseFrame, Role, ToolCallDelta, Usage

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class OpenAIDecoder(SSEDecoder):
    """
    Decodes ``data:`` payloads of a chat-completions stream.

    ``finish_reason`` arrives before the usage record (when
    ``include_usage`` is on), so only the ``[DONE]`` sentinel ends the
    stream.  Usage and finish reason are remembered until then.
    """

    def __init__(self) -> None:
        self._usage: dict[str, Any] | None = None
        self._finish_reason: str | None = None
        self._model: str | None = None

    def decode_data(self, data: str) -> list[ResponseFrame]:
        if data == DONE_SENTINEL:
            return [ResponseFrame(done=True, usage=self._final_usage(), model=self._model)]

        payload = load_json_record(data)
        if payload.get("error"):
            err = payload["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            raise ServerError(f"OpenAI-compatible server: {message}", record=data[:200])

        self._model = payload.get("model") or self._model
        if payload.get("usage"):
            self._usage = payload["usage"]

        choices = payload.get("choices")
        if not choices:
            return []

        choice = choices[0]
        delta = choice.get("delta") or {}
        if choice.get("finish_reason"):
            self._finish_reason = choice["finish_reason"]

        tool_deltas: list[ToolCallDelta] = []
        for raw_tc in delta.get("tool_calls") or []:
            func = raw_tc.get("function") or {}
            tool_deltas.append(
                ToolCallDelta(
                    index=raw_tc.get("index", 0),
                    id=raw_tc.get("id"),
                    name=expect_str(func.get("name"), "function.name") or None,
                    arguments=expect_str(func.get("arguments"), "function.arguments"),
                )
            )

        text_delta = expect_str(delta.get("content"), "delta.content")
        if not text_delta and not tool_deltas:
            return []
        return [ResponseFrame(content_delta=text_delta, tool_call_deltas=tool_deltas)]

    def _final_usage(self) -> Usage | None:
        if self._usage is None and self._finish_reason is None:
            return None
        usage = self._usage or {}
        return Usage(
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
            done_reason=self._finish_reason,
        )


class OpenAICompatProvider(Provider):
    """
    Stream-capable provider for any OpenAI-API-compatible endpoint.

    Parameters
    ----------
    endpoint:
        Base URL of the API, e.g. ``"https://api.openai.com/v1"`` or
        ``"http://localhost:8080/v1"``.
    api_key:
        Bearer token.  Pass ``""`` for unauthenticated local endpoints.
    """

    def __init__(self, endpoint: str = "https://api.openai.com/v1", api_key: str = "") -> None:
        super().__init__(endpoint, api_key)

    @property
    def name(self) -> str:
        return "openai-compat"

    def headers(self) -> dict[str, str]:
        headers = super().headers()
        headers["Accept"] = "text/event-stream"
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
            "stream_options": {"include_usage": True},
        }
        if tools:
            body["tools"] = tools.to_openai_schema()
            body["tool_choice"] = "auto"
        if options is not None:
            body.update(options.to_openai())

        logger.debug(
            "REQUEST: model=%s tools=%d messages=%d api_key=%s",
            model,
            len(tools) if tools else 0,
            len(messages),
            "set" if self.api_key else "(none)",
        )
        return HttpRequest(f"{self.endpoint}/chat/completions", body, self.headers())

    @staticmethod
    def _wire_message(msg: Message) -> dict[str, Any]:
        m: dict[str, Any] = {"role": msg.role.value, "content": msg.content}
        if msg.tool_calls:
            m["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": tc.arguments or "{}"},
                }
                for tc in msg.tool_calls
            ]
        if msg.role is Role.TOOL:
            if msg.tool_call_id:
                m["tool_call_id"] = msg.tool_call_id
            if msg.tool_name:
                m["name"] = msg.tool_name
        return m

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def new_decoder(self) -> OpenAIDecoder:
        return OpenAIDecoder()

    def models_url(self) -> str:
        return f"{self.endpoint}/models"

    def parse_models(self, data: dict[str, Any]) -> list[str]:
        return [m.get("id", "") for m in data.get("data", [])]
