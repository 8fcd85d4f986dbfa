"""
Google Gemini provider.

Uses ``:streamGenerateContent?alt=sse``.  The stream has no end sentinel;
the chunk whose candidate carries a ``finishReason`` is the last one.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from ollie.errors import ServerError
from ollie.llm.options import Options
from ollie.llm.providers.base import HttpRequest, Provider, SSEDecoder, expect_str, load_json_record
from ollie.llm.tools import Tools
from ollie.llm.types import Message, ResponseFrame, Role, ToolCallDelta, Usage

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiDecoder(SSEDecoder):
    """
    Decodes Gemini ``GenerateContentResponse`` chunks.

    Function calls arrive whole, one per part, so each gets the next free
    index.
    """

    def __init__(self) -> None:
        self._next_index = 0

    def decode_data(self, data: str) -> list[ResponseFrame]:
        payload = load_json_record(data)
        if payload.get("error"):
            err = payload["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            raise ServerError(f"Gemini: {message}", record=data[:200])

        candidates = payload.get("candidates") or []
        if not candidates:
            feedback = payload.get("promptFeedback") or {}
            if feedback.get("blockReason"):
                raise ServerError(
                    f"Gemini: prompt blocked ({feedback['blockReason']})",
                    record=data[:200],
                )
            return []

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []

        text_parts: list[str] = []
        tool_deltas: list[ToolCallDelta] = []
        for part in parts:
            if "text" in part and not part.get("thought"):
                text_parts.append(expect_str(part["text"], "part.text"))
            elif "functionCall" in part:
                call = part["functionCall"]
                tool_deltas.append(
                    ToolCallDelta(
                        index=self._next_index,
                        id=call.get("id"),
                        name=expect_str(call.get("name"), "functionCall.name") or None,
                        arguments=json.dumps(call.get("args") or {}),
                    )
                )
                self._next_index += 1

        finish_reason = candidate.get("finishReason")
        frame = ResponseFrame(
            content_delta="".join(text_parts),
            tool_call_deltas=tool_deltas,
            done=finish_reason is not None,
            model=payload.get("modelVersion"),
        )
        if frame.done:
            meta = payload.get("usageMetadata") or {}
            frame.usage = Usage(
                prompt_tokens=meta.get("promptTokenCount"),
                completion_tokens=meta.get("candidatesTokenCount"),
                done_reason=finish_reason,
            )
        return [frame]


class GeminiProvider(Provider):
    """
    Provider for the Gemini ``generativelanguage`` API.

    Parameters
    ----------
    endpoint:
        Models base URL.  Override for proxies or tests.
    api_key:
        Sent as the ``x-goog-api-key`` header, never in the URL.
    """

    def __init__(self, endpoint: str = GEMINI_BASE_URL, api_key: str = "") -> None:
        super().__init__(endpoint, api_key)

    @property
    def name(self) -> str:
        return "gemini"

    def headers(self) -> dict[str, str]:
        headers = super().headers()
        if self.api_key:
            headers["x-goog-api-key"] = self.api_key
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
        system_text = "\n\n".join(m.content for m in messages if m.role is Role.SYSTEM)
        body: dict[str, Any] = {
            "contents": [self._wire_content(m) for m in messages if m.role is not Role.SYSTEM],
        }
        if system_text:
            body["systemInstruction"] = {"parts": [{"text": system_text}]}
        if tools:
            body["tools"] = tools.to_gemini_schema()
        if options is not None:
            config = options.to_gemini()
            if config:
                body["generationConfig"] = config

        model = model.removeprefix("models/")
        logger.debug("REQUEST: model=%s contents=%d", model, len(body["contents"]))
        url = f"{self.endpoint}/{model}:streamGenerateContent?alt=sse"
        return HttpRequest(url, body, self.headers())

    @staticmethod
    def _wire_content(msg: Message) -> dict[str, Any]:
        if msg.role is Role.TOOL:
            try:
                response = json.loads(msg.content)
            except ValueError:
                response = None
            if not isinstance(response, dict):
                response = {"content": msg.content}
            return {
                "role": "user",
                "parts": [
                    {
                        "functionResponse": {
                            "name": msg.tool_name or "",
                            "response": response,
                        }
                    }
                ],
            }

        parts: list[dict[str, Any]] = []
        if msg.content:
            parts.append({"text": msg.content})
        for tc in msg.tool_calls:
            parts.append({"functionCall": {"name": tc.name, "args": tc.parsed or {}}})

        role = "model" if msg.role is Role.ASSISTANT else "user"
        return {"role": role, "parts": parts}

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def new_decoder(self) -> GeminiDecoder:
        return GeminiDecoder()

    def models_url(self) -> str:
        return self.endpoint

    def parse_models(self, data: dict[str, Any]) -> list[str]:
        return [m.get("name", "").removeprefix("models/") for m in data.get("models", [])]
