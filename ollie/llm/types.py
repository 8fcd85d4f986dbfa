"""Core types for the LLM subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from ollie.errors import DecodeError, ToolArgumentParseError


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """
    One function invocation proposed by the model.

    *arguments* is the raw text buffer accumulated from the stream.  It is
    only meaningful as structured data after finalization, when either
    *parsed* or *error* is set.
    """

    index: int
    name: str = ""
    arguments: str = ""
    id: str = ""
    parsed: dict[str, Any] | None = None
    error: ToolArgumentParseError | None = None

    @property
    def ok(self) -> bool:
        return self.parsed is not None and self.error is None


@dataclass(frozen=True)
class ToolCallDelta:
    """
    An incremental fragment of a streaming tool call.

    Decoders emit these as tool-call fragments arrive.  Fragments with the
    same *index* belong to the same call.
    """

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str = ""


@dataclass(frozen=True)
class Usage:
    """Token counts and timings reported on the final frame."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_duration_ns: int | None = None
    load_duration_ns: int | None = None
    prompt_eval_duration_ns: int | None = None
    eval_duration_ns: int | None = None
    done_reason: str | None = None

    @property
    def total_tokens(self) -> int | None:
        if self.prompt_tokens is None and self.completion_tokens is None:
            return None
        return (self.prompt_tokens or 0) + (self.completion_tokens or 0)

    @property
    def tokens_per_second(self) -> float | None:
        if not self.completion_tokens or not self.eval_duration_ns:
            return None
        return self.completion_tokens / (self.eval_duration_ns / 1e9)


@dataclass(frozen=True)
class Message:
    """A single finalized chat turn."""

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    tool_name: str | None = None
    model: str | None = None
    usage: Usage | None = None

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: tuple[ToolCall, ...] = ()) -> Message:
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(
        cls,
        content: str,
        name: str | None = None,
        tool_call_id: str | None = None,
    ) -> Message:
        return cls(
            role=Role.TOOL,
            content=content,
            tool_name=name,
            tool_call_id=tool_call_id,
        )

    def remove_thinking(self) -> Message | None:
        """
        Copy of this message with ``<think>...</think>`` blocks cut out of
        the content, or ``None`` when there were none.

        Reasoning models served by Ollama inline their chain of thought this
        way; the copy is what you would show a user or send back upstream.
        """
        if not self.content:
            return None
        cleaned = remove_tag(self.content, "think")
        if cleaned is None:
            return None
        return replace(self, content=cleaned)


def remove_tag(text: str, tag: str) -> str | None:
    """
    Remove every ``<tag ...>...</tag>`` span from *text*.

    The opening tag may carry attributes.  Each span runs to the first
    closing tag after it, so nested tags of other names go with it.
    Returns ``None`` when nothing was removed; an opening tag without a
    matching close (including a self-closing one) stops the scan.
    """
    opening = f"<{tag}"
    closing = f"</{tag}>"
    removed = False
    while True:
        start = text.find(opening)
        if start < 0:
            break
        tag_end = text.find(">", start)
        if tag_end < 0:
            break
        end = text.find(closing, tag_end + 1)
        if end < 0:
            break
        text = text[:start] + text[end + len(closing):]
        removed = True
    return text if removed else None


@dataclass
class ResponseFrame:
    """
    One decoded unit from the response stream.

    *content_delta* carries new text content.
    *tool_call_deltas* carries incremental tool-call fragments.
    *usage* is only meaningful when *done* is ``True``.
    *error* is set instead of the other fields when the record could not be
    decoded.
    """

    content_delta: str = ""
    tool_call_deltas: list[ToolCallDelta] = field(default_factory=list)
    usage: Usage | None = None
    done: bool = False
    model: str | None = None
    error: DecodeError | None = None
