"""Abstract base classes for providers and their wire decoders."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Sequence

from ollie.errors import DecodeError
from ollie.llm.options import Options
from ollie.llm.tools import Tools
from ollie.llm.types import Message, ResponseFrame


@dataclass
class HttpRequest:
    """A fully assembled request, ready for the transport."""

    url: str
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)


class WireDecoder(ABC):
    """
    Turns one record (a line without its terminator) into frames.

    A decoder instance is bound to a single response stream and may keep
    state across records (e.g. usage seen before the end marker).
    """

    @abstractmethod
    def decode(self, line: str) -> list[ResponseFrame]:
        """
        Decode one line.

        Returns zero or more frames.  Raises ``DecodeError`` when the line is
        not valid for the wire format.
        """
        ...


class SSEDecoder(WireDecoder):
    """
    Shared Server-Sent Events handling.

    Each event has the form::

        data: {json}\\n\\n

    Blank lines, comments and non-``data`` fields carry nothing we need.
    """

    def decode(self, line: str) -> list[ResponseFrame]:
        line = line.rstrip("\r")
        if not line or line.startswith(":"):
            return []
        if not line.startswith("data:"):
            return []
        data = line[len("data:"):].strip()
        with record_shape(data):
            return self.decode_data(data)

    @abstractmethod
    def decode_data(self, data: str) -> list[ResponseFrame]:
        ...


@contextmanager
def record_shape(record: str) -> Iterator[None]:
    """
    Report a record whose fields have the wrong types as ``DecodeError``.

    Wraps the walk over an already parsed record, where a string in place
    of an object (or similar) surfaces as ``AttributeError``/``TypeError``.
    """
    try:
        yield
    except (AttributeError, TypeError, KeyError) as exc:
        raise DecodeError(f"Unexpected record structure: {exc}", record=record[:200]) from exc


def expect_str(value: Any, name: str) -> str:
    """A string field, with ``None`` read as empty.  Raises ``TypeError`` otherwise."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string, not {type(value).__name__}")
    return value


def load_json_record(record: str) -> dict[str, Any]:
    """Parse a JSON object record or raise ``DecodeError``."""
    try:
        data = json.loads(record)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Malformed JSON record: {exc}", record=record[:200]) from exc
    if not isinstance(data, dict):
        raise DecodeError("Expected a JSON object record", record=record[:200])
    return data


class Provider(ABC):
    """
    A provider knows one server family's wire format.

    Implementations must support:
      - Building chat and single-shot generate requests.
      - Creating a fresh ``WireDecoder`` per response stream.
      - Listing models.
    """

    def __init__(self, endpoint: str, api_key: str = "") -> None:
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name (e.g. ``"ollama"``)."""
        ...

    @abstractmethod
    def build_chat_request(
        self,
        model: str,
        messages: Sequence[Message],
        tools: Tools | None = None,
        options: Options | None = None,
    ) -> HttpRequest:
        ...

    def build_generate_request(
        self,
        model: str,
        prompt: str,
        system: str | None = None,
        options: Options | None = None,
    ) -> HttpRequest:
        """Single-shot generation; defaults to a one-turn chat."""
        messages: list[Message] = []
        if system:
            messages.append(Message.system(system))
        messages.append(Message.user(prompt))
        return self.build_chat_request(model, messages, options=options)

    @abstractmethod
    def new_decoder(self) -> WireDecoder:
        ...

    @abstractmethod
    def models_url(self) -> str:
        ...

    @abstractmethod
    def parse_models(self, data: dict[str, Any]) -> list[str]:
        ...

    def headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}
