"""
Client -- the entry point for one-off requests against a model server.

The client pairs a ``Provider`` (wire format) with an ``HttpTransport`` and
runs each response through ``StreamDecoder`` and ``StreamingReducer``.
Multi-turn conversations live in ``ollie.session.Session``, which uses the
same plumbing.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Sequence

from ollie.llm.options import Options
from ollie.llm.providers import Provider, create_provider
from ollie.llm.providers.base import HttpRequest
from ollie.llm.reducer import Sink, StreamingReducer
from ollie.llm.stream import StreamDecoder
from ollie.llm.tools import Tools
from ollie.llm.transport import HttpTransport
from ollie.llm.types import Message

if TYPE_CHECKING:
    from ollie.config import OllieConfig

logger = logging.getLogger(__name__)


class Client:
    """
    Parameters
    ----------
    provider:
        Wire format and endpoint of the server.
    model:
        Default model for calls that do not name one.
    transport:
        HTTP transport.  A default ``HttpTransport`` is created if omitted.
    options:
        Default generation options.
    """

    def __init__(
        self,
        provider: Provider,
        model: str = "",
        transport: HttpTransport | None = None,
        options: Options | None = None,
    ) -> None:
        self.provider = provider
        self.model = model
        self.transport = transport or HttpTransport()
        self.options = options

    @classmethod
    def from_config(cls, cfg: OllieConfig) -> Client:
        """Build a client from the provider section of *cfg*.  Reads the API key env var once."""
        llm = cfg.provider
        api_key = os.environ.get(llm.api_key_env, "") if llm.api_key_env else ""
        provider = create_provider(llm.name, endpoint=llm.endpoint, api_key=api_key)
        transport = HttpTransport(
            timeout=float(llm.timeout_seconds),
            max_retries=llm.max_retries,
        )
        return cls(provider, model=llm.model, transport=transport, options=cfg.options.to_options())

    @property
    def endpoint(self) -> str:
        return self.provider.endpoint

    def with_endpoint(self, endpoint: str) -> Client:
        """A client for the same provider type and transport at another endpoint."""
        provider = type(self.provider)(endpoint=endpoint, api_key=self.provider.api_key)
        return Client(provider, self.model, self.transport, self.options)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def chat(
        self,
        messages: Sequence[Message],
        sink: Sink | None = None,
        *,
        model: str | None = None,
        tools: Tools | None = None,
        options: Options | None = None,
    ) -> Message:
        """Send *messages* and return the assembled assistant reply."""
        model = self._resolve_model(model)
        request = self.provider.build_chat_request(
            model, messages, tools=tools, options=options or self.options
        )
        return await self._reduce(request, model, sink)

    async def generate(
        self,
        prompt: str,
        sink: Sink | None = None,
        *,
        model: str | None = None,
        system: str | None = None,
        options: Options | None = None,
    ) -> Message:
        """Single-shot generation without conversation state."""
        model = self._resolve_model(model)
        request = self.provider.build_generate_request(
            model, prompt, system=system, options=options or self.options
        )
        return await self._reduce(request, model, sink)

    async def list_models(self) -> list[str]:
        data = await self.transport.get_json(
            self.provider.models_url(), headers=self.provider.headers()
        )
        return self.provider.parse_models(data)

    @asynccontextmanager
    async def open_stream(self, request: HttpRequest) -> AsyncIterator[StreamDecoder]:
        """Open *request* and yield a fresh ``StreamDecoder`` bound to its body."""
        logger.debug("POST %s", request.url)
        async with self.transport.stream(request) as body:
            yield StreamDecoder(body, self.provider.new_decoder())

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve_model(self, model: str | None) -> str:
        resolved = model or self.model
        if not resolved:
            raise ValueError("No model given and the client has no default model")
        return resolved

    async def _reduce(self, request: HttpRequest, model: str, sink: Sink | None) -> Message:
        async with self.open_stream(request) as frames:
            return await StreamingReducer(model).arun(frames, sink)
