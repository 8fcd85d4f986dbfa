"""
HTTP transport for streamed requests.

Dependencies: ``httpx``.

Retries (429, 5xx, connection failures) only happen while the request is
being opened, before any body byte reaches the caller.  Once streaming has
started, a failure is raised as ``TransportError`` and the turn fails.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from ollie.errors import TransportError
from ollie.llm.providers.base import HttpRequest

logger = logging.getLogger(__name__)


def _error_detail(body: bytes) -> str:
    """Best-effort extraction of a server error message."""
    text = body.decode("utf-8", errors="replace").strip()
    try:
        data = json.loads(text)
    except ValueError:
        return text[:200]
    if isinstance(data, dict) and data.get("error"):
        err = data["error"]
        if isinstance(err, dict):
            return str(err.get("message", err))
        return str(err)
    return text[:200]


class HttpTransport:
    """
    Opens streamed POST requests and yields the raw body chunks.

    Parameters
    ----------
    timeout:
        HTTP timeout in seconds, applied to connect and each read.
    max_retries:
        Number of automatic retries on transient errors before streaming.
    client:
        Optional shared ``httpx.AsyncClient``.  When omitted a client is
        created (and closed) per request.
    """

    def __init__(
        self,
        timeout: float = 120.0,
        max_retries: int = 2,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self._client = client

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def stream(self, request: HttpRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Open *request* and yield an async iterator over the body bytes.

        Usage::

            async with transport.stream(request) as body:
                async for chunk in body:
                    ...
        """
        client, owned = self._acquire()
        try:
            response = await self._open(client, request)
            try:
                yield self._iter_body(response)
            finally:
                await response.aclose()
        finally:
            if owned:
                await client.aclose()

    async def get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        """Non-streamed GET returning the decoded JSON body."""
        client, owned = self._acquire()
        try:
            try:
                resp = await client.get(url, headers=headers)
            except httpx.HTTPError as exc:
                raise TransportError(f"GET {url} failed: {exc}") from exc
            if resp.status_code >= 400:
                raise TransportError(
                    f"HTTP {resp.status_code}: {_error_detail(resp.content)}",
                    status_code=resp.status_code,
                )
            try:
                return resp.json()
            except ValueError as exc:
                raise TransportError(f"GET {url} returned invalid JSON") from exc
        finally:
            if owned:
                await client.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _acquire(self) -> tuple[httpx.AsyncClient, bool]:
        if self._client is not None:
            return self._client, False
        return httpx.AsyncClient(timeout=self.timeout), True

    async def _open(self, client: httpx.AsyncClient, request: HttpRequest) -> httpx.Response:
        last_error: TransportError | None = None
        for attempt in range(1 + self.max_retries):
            http_request = client.build_request(
                "POST", request.url, json=request.body, headers=request.headers
            )
            try:
                response = await client.send(http_request, stream=True)
            except httpx.TransportError as exc:
                last_error = TransportError(f"Connection to {request.url} failed: {exc}")
                logger.warning(
                    "Transport error (attempt %d/%d): %s",
                    attempt + 1,
                    1 + self.max_retries,
                    exc,
                )
                continue

            if response.status_code == 429 or response.status_code >= 500:
                # Retryable -- read body so the connection is released.
                body = await response.aread()
                await response.aclose()
                last_error = TransportError(
                    f"HTTP {response.status_code}: {_error_detail(body)}",
                    status_code=response.status_code,
                )
                logger.warning(
                    "Retryable HTTP %d (attempt %d/%d)",
                    response.status_code,
                    attempt + 1,
                    1 + self.max_retries,
                )
                continue

            if response.status_code >= 400:
                body = await response.aread()
                await response.aclose()
                raise TransportError(
                    f"HTTP {response.status_code}: {_error_detail(body)}",
                    status_code=response.status_code,
                )

            return response

        if last_error is None:
            raise TransportError(f"No attempt was made to reach {request.url}")
        raise last_error

    @staticmethod
    async def _iter_body(response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise TransportError(f"Stream interrupted: {exc}") from exc
