"""Relay engine: resolve an endpoint, dispatch upstream, stream or buffer the reply."""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable

import httpx

from ..config import RelayConfig
from ..domain import RelayRequest
from ..errors import (
    RelayError,
    StreamInterrupted,
    UpstreamError,
    UpstreamTimeout,
)
from ..logging_utils import get_logger
from ..observability.metrics import relay_failures_total, relay_latency_ms
from ..providers.base import UpstreamRequest
from ..providers.registry import AdapterRegistry
from .catalog import build_client
from .normalizer import build_messages
from .registry import EndpointRegistry

_LOG = get_logger("gateway.relay")


class RelayState(str, Enum):
    RESOLVING = "resolving"
    DISPATCHING = "dispatching"
    STREAMING = "streaming"
    BUFFERING = "buffering"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[RelayState, frozenset[RelayState]] = {
    RelayState.RESOLVING: frozenset({RelayState.DISPATCHING, RelayState.FAILED}),
    RelayState.DISPATCHING: frozenset(
        {RelayState.STREAMING, RelayState.BUFFERING, RelayState.FAILED}
    ),
    RelayState.STREAMING: frozenset({RelayState.COMPLETED, RelayState.FAILED}),
    RelayState.BUFFERING: frozenset({RelayState.COMPLETED, RelayState.FAILED}),
    RelayState.COMPLETED: frozenset(),
    RelayState.FAILED: frozenset(),
}


class RelayCall:
    """State of one relay call; COMPLETED and FAILED are terminal."""

    def __init__(self, request: RelayRequest) -> None:
        self.request = request
        self.state = RelayState.RESOLVING
        self.history: list[RelayState] = [RelayState.RESOLVING]
        self.error: RelayError | None = None
        self.cancelled = False

    @property
    def terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    def transition(self, state: RelayState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid relay transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, error: RelayError | None) -> None:
        if self.terminal:
            return
        self.error = error
        self.transition(RelayState.FAILED)
        category = error.category if error is not None else "cancelled"
        relay_failures_total.labels(category).inc()

    def cancel(self) -> None:
        self.cancelled = True
        self.fail(None)

    def complete(self) -> None:
        self.transition(RelayState.COMPLETED)


@dataclass(frozen=True)
class RelayCompletion:
    text: str
    content_type: str
    stream_format: str
    call: RelayCall


class RelayStream:
    """Forward upstream bytes unchanged; closing it closes the upstream read."""

    def __init__(
        self,
        call: RelayCall,
        response: httpx.Response,
        client: httpx.AsyncClient,
        *,
        media_type: str,
        stream_format: str,
    ) -> None:
        self.call = call
        self.media_type = media_type
        self.stream_format = stream_format
        self._response = response
        self._client = client
        self._closed = False
        self._forwarded = 0

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        finished = False
        try:
            async for chunk in self._response.aiter_bytes():
                self._forwarded += len(chunk)
                yield chunk
            finished = True
        except httpx.HTTPError as exc:
            error = StreamInterrupted(
                "Upstream stream ended unexpectedly",
                details={"bytes_forwarded": self._forwarded, "reason": exc.__class__.__name__},
            )
            _LOG.warning(
                "Upstream stream for endpoint {} interrupted after {} bytes: {}",
                self.call.request.endpoint_id,
                self._forwarded,
                exc.__class__.__name__,
            )
            self.call.fail(error)
            raise error from exc
        finally:
            await self._release(completed=finished)

    async def aclose(self) -> None:
        """Close the upstream read; a call that has not completed ends cancelled.

        Safe to call whether or not iteration ever started.
        """

        await self._release(completed=False)

    async def _release(self, *, completed: bool) -> None:
        if not self._closed:
            self._closed = True
            try:
                await self._response.aclose()
            finally:
                await self._client.aclose()
        if self.call.terminal:
            return
        if completed:
            self.call.complete()
        else:
            _LOG.info(
                "Relay stream for endpoint {} cancelled by caller after {} bytes",
                self.call.request.endpoint_id,
                self._forwarded,
            )
            self.call.cancel()


def extract_error_message(body: bytes, fallback: str, limit: int) -> str:
    text = body.decode("utf-8", errors="replace").strip() if body else ""
    if text:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and isinstance(error.get("message"), str):
                return error["message"]
            if isinstance(error, str) and error:
                return error
            if isinstance(payload.get("message"), str) and payload["message"]:
                return payload["message"]
        return text[:limit]
    return fallback or "Upstream request failed"


class RelayEngine:
    def __init__(
        self,
        registry: EndpointRegistry,
        adapters: AdapterRegistry,
        config: RelayConfig | None = None,
        *,
        http_client_factory: Callable[..., httpx.AsyncClient] | None = None,
    ) -> None:
        self._registry = registry
        self._adapters = adapters
        self._config = config or RelayConfig()
        self._client_factory = http_client_factory

    def _client(self) -> httpx.AsyncClient:
        return build_client(self._config, self._client_factory)

    async def relay(
        self, request: RelayRequest, *, call: RelayCall | None = None
    ) -> RelayStream | RelayCompletion:
        call = call or RelayCall(request)
        try:
            return await self._relay(call)
        except RelayError as exc:
            call.fail(exc)
            _LOG.warning(
                "Relay to endpoint {} model {} failed ({}): {}",
                request.endpoint_id,
                request.model_id,
                exc.category,
                exc.message,
            )
            raise

    async def _relay(self, call: RelayCall) -> RelayStream | RelayCompletion:
        request = call.request
        endpoint = await asyncio.to_thread(self._registry.resolve_endpoint, request.endpoint_id)
        call.transition(RelayState.DISPATCHING)
        adapter = self._adapters.for_type(endpoint.provider_type)
        messages = build_messages(request.system_prompt, request.history, request.prompt)
        upstream = adapter.build_request(
            endpoint,
            request.model_id,
            messages,
            request.stream,
            options=request.options,
        )
        _LOG.info(
            "Relaying {} messages to {} {} (type={}, stream={})",
            len(messages),
            upstream.method,
            upstream.redacted_url(),
            endpoint.provider_type,
            request.stream,
        )
        mode = "stream" if request.stream else "buffer"
        response, client = await self._send(upstream, mode)
        content_type = response.headers.get("content-type") or upstream.media_type
        if request.stream:
            call.transition(RelayState.STREAMING)
            return RelayStream(
                call,
                response,
                client,
                media_type=content_type,
                stream_format=upstream.stream_format,
            )
        call.transition(RelayState.BUFFERING)
        try:
            body = await response.aread()
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout("Upstream response body timed out") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Upstream read failed: {exc.__class__.__name__}") from exc
        finally:
            await response.aclose()
            await client.aclose()
        text = adapter.extract_text(body, content_type)
        call.complete()
        return RelayCompletion(
            text=text,
            content_type=content_type,
            stream_format=upstream.stream_format,
            call=call,
        )

    async def _send(
        self, upstream: UpstreamRequest, mode: str
    ) -> tuple[httpx.Response, httpx.AsyncClient]:
        client = self._client()
        handed_off = False
        start = time.monotonic()
        try:
            http_request = client.build_request(
                upstream.method,
                upstream.url,
                headers=upstream.headers,
                json=upstream.body,
            )
            try:
                response = await client.send(http_request, stream=True)
            except httpx.TimeoutException as exc:
                raise UpstreamTimeout(
                    f"Upstream did not respond within {self._config.request_timeout_s:g}s"
                ) from exc
            except httpx.HTTPError as exc:
                raise UpstreamError(
                    f"Upstream connection failed: {exc.__class__.__name__}"
                ) from exc
            finally:
                relay_latency_ms.labels(mode).observe((time.monotonic() - start) * 1000)
            if not response.is_success:
                await self._raise_for_status(response)
            handed_off = True
            return response, client
        finally:
            if not handed_off:
                await client.aclose()

    async def _raise_for_status(self, response: httpx.Response) -> None:
        try:
            body = await response.aread()
        except httpx.HTTPError:
            body = b""
        finally:
            await response.aclose()
        message = extract_error_message(
            body, response.reason_phrase, self._config.error_body_max_chars
        )
        status = response.status_code
        _LOG.warning("Upstream returned HTTP {}: {}", status, message)
        raise UpstreamError(
            message,
            upstream_status=status,
            status_code=status if self._config.passthrough_upstream_status else None,
        )


__all__ = [
    "RelayCall",
    "RelayCompletion",
    "RelayEngine",
    "RelayState",
    "RelayStream",
    "extract_error_message",
]
