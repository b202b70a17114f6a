"""Pollinations text adapter (OpenAI-style endpoint, no authentication)."""

from __future__ import annotations

from typing import Any, Sequence
from urllib.parse import quote

import httpx

from ..domain import EndpointConfig, GenerationOptions, Message
from .base import (
    STREAM_OPENAI_SSE,
    STREAM_TEXT,
    ProviderAdapter,
    UpstreamRequest,
    merge_parameters,
)

POLLINATIONS_TEXT_URL = "https://text.pollinations.ai"
POLLINATIONS_OPENAI_URL = f"{POLLINATIONS_TEXT_URL}/openai"

# Served by a GET prompt endpoint that answers with plain text.
SEARCH_MODEL = "searchgpt"


def _last_user_text(messages: Sequence[Message]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return ""


class PollinationsAdapter(ProviderAdapter):
    provider_types = ("pollinations",)

    def __init__(self, referrer: str = "QanduApp") -> None:
        self._referrer = referrer

    def build_request(
        self,
        endpoint: EndpointConfig,
        model_id: str,
        messages: Sequence[Message],
        stream: bool,
        *,
        options: GenerationOptions | None = None,
    ) -> UpstreamRequest:
        if model_id == SEARCH_MODEL:
            prompt = quote(_last_user_text(messages), safe="")
            url = httpx.URL(f"{POLLINATIONS_TEXT_URL}/{prompt}", params={"model": SEARCH_MODEL})
            return UpstreamRequest(
                url=str(url),
                method="GET",
                headers={"Accept": "text/plain"},
                stream_format=STREAM_TEXT,
                media_type="text/plain; charset=utf-8",
            )
        body: dict[str, Any] = {
            "model": model_id,
            "messages": [message.to_dict() for message in messages],
            "stream": stream,
            "referrer": self._referrer,
        }
        if options is not None and options.web_search:
            body["web_search_enabled"] = True
        return UpstreamRequest(
            url=POLLINATIONS_OPENAI_URL,
            method="POST",
            headers={"Content-Type": "application/json"},
            body=merge_parameters(body, options),
            stream_format=STREAM_OPENAI_SSE,
            media_type="text/event-stream" if stream else "application/json",
        )
