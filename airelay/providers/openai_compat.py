"""OpenAI-compatible chat completions adapter.

Serves ``openai_compatible``, ``custom``, ``openai``, ``anthropic``,
``mistral``, ``groq``, ``openrouter`` and any provider type without a
dedicated adapter:

    POST {base_url}/chat/completions  {model, messages, stream}
    GET  {base_url}/models
"""

from __future__ import annotations

from typing import Sequence

from ..domain import EndpointConfig, GenerationOptions, Message
from ..errors import MissingBaseUrl, MissingCredential
from .base import (
    STREAM_OPENAI_SSE,
    ProviderAdapter,
    UpstreamRequest,
    merge_parameters,
)

ANTHROPIC_VERSION = "2023-06-01"

DEFAULT_BASE_URLS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "anthropic": "https://api.anthropic.com/v1",
    "mistral": "https://api.mistral.ai/v1",
    "groq": "https://api.groq.com/openai/v1",
    "openrouter": "https://openrouter.ai/api/v1",
}

# Custom endpoints (self-hosted gateways) may legitimately run without auth.
CREDENTIAL_OPTIONAL = frozenset({"custom"})


def resolve_base_url(endpoint: EndpointConfig) -> str:
    base_url = (endpoint.base_url or "").strip() or DEFAULT_BASE_URLS.get(
        endpoint.provider_type, ""
    )
    if not base_url:
        raise MissingBaseUrl(
            f"Endpoint of type '{endpoint.provider_type}' requires a base_url",
            details={"endpoint_id": endpoint.endpoint_id},
        )
    return base_url.rstrip("/")


def auth_headers(endpoint: EndpointConfig) -> dict[str, str]:
    credential = (endpoint.credential or "").strip()
    if endpoint.provider_type == "anthropic":
        if not credential:
            raise MissingCredential(
                "Anthropic endpoint has no API key configured",
                details={"endpoint_id": endpoint.endpoint_id},
            )
        return {"x-api-key": credential, "anthropic-version": ANTHROPIC_VERSION}
    if credential:
        return {"Authorization": f"Bearer {credential}"}
    if endpoint.provider_type in CREDENTIAL_OPTIONAL:
        return {}
    raise MissingCredential(
        f"Endpoint of type '{endpoint.provider_type}' has no API key configured",
        details={"endpoint_id": endpoint.endpoint_id},
    )


class OpenAICompatibleAdapter(ProviderAdapter):
    provider_types = (
        "openai_compatible",
        "custom",
        "openai",
        "anthropic",
        "mistral",
        "groq",
        "openrouter",
    )

    def build_request(
        self,
        endpoint: EndpointConfig,
        model_id: str,
        messages: Sequence[Message],
        stream: bool,
        *,
        options: GenerationOptions | None = None,
    ) -> UpstreamRequest:
        base_url = resolve_base_url(endpoint)
        headers = {"Content-Type": "application/json"}
        headers.update(auth_headers(endpoint))
        body = {
            "model": model_id,
            "messages": [message.to_dict() for message in messages],
            "stream": stream,
        }
        return UpstreamRequest(
            url=f"{base_url}/chat/completions",
            method="POST",
            headers=headers,
            body=merge_parameters(body, options),
            stream_format=STREAM_OPENAI_SSE,
            media_type="text/event-stream" if stream else "application/json",
        )

    def models_request(
        self,
        endpoint: EndpointConfig,
        *,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> UpstreamRequest | None:
        base_url = resolve_base_url(endpoint)
        headers = {"Accept": "application/json"}
        headers.update(auth_headers(endpoint))
        return UpstreamRequest(
            url=f"{base_url}/models",
            method="GET",
            headers=headers,
            media_type="application/json",
        )
