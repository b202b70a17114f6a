"""Google Gemini (Generative Language API) adapter."""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from ..domain import EndpointConfig, GenerationOptions, Message
from ..errors import MissingCredential, UnexpectedResponseShape
from .base import (
    STREAM_GOOGLE_JSON,
    ProviderAdapter,
    UpstreamRequest,
    decode_json,
    strip_model_prefix,
)

GOOGLE_BASE_URL = "https://generativelanguage.googleapis.com"

_ROLE_MAP = {"assistant": "model", "user": "user"}


def _credential(endpoint: EndpointConfig) -> str:
    credential = (endpoint.credential or "").strip()
    if not credential:
        raise MissingCredential(
            "Google endpoint has no API key configured",
            details={"endpoint_id": endpoint.endpoint_id},
        )
    return credential


def _base_url(endpoint: EndpointConfig) -> str:
    return ((endpoint.base_url or "").strip() or GOOGLE_BASE_URL).rstrip("/")


def build_contents(messages: Sequence[Message]) -> tuple[list[dict[str, Any]], str | None]:
    """Split messages into Gemini ``contents`` and the system instruction text."""

    contents: list[dict[str, Any]] = []
    system_parts: list[str] = []
    for message in messages:
        if message.role == "system":
            if message.content.strip():
                system_parts.append(message.content)
            continue
        role = _ROLE_MAP.get(message.role)
        if role is None:
            continue
        contents.append({"role": role, "parts": [{"text": message.content}]})
    system_text = "\n\n".join(system_parts) if system_parts else None
    return contents, system_text


class GoogleAdapter(ProviderAdapter):
    provider_types = ("google",)

    def build_request(
        self,
        endpoint: EndpointConfig,
        model_id: str,
        messages: Sequence[Message],
        stream: bool,
        *,
        options: GenerationOptions | None = None,
    ) -> UpstreamRequest:
        credential = _credential(endpoint)
        model = strip_model_prefix(model_id)
        action = "streamGenerateContent" if stream else "generateContent"
        url = httpx.URL(
            f"{_base_url(endpoint)}/v1beta/models/{model}:{action}",
            params={"key": credential},
        )
        contents, system_text = build_contents(messages)
        body: dict[str, Any] = {"contents": contents}
        if system_text:
            body["systemInstruction"] = {"parts": [{"text": system_text}]}
        if options is not None and options.parameters:
            body["generationConfig"] = dict(options.parameters)
        return UpstreamRequest(
            url=str(url),
            method="POST",
            headers={"Content-Type": "application/json"},
            body=body,
            stream_format=STREAM_GOOGLE_JSON,
            media_type="application/json",
        )

    def models_request(
        self,
        endpoint: EndpointConfig,
        *,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> UpstreamRequest | None:
        query: dict[str, Any] = {"key": _credential(endpoint)}
        if page_size:
            query["pageSize"] = page_size
        if page_token:
            query["pageToken"] = page_token
        return UpstreamRequest(
            url=str(httpx.URL(f"{_base_url(endpoint)}/v1beta/models", params=query)),
            method="GET",
            headers={"Accept": "application/json"},
            media_type="application/json",
        )

    def next_page_token(self, payload: Any) -> str | None:
        if isinstance(payload, dict):
            token = payload.get("nextPageToken")
            if isinstance(token, str) and token:
                return token
        return None

    def extract_text(self, body: bytes, content_type: str) -> str:
        payload = decode_json(body) if body else None
        if not isinstance(payload, dict):
            raise UnexpectedResponseShape("Google response was not a JSON object")
        candidates = payload.get("candidates") or []
        if candidates and isinstance(candidates[0], dict):
            content = candidates[0].get("content") or {}
            parts = content.get("parts") if isinstance(content, dict) else None
            if isinstance(parts, list):
                texts = [
                    part["text"]
                    for part in parts
                    if isinstance(part, dict) and isinstance(part.get("text"), str)
                ]
                if texts:
                    return "".join(texts)
        raise UnexpectedResponseShape(
            "Google response did not contain candidate text",
            details={"keys": sorted(payload.keys())},
        )
