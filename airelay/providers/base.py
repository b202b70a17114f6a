"""Adapter interface and helpers shared by every provider family."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence

from ..domain import EndpointConfig, GenerationOptions, Message
from ..errors import UnexpectedResponseShape
from ..logging_utils import get_logger

_LOG = get_logger("providers")

MODEL_PREFIX = "models/"

STREAM_OPENAI_SSE = "openai-sse"
STREAM_GOOGLE_JSON = "google-json"
STREAM_TEXT = "text"

_RESERVED_BODY_KEYS = frozenset({"model", "messages", "stream"})
_KEY_PARAM = re.compile(r"([?&]key=)[^&]+")


@dataclass(frozen=True)
class UpstreamRequest:
    url: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    stream_format: str = STREAM_OPENAI_SSE
    media_type: str = "text/event-stream"

    def redacted_url(self) -> str:
        return _KEY_PARAM.sub(r"\1[REDACTED]", self.url)


@dataclass(frozen=True)
class DiscoveredModel:
    model_id: str
    display_name: str | None = None


def strip_model_prefix(model_id: str) -> str:
    model_id = model_id.strip()
    if model_id.startswith(MODEL_PREFIX):
        return model_id[len(MODEL_PREFIX) :]
    return model_id


def model_list_items(payload: Any) -> list[Any] | None:
    """Return the model array from a listing payload, or None for unknown shapes."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "models"):
            items = payload.get(key)
            if isinstance(items, list):
                return items
    return None


def extract_model_entries(payload: Any) -> list[DiscoveredModel]:
    items = model_list_items(payload)
    if items is None:
        shape = sorted(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
        _LOG.warning("Unrecognised model list shape: {}", shape)
        return []
    entries: list[DiscoveredModel] = []
    for item in items:
        if isinstance(item, str):
            model_id = strip_model_prefix(item)
            display = None
        elif isinstance(item, dict):
            raw_id = item.get("id") or item.get("name")
            if not isinstance(raw_id, str) or not raw_id.strip():
                continue
            model_id = strip_model_prefix(raw_id)
            display = item.get("displayName") or item.get("display_name")
            if not display and item.get("id") and isinstance(item.get("name"), str):
                display = strip_model_prefix(item["name"])
        else:
            continue
        if model_id:
            entries.append(DiscoveredModel(model_id=model_id, display_name=display or None))
    return entries


def extract_model_ids(payload: Any) -> list[str]:
    return [entry.model_id for entry in extract_model_entries(payload)]


def merge_parameters(body: dict[str, Any], options: GenerationOptions | None) -> dict[str, Any]:
    if options is None:
        return body
    for key, value in options.parameters.items():
        if key in _RESERVED_BODY_KEYS:
            continue
        body.setdefault(key, value)
    return body


def decode_json(body: bytes) -> Any:
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


def _choice_content(payload: dict[str, Any]) -> str | None:
    choices = payload.get("choices") or []
    if choices and isinstance(choices[0], dict):
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str):
            return content
    return None


def extract_chat_text(body: bytes, content_type: str) -> str:
    """Read ``choices[0].message.content`` from JSON replies.

    Bodies served with a non-JSON content type are the answer itself and come
    back unchanged, even when they happen to parse as a JSON scalar or list.
    """

    payload = decode_json(body) if body else None
    if "json" not in content_type.lower():
        if isinstance(payload, dict):
            content = _choice_content(payload)
            if content is not None:
                return content
        text = body.decode("utf-8", errors="replace")
        if text.strip():
            return text
        raise UnexpectedResponseShape("Upstream response was empty")
    if isinstance(payload, dict):
        content = _choice_content(payload)
        if content is not None:
            return content
        raise UnexpectedResponseShape(
            "Upstream response did not contain chat content",
            details={"keys": sorted(payload.keys())},
        )
    if isinstance(payload, str):
        return payload
    raise UnexpectedResponseShape("Upstream response did not contain chat content")


class ProviderAdapter(ABC):
    """Translate the internal request shape into one provider's wire format."""

    provider_types: tuple[str, ...] = ()

    @abstractmethod
    def build_request(
        self,
        endpoint: EndpointConfig,
        model_id: str,
        messages: Sequence[Message],
        stream: bool,
        *,
        options: GenerationOptions | None = None,
    ) -> UpstreamRequest:
        """Return the upstream chat/generation call for ``messages``."""

    def models_request(
        self,
        endpoint: EndpointConfig,
        *,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> UpstreamRequest | None:
        """Return the model-listing call, or None when the provider has none."""

        return None

    def next_page_token(self, payload: Any) -> str | None:
        return None

    def extract_models(self, payload: Any) -> list[DiscoveredModel]:
        return extract_model_entries(payload)

    def extract_text(self, body: bytes, content_type: str) -> str:
        return extract_chat_text(body, content_type)


__all__ = [
    "DiscoveredModel",
    "ProviderAdapter",
    "STREAM_GOOGLE_JSON",
    "STREAM_OPENAI_SSE",
    "STREAM_TEXT",
    "UpstreamRequest",
    "decode_json",
    "extract_chat_text",
    "extract_model_entries",
    "extract_model_ids",
    "merge_parameters",
    "model_list_items",
    "strip_model_prefix",
]
