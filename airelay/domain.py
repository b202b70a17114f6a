"""Plain data types passed between the registry, adapters and relay."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

CHAT_ROLES: frozenset[str] = frozenset({"user", "assistant"})


@dataclass(frozen=True)
class Message:
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class EndpointConfig:
    """Connection details for one configured upstream account."""

    endpoint_id: str
    provider_type: str
    base_url: str | None = None
    credential: str | None = None
    enabled: bool = True
    name: str = ""

    def __repr__(self) -> str:
        return (
            f"EndpointConfig(endpoint_id={self.endpoint_id!r}, "
            f"provider_type={self.provider_type!r}, base_url={self.base_url!r}, "
            f"credential={'***' if self.credential else None}, enabled={self.enabled})"
        )


@dataclass(frozen=True)
class SelectableModel:
    model_id: str
    display_name: str
    endpoint_id: str
    provider_type: str
    endpoint_name: str = ""


@dataclass(frozen=True)
class GenerationOptions:
    parameters: dict[str, Any] = field(default_factory=dict)
    web_search: bool = False


@dataclass(frozen=True)
class RelayRequest:
    prompt: str
    endpoint_id: str
    model_id: str
    system_prompt: str | None = None
    history: tuple[Message, ...] = ()
    stream: bool = True
    options: GenerationOptions = field(default_factory=GenerationOptions)


__all__ = [
    "CHAT_ROLES",
    "EndpointConfig",
    "GenerationOptions",
    "Message",
    "RelayRequest",
    "SelectableModel",
]
