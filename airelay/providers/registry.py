"""Provider-type to adapter lookup."""

from __future__ import annotations

from typing import Iterable

from ..config import RelayConfig
from .base import ProviderAdapter
from .google import GoogleAdapter
from .openai_compat import OpenAICompatibleAdapter
from .pollinations import PollinationsAdapter


class AdapterRegistry:
    """Map provider type tags to adapters; unknown tags use the default adapter."""

    def __init__(
        self,
        adapters: Iterable[ProviderAdapter] = (),
        *,
        default: ProviderAdapter | None = None,
    ) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}
        self._default = default or OpenAICompatibleAdapter()
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter, *types: str) -> None:
        for provider_type in types or adapter.provider_types:
            self._adapters[provider_type.strip().lower()] = adapter

    def for_type(self, provider_type: str) -> ProviderAdapter:
        return self._adapters.get((provider_type or "").strip().lower(), self._default)

    def provider_types(self) -> list[str]:
        return sorted(self._adapters)


def build_adapter_registry(config: RelayConfig | None = None) -> AdapterRegistry:
    config = config or RelayConfig()
    return AdapterRegistry(
        [
            OpenAICompatibleAdapter(),
            GoogleAdapter(),
            PollinationsAdapter(referrer=config.referrer),
        ]
    )


__all__ = ["AdapterRegistry", "build_adapter_registry"]
