"""Provider adapters translating relay requests into upstream wire formats."""

from .base import (
    DiscoveredModel,
    ProviderAdapter,
    UpstreamRequest,
    extract_model_entries,
    extract_model_ids,
    strip_model_prefix,
)
from .google import GoogleAdapter
from .openai_compat import OpenAICompatibleAdapter
from .pollinations import PollinationsAdapter
from .registry import AdapterRegistry, build_adapter_registry

__all__ = [
    "AdapterRegistry",
    "DiscoveredModel",
    "GoogleAdapter",
    "OpenAICompatibleAdapter",
    "PollinationsAdapter",
    "ProviderAdapter",
    "UpstreamRequest",
    "build_adapter_registry",
    "extract_model_entries",
    "extract_model_ids",
    "strip_model_prefix",
]
