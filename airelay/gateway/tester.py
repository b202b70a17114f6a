"""Validate caller-supplied credentials against a provider's model listing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import httpx

from ..config import CatalogConfig, RelayConfig
from ..domain import EndpointConfig
from ..errors import ConfigurationError
from ..logging_utils import get_logger
from ..providers.registry import AdapterRegistry
from .catalog import build_client, fetch_model_catalog

_LOG = get_logger("gateway.tester")


@dataclass(frozen=True)
class ConnectionTestResult:
    success: bool
    model_ids: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.model_ids:
            return f"Connected; {len(self.model_ids)} models available"
        return "Connected; provider reported no models"


class ConnectionTester:
    def __init__(
        self,
        adapters: AdapterRegistry,
        *,
        catalog_config: CatalogConfig | None = None,
        relay_config: RelayConfig | None = None,
        http_client_factory: Callable[..., httpx.AsyncClient] | None = None,
    ) -> None:
        self._adapters = adapters
        self._catalog_config = catalog_config or CatalogConfig()
        self._relay_config = relay_config or RelayConfig()
        self._client_factory = http_client_factory

    async def test_connection(
        self,
        provider_type: str,
        credential: str | None,
        base_url: str | None = None,
    ) -> ConnectionTestResult:
        endpoint = EndpointConfig(
            endpoint_id="connection-test",
            provider_type=(provider_type or "").strip().lower(),
            base_url=base_url,
            credential=credential,
        )
        adapter = self._adapters.for_type(endpoint.provider_type)
        try:
            async with build_client(self._relay_config, self._client_factory) as client:
                models = await fetch_model_catalog(
                    client,
                    adapter,
                    endpoint,
                    max_pages=self._catalog_config.google_max_pages,
                    page_size=self._catalog_config.google_page_size,
                    body_limit=self._relay_config.error_body_max_chars,
                    strict=False,
                )
        except ConfigurationError as exc:
            # Credentials came from the caller, not from server configuration.
            raise type(exc)(exc.message, status_code=400, details=exc.details) from exc
        if models is None:
            raise ConfigurationError(
                f"Provider type '{endpoint.provider_type}' does not support connection tests",
                status_code=400,
            )
        model_ids = [model.model_id for model in models]
        _LOG.info(
            "Connection test for provider {} succeeded with {} models",
            endpoint.provider_type,
            len(model_ids),
        )
        return ConnectionTestResult(success=True, model_ids=model_ids)


__all__ = ["ConnectionTestResult", "ConnectionTester"]
