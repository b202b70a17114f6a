"""Model catalog discovery and synchronisation into the endpoint store."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable

import httpx

from ..config import CatalogConfig, RelayConfig
from ..domain import EndpointConfig
from ..errors import (
    RelayError,
    UnexpectedResponseShape,
    UpstreamError,
    UpstreamListError,
    UpstreamTimeout,
)
from ..logging_utils import get_logger
from ..observability.metrics import catalog_sync_total
from ..providers.base import DiscoveredModel, ProviderAdapter, model_list_items
from ..providers.registry import AdapterRegistry
from ..storage.store import EndpointStore, NewModel
from .registry import EndpointRegistry

_LOG = get_logger("gateway.catalog")


@dataclass(frozen=True)
class SyncResult:
    endpoint_id: str
    models_found: int
    models_inserted: int = 0
    supported: bool = True


def build_client(
    config: RelayConfig, factory: Callable[..., httpx.AsyncClient] | None = None
) -> httpx.AsyncClient:
    timeout = httpx.Timeout(config.request_timeout_s, connect=config.connect_timeout_s)
    if factory:
        return factory(timeout=timeout)
    return httpx.AsyncClient(timeout=timeout)


async def fetch_model_catalog(
    client: httpx.AsyncClient,
    adapter: ProviderAdapter,
    endpoint: EndpointConfig,
    *,
    max_pages: int = 5,
    page_size: int | None = None,
    body_limit: int = 2000,
    strict: bool = True,
) -> list[DiscoveredModel] | None:
    """List the models an endpoint advertises.

    Returns None when the adapter defines no model-listing call. With
    ``strict`` an unrecognised payload shape raises instead of yielding an
    empty list.
    """

    models: list[DiscoveredModel] = []
    token: str | None = None
    pages = 0
    while True:
        request = adapter.models_request(endpoint, page_token=token, page_size=page_size)
        if request is None:
            return None
        pages += 1
        _LOG.debug("Listing models (page {}) from {}", pages, request.redacted_url())
        try:
            response = await client.request(request.method, request.url, headers=request.headers)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout("Model listing timed out") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Model listing failed: {exc.__class__.__name__}") from exc
        if not response.is_success:
            raise UpstreamListError(
                f"Model listing failed with HTTP {response.status_code}",
                upstream_status=response.status_code,
                body=response.text[:body_limit],
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise UnexpectedResponseShape(
                "Model listing returned a non-JSON body",
                details={"body": response.text[:body_limit]},
            ) from exc
        if strict and model_list_items(payload) is None:
            raise UnexpectedResponseShape(
                "Model listing did not contain a model array",
                details={"body": response.text[:body_limit]},
            )
        models.extend(adapter.extract_models(payload))
        token = adapter.next_page_token(payload)
        if not token:
            break
        if pages >= max_pages:
            _LOG.warning(
                "Stopped model listing for endpoint {} after {} pages",
                endpoint.endpoint_id,
                pages,
            )
            break
    return models


class ModelCatalogSynchronizer:
    """Insert newly advertised models as disabled; never touch existing rows."""

    def __init__(
        self,
        registry: EndpointRegistry,
        store: EndpointStore,
        adapters: AdapterRegistry,
        *,
        catalog_config: CatalogConfig | None = None,
        relay_config: RelayConfig | None = None,
        http_client_factory: Callable[..., httpx.AsyncClient] | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._adapters = adapters
        self._catalog_config = catalog_config or CatalogConfig()
        self._relay_config = relay_config or RelayConfig()
        self._client_factory = http_client_factory

    async def sync_models(self, endpoint_id: str) -> SyncResult:
        try:
            result = await self._sync(endpoint_id)
        except RelayError as exc:
            catalog_sync_total.labels("failed").inc()
            _LOG.warning("Model sync for endpoint {} failed: {}", endpoint_id, exc.message)
            raise
        catalog_sync_total.labels("ok" if result.supported else "unsupported").inc()
        return result

    async def _sync(self, endpoint_id: str) -> SyncResult:
        endpoint = await asyncio.to_thread(self._registry.lookup, endpoint_id)
        adapter = self._adapters.for_type(endpoint.provider_type)
        async with build_client(self._relay_config, self._client_factory) as client:
            models = await fetch_model_catalog(
                client,
                adapter,
                endpoint,
                max_pages=self._catalog_config.google_max_pages,
                page_size=self._catalog_config.google_page_size,
                body_limit=self._relay_config.error_body_max_chars,
                strict=True,
            )
        if models is None:
            _LOG.info(
                "Endpoint type '{}' has no model listing; nothing to sync",
                endpoint.provider_type,
            )
            return SyncResult(endpoint_id=endpoint_id, models_found=0, supported=False)
        inserted = await asyncio.to_thread(
            self._store.insert_missing_models,
            endpoint_id,
            [NewModel(model_id=m.model_id, model_name=m.display_name) for m in models],
        )
        _LOG.info(
            "Synced endpoint {}: {} models found, {} new",
            endpoint_id,
            len(models),
            inserted,
        )
        return SyncResult(
            endpoint_id=endpoint_id,
            models_found=len(models),
            models_inserted=inserted,
        )


__all__ = [
    "ModelCatalogSynchronizer",
    "SyncResult",
    "build_client",
    "fetch_model_catalog",
]
