"""Endpoint resolution and the enabled model catalog."""

from __future__ import annotations

from ..domain import EndpointConfig, SelectableModel
from ..errors import EndpointDisabled, EndpointNotFound
from ..logging_utils import get_logger
from ..storage.models import EndpointRecord
from ..storage.store import EndpointStore

_LOG = get_logger("gateway.registry")


def endpoint_config_from_record(record: EndpointRecord) -> EndpointConfig:
    return EndpointConfig(
        endpoint_id=record.id,
        provider_type=(record.type or "").strip().lower(),
        base_url=record.base_url,
        credential=record.api_key,
        enabled=bool(record.enabled),
        name=record.name or "",
    )


class EndpointRegistry:
    """Read-only view over the endpoint store used by the relay and catalog."""

    def __init__(self, store: EndpointStore) -> None:
        self._store = store

    def lookup(self, endpoint_id: str) -> EndpointConfig:
        """Return the endpoint regardless of its enabled flag."""

        record = self._store.get_endpoint(endpoint_id)
        if record is None:
            raise EndpointNotFound(f"Endpoint '{endpoint_id}' not found")
        return endpoint_config_from_record(record)

    def resolve_endpoint(self, endpoint_id: str) -> EndpointConfig:
        endpoint = self.lookup(endpoint_id)
        if not endpoint.enabled:
            raise EndpointDisabled(f"Endpoint '{endpoint_id}' is disabled")
        return endpoint

    def list_enabled_catalog(self) -> list[SelectableModel]:
        endpoints = self._store.list_enabled_endpoints()
        if not endpoints:
            return []
        by_id = {record.id: record for record in endpoints}
        models = self._store.list_enabled_models(list(by_id))
        catalog: list[SelectableModel] = []
        for model in models:
            parent = by_id.get(model.endpoint_id)
            if parent is None:
                _LOG.warning(
                    "Dropping model {} with unknown endpoint {}", model.model_id, model.endpoint_id
                )
                continue
            catalog.append(
                SelectableModel(
                    model_id=model.model_id,
                    display_name=model.model_name or model.model_id,
                    endpoint_id=parent.id,
                    provider_type=(parent.type or "").strip().lower(),
                    endpoint_name=parent.name or "",
                )
            )
        return catalog


__all__ = ["EndpointRegistry", "endpoint_config_from_record"]
