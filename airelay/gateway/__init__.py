"""Relay core: endpoint registry, relay engine, catalog sync and HTTP app."""

from .app import create_app
from .catalog import ModelCatalogSynchronizer, SyncResult
from .engine import RelayCall, RelayCompletion, RelayEngine, RelayState, RelayStream
from .registry import EndpointRegistry
from .tester import ConnectionTester, ConnectionTestResult

__all__ = [
    "ConnectionTestResult",
    "ConnectionTester",
    "EndpointRegistry",
    "ModelCatalogSynchronizer",
    "RelayCall",
    "RelayCompletion",
    "RelayEngine",
    "RelayState",
    "RelayStream",
    "SyncResult",
    "create_app",
]
