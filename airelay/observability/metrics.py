"""Prometheus metrics for relay and catalog operations."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

relay_requests_total = Counter(
    "airelay_relay_requests_total",
    "Relay calls by delivery mode and HTTP status",
    ["mode", "status"],
)
relay_failures_total = Counter(
    "airelay_relay_failures_total",
    "Relay failures by error category",
    ["category"],
)
relay_latency_ms = Histogram(
    "airelay_relay_latency_ms",
    "Time until the upstream provider started responding",
    ["mode"],
    buckets=(50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000),
)
catalog_sync_total = Counter(
    "airelay_catalog_sync_total",
    "Model catalog synchronisations by outcome",
    ["status"],
)


__all__ = [
    "catalog_sync_total",
    "relay_failures_total",
    "relay_latency_ms",
    "relay_requests_total",
]
