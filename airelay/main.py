"""Application bootstrap / CLI.

``airelay serve`` runs the HTTP relay; the other commands run a single
catalog or connection operation against the configured database and exit.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

import yaml
from loguru import logger
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .config import AppConfig, load_config
from .errors import RelayError
from .logging_utils import configure_logging
from .storage.database import DatabaseManager


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="airelay")
    p.add_argument(
        "--config",
        default=os.environ.get("AIRELAY_CONFIG", "airelay.yml"),
        help="Path to config YAML (default: airelay.yml or AIRELAY_CONFIG).",
    )
    sub = p.add_subparsers(dest="cmd", required=False)

    sub.add_parser("serve", help="Run the HTTP relay (default).")

    sync = sub.add_parser("sync-models", help="Discover models for one endpoint and exit.")
    sync.add_argument("endpoint_id")

    test = sub.add_parser("test-connection", help="Check provider credentials and list models.")
    test.add_argument("--provider", required=True)
    test.add_argument("--api-key", default=None)
    test.add_argument("--base-url", default=None)

    sub.add_parser("print-config", help="Load config and print resolved values.")

    return p.parse_args(argv)


def _redacted_config(config: AppConfig) -> dict:
    payload = config.model_dump(mode="json")
    if payload["api"].get("admin_token"):
        payload["api"]["admin_token"] = "[REDACTED]"
    try:
        payload["database"]["url"] = make_url(config.database.url).render_as_string(
            hide_password=True
        )
    except ArgumentError:
        payload["database"]["url"] = "[REDACTED]"
    return payload


def _serve(config: AppConfig) -> int:
    import uvicorn

    from .gateway.app import create_app

    app = create_app(config)
    logger.info("Serving relay on {}:{}", config.api.host, config.api.port)
    uvicorn.run(app, host=config.api.host, port=config.api.port, log_level="warning")
    return 0


async def _sync_models(config: AppConfig, endpoint_id: str) -> int:
    from .gateway.catalog import ModelCatalogSynchronizer
    from .gateway.registry import EndpointRegistry
    from .providers.registry import build_adapter_registry
    from .storage.store import EndpointStore

    db = DatabaseManager(config.database)
    try:
        store = EndpointStore(db)
        synchronizer = ModelCatalogSynchronizer(
            EndpointRegistry(store),
            store,
            build_adapter_registry(config.relay),
            catalog_config=config.catalog,
            relay_config=config.relay,
        )
        result = await synchronizer.sync_models(endpoint_id)
    finally:
        db.close()
    print(f"models_found={result.models_found} models_inserted={result.models_inserted}")
    return 0


async def _test_connection(config: AppConfig, args: argparse.Namespace) -> int:
    from .gateway.tester import ConnectionTester
    from .providers.registry import build_adapter_registry

    tester = ConnectionTester(
        build_adapter_registry(config.relay),
        catalog_config=config.catalog,
        relay_config=config.relay,
    )
    result = await tester.test_connection(args.provider, args.api_key, args.base_url)
    print(result.message)
    for model_id in result.model_ids:
        print(model_id)
    return 0


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    args = _parse_args(argv)
    cmd = args.cmd or "serve"

    try:
        config = load_config(Path(args.config))
    except RelayError as exc:
        print(f"Invalid configuration: {exc.message}", file=sys.stderr)
        return 2
    configure_logging(config.logging.log_dir, config.logging.level)

    if cmd == "print-config":
        print(yaml.safe_dump(_redacted_config(config), sort_keys=False), end="")
        return 0

    try:
        if cmd == "sync-models":
            return asyncio.run(_sync_models(config, args.endpoint_id))
        if cmd == "test-connection":
            return asyncio.run(_test_connection(config, args))
        return _serve(config)
    except RelayError as exc:
        logger.error("{} failed ({}): {}", cmd, exc.category, exc.message)
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
