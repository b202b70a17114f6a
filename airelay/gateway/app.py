"""FastAPI app exposing the relay, catalog and admin routes."""

from __future__ import annotations

import asyncio
import hmac
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Callable

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, StreamingResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..config import AppConfig
from ..domain import CHAT_ROLES, GenerationOptions, Message, RelayRequest
from ..errors import ClientInputError, EndpointNotFound, ModelNotFound, RelayError, Unauthorized
from ..logging_utils import get_logger
from ..observability.metrics import relay_requests_total
from ..providers.registry import AdapterRegistry, build_adapter_registry
from ..storage.database import DatabaseManager
from ..storage.store import EndpointStore
from .catalog import ModelCatalogSynchronizer
from .engine import RelayEngine, RelayStream
from .models import (
    CatalogEntry,
    ConnectionTestRequest,
    ConnectionTestResponse,
    EndpointModelView,
    GenerateTextRequest,
    ModelToggleRequest,
    RelayHealth,
    SyncModelsResponse,
)
from .normalizer import truncate_history
from .registry import EndpointRegistry
from .tester import ConnectionTester

_LOG = get_logger("gateway.api")

STREAM_FORMAT_HEADER = "X-Relay-Stream-Format"


class RelayStreamingResponse(StreamingResponse):
    """Streaming response that releases the upstream read however it ends.

    The body iterator is only created after ``http.response.start`` is sent;
    a failed start must still close the upstream stream.
    """

    def __init__(self, stream: RelayStream, **kwargs: Any) -> None:
        super().__init__(stream, media_type=stream.media_type, **kwargs)
        self.relay_stream = stream

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.relay_stream.aclose()


def _validation_details(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": str(error.get("msg", "")),
            "type": str(error.get("type", "")),
        }
        for error in exc.errors()
    ]


def create_app(
    config: AppConfig,
    *,
    db: DatabaseManager | None = None,
    adapters: AdapterRegistry | None = None,
    http_client_factory: Callable[..., httpx.AsyncClient] | None = None,
) -> FastAPI:
    owns_db = db is None
    db = db or DatabaseManager(config.database)
    adapters = adapters or build_adapter_registry(config.relay)
    store = EndpointStore(db)
    registry = EndpointRegistry(store)
    engine = RelayEngine(
        registry, adapters, config.relay, http_client_factory=http_client_factory
    )
    synchronizer = ModelCatalogSynchronizer(
        registry,
        store,
        adapters,
        catalog_config=config.catalog,
        relay_config=config.relay,
        http_client_factory=http_client_factory,
    )
    tester = ConnectionTester(
        adapters,
        catalog_config=config.catalog,
        relay_config=config.relay,
        http_client_factory=http_client_factory,
    )

    @asynccontextmanager
    async def _lifespan(_app: FastAPI):
        try:
            yield
        finally:
            if owns_db:
                db.close()

    app = FastAPI(title="AI Relay", lifespan=_lifespan)
    app.state.store = store
    app.state.registry = registry
    app.state.engine = engine

    @app.middleware("http")
    async def _limit_body(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                size = None
            if size is not None and size > config.api.max_body_bytes:
                return JSONResponse(status_code=413, content={"error": "Payload too large"})
        return await call_next(request)

    @app.exception_handler(RelayError)
    async def _relay_error(_request: Request, exc: RelayError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        error = ClientInputError("Invalid request body", details=_validation_details(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_payload())

    def _require_admin(request: Request) -> None:
        token = config.api.admin_token
        if not token:
            return
        header = request.headers.get("Authorization") or ""
        if not hmac.compare_digest(header.encode(), f"Bearer {token}".encode()):
            raise Unauthorized("Admin token required")

    @app.get("/health", response_model=RelayHealth)
    def health() -> RelayHealth:
        return RelayHealth(status="ok", provider_types=adapters.provider_types())

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/models", response_model=list[CatalogEntry])
    async def models() -> list[CatalogEntry]:
        catalog = await asyncio.to_thread(registry.list_enabled_catalog)
        return [CatalogEntry(**asdict(entry)) for entry in catalog]

    @app.post("/generate/text")
    async def generate_text(payload: GenerateTextRequest) -> Any:
        turns = [
            Message(role=turn.role, content=turn.content)
            for turn in payload.chat_history
            if turn.role in CHAT_ROLES and isinstance(turn.content, str)
        ]
        history = truncate_history(turns, config.relay.max_history_messages)
        relay_request = RelayRequest(
            prompt=payload.prompt,
            endpoint_id=payload.endpoint_id,
            model_id=payload.model_id,
            system_prompt=payload.system_prompt,
            history=tuple(history),
            stream=payload.stream,
            options=GenerationOptions(
                parameters=dict(payload.parameters), web_search=payload.web_search
            ),
        )
        _LOG.info(
            "Generate request endpoint={} model={} prompt_chars={} history={} stream={}",
            payload.endpoint_id,
            payload.model_id,
            len(payload.prompt),
            len(history),
            payload.stream,
        )
        mode = "stream" if payload.stream else "buffer"
        try:
            result = await engine.relay(relay_request)
        except RelayError as exc:
            relay_requests_total.labels(mode, str(exc.status_code)).inc()
            raise
        relay_requests_total.labels(mode, "200").inc()
        headers = {STREAM_FORMAT_HEADER: result.stream_format}
        if isinstance(result, RelayStream):
            headers["Cache-Control"] = "no-cache"
            return RelayStreamingResponse(result, headers=headers)
        return JSONResponse(content={"response": result.text}, headers=headers)

    @app.post("/admin/endpoints/test", response_model=ConnectionTestResponse)
    async def test_endpoint(payload: ConnectionTestRequest, request: Request) -> ConnectionTestResponse:
        _require_admin(request)
        result = await tester.test_connection(payload.provider, payload.api_key, payload.base_url)
        return ConnectionTestResponse(
            success=result.success, message=result.message, models=result.model_ids
        )

    @app.post("/admin/endpoints/{endpoint_id}/models", response_model=SyncModelsResponse)
    async def sync_endpoint_models(endpoint_id: str, request: Request) -> SyncModelsResponse:
        _require_admin(request)
        result = await synchronizer.sync_models(endpoint_id)
        if result.supported:
            message = f"Synced {result.models_found} models ({result.models_inserted} new)"
        else:
            message = "Provider type has no model listing; nothing synced"
        return SyncModelsResponse(message=message, models_found=result.models_found)

    @app.get("/admin/endpoints/{endpoint_id}/models", response_model=list[EndpointModelView])
    async def list_endpoint_models(endpoint_id: str, request: Request) -> list[EndpointModelView]:
        _require_admin(request)
        await asyncio.to_thread(registry.lookup, endpoint_id)
        records = await asyncio.to_thread(store.list_models, endpoint_id)
        return [
            EndpointModelView(
                endpoint_id=record.endpoint_id,
                model_id=record.model_id,
                model_name=record.model_name or record.model_id,
                enabled=bool(record.enabled),
            )
            for record in records
        ]

    @app.patch(
        "/admin/endpoints/{endpoint_id}/models/{model_id:path}",
        response_model=EndpointModelView,
    )
    async def toggle_endpoint_model(
        endpoint_id: str, model_id: str, payload: ModelToggleRequest, request: Request
    ) -> EndpointModelView:
        _require_admin(request)
        record = await asyncio.to_thread(
            store.set_model_enabled, endpoint_id, model_id, payload.enabled
        )
        if record is None:
            raise ModelNotFound(f"Model '{model_id}' not found for endpoint '{endpoint_id}'")
        _LOG.info(
            "Model {} on endpoint {} set enabled={}", model_id, endpoint_id, payload.enabled
        )
        return EndpointModelView(
            endpoint_id=record.endpoint_id,
            model_id=record.model_id,
            model_name=record.model_name or record.model_id,
            enabled=bool(record.enabled),
        )

    @app.delete("/admin/endpoints/{endpoint_id}", status_code=204)
    async def delete_endpoint(endpoint_id: str, request: Request) -> Response:
        _require_admin(request)
        deleted = await asyncio.to_thread(store.delete_endpoint, endpoint_id)
        if not deleted:
            raise EndpointNotFound(f"Endpoint '{endpoint_id}' not found")
        _LOG.info("Deleted endpoint {}", endpoint_id)
        return Response(status_code=204)

    return app


__all__ = ["RelayStreamingResponse", "STREAM_FORMAT_HEADER", "create_app"]
