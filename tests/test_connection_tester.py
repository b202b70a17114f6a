from __future__ import annotations

import httpx
import pytest

from airelay.errors import ConfigurationError, MissingBaseUrl, MissingCredential, UpstreamListError
from airelay.gateway.tester import ConnectionTester
from airelay.providers import build_adapter_registry


def _tester(factory) -> ConnectionTester:
    return ConnectionTester(build_adapter_registry(), http_client_factory=factory)


@pytest.mark.anyio
async def test_empty_model_list_is_success(mock_client_factory) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "https://api.groq.com/openai/v1/models"
        return httpx.Response(200, json={"data": []})

    result = await _tester(mock_client_factory(handler)).test_connection("groq", "gsk-abc12345")

    assert result.success is True
    assert result.model_ids == []
    assert "no models" in result.message


@pytest.mark.anyio
async def test_reports_model_ids(mock_client_factory) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["x-api-key"] == "sk-ant-1"
        return httpx.Response(200, json={"data": [{"id": "claude-3-haiku"}, {"id": "claude-3-opus"}]})

    result = await _tester(mock_client_factory(handler)).test_connection("anthropic", "sk-ant-1")

    assert result.model_ids == ["claude-3-haiku", "claude-3-opus"]


@pytest.mark.anyio
async def test_unknown_shape_is_connected_without_models(mock_client_factory) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"object": "list"})

    result = await _tester(mock_client_factory(handler)).test_connection(
        "custom", None, "http://localhost:9000/v1"
    )

    assert result.success is True
    assert result.model_ids == []


@pytest.mark.anyio
async def test_upstream_rejection_is_a_failure(mock_client_factory) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"message": "forbidden"}})

    with pytest.raises(UpstreamListError) as excinfo:
        await _tester(mock_client_factory(handler)).test_connection("openai", "sk-abcdef12")
    assert excinfo.value.upstream_status == 403


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("provider", "credential", "base_url", "error"),
    [
        ("openai_compatible", "sk-1", None, MissingBaseUrl),
        ("openai", None, None, MissingCredential),
        ("google", "", None, MissingCredential),
        ("pollinations", None, None, ConfigurationError),
    ],
)
async def test_caller_configuration_errors_are_client_errors(
    mock_client_factory, provider, credential, base_url, error
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no upstream call expected")

    with pytest.raises(error) as excinfo:
        await _tester(mock_client_factory(handler)).test_connection(provider, credential, base_url)
    assert excinfo.value.status_code == 400
