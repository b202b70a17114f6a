from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from airelay.domain import EndpointConfig, GenerationOptions, Message
from airelay.errors import ConfigurationError, MissingBaseUrl, MissingCredential
from airelay.providers import (
    AdapterRegistry,
    GoogleAdapter,
    OpenAICompatibleAdapter,
    PollinationsAdapter,
    build_adapter_registry,
)
from airelay.providers.base import STREAM_GOOGLE_JSON, STREAM_OPENAI_SSE, STREAM_TEXT


def _endpoint(provider_type: str, **kwargs) -> EndpointConfig:
    return EndpointConfig(endpoint_id="ep-1", provider_type=provider_type, **kwargs)


def test_pollinations_request_shape() -> None:
    adapter = PollinationsAdapter()
    request = adapter.build_request(
        _endpoint("pollinations"),
        "openai",
        [Message(role="user", content="Hello")],
        True,
    )

    assert request.method == "POST"
    assert request.url == "https://text.pollinations.ai/openai"
    assert request.body == {
        "model": "openai",
        "messages": [{"role": "user", "content": "Hello"}],
        "stream": True,
        "referrer": "QanduApp",
    }
    assert "Authorization" not in request.headers
    assert request.stream_format == STREAM_OPENAI_SSE


def test_pollinations_web_search_and_parameters() -> None:
    adapter = PollinationsAdapter(referrer="Other")
    request = adapter.build_request(
        _endpoint("pollinations"),
        "openai",
        [Message(role="user", content="Hi")],
        False,
        options=GenerationOptions(parameters={"temperature": 0.2, "model": "x"}, web_search=True),
    )

    assert request.body["web_search_enabled"] is True
    assert request.body["temperature"] == 0.2
    assert request.body["model"] == "openai"
    assert request.body["referrer"] == "Other"
    assert request.media_type == "application/json"


def test_pollinations_search_model_uses_prompt_url() -> None:
    adapter = PollinationsAdapter()
    request = adapter.build_request(
        _endpoint("pollinations"),
        "searchgpt",
        [
            Message(role="system", content="be brief"),
            Message(role="user", content="older"),
            Message(role="assistant", content="ok"),
            Message(role="user", content="weather in Paris?"),
        ],
        True,
    )

    assert request.method == "GET"
    assert request.url == "https://text.pollinations.ai/weather%20in%20Paris%3F?model=searchgpt"
    assert request.body is None
    assert request.stream_format == STREAM_TEXT
    assert adapter.models_request(_endpoint("pollinations")) is None


def test_google_streaming_request_strips_model_prefix() -> None:
    adapter = GoogleAdapter()
    request = adapter.build_request(
        _endpoint("google", credential="AIza-secret"),
        "models/gemini-1.5-flash",
        [Message(role="user", content="Hi")],
        True,
    )

    assert request.url.endswith("/v1beta/models/gemini-1.5-flash:streamGenerateContent?key=AIza-secret")
    assert request.url.startswith("https://generativelanguage.googleapis.com/")
    assert request.stream_format == STREAM_GOOGLE_JSON
    assert "AIza-secret" not in request.redacted_url()


def test_google_non_streaming_uses_generate_content() -> None:
    adapter = GoogleAdapter()
    request = adapter.build_request(
        _endpoint("google", credential="k"),
        "gemini-pro",
        [Message(role="user", content="Hi")],
        False,
    )
    assert ":generateContent?key=k" in request.url


def test_google_roles_and_system_instruction() -> None:
    adapter = GoogleAdapter()
    request = adapter.build_request(
        _endpoint("google", credential="k"),
        "gemini-pro",
        [
            Message(role="system", content="You are terse."),
            Message(role="user", content="Q1"),
            Message(role="assistant", content="A1"),
            Message(role="user", content="Q2"),
        ],
        True,
        options=GenerationOptions(parameters={"temperature": 0.1}),
    )

    assert request.body["contents"] == [
        {"role": "user", "parts": [{"text": "Q1"}]},
        {"role": "model", "parts": [{"text": "A1"}]},
        {"role": "user", "parts": [{"text": "Q2"}]},
    ]
    assert request.body["systemInstruction"] == {"parts": [{"text": "You are terse."}]}
    assert request.body["generationConfig"] == {"temperature": 0.1}


@pytest.mark.parametrize("credential", [None, "", "   "])
def test_google_requires_credential(credential) -> None:
    adapter = GoogleAdapter()
    with pytest.raises(MissingCredential):
        adapter.build_request(
            _endpoint("google", credential=credential),
            "gemini-pro",
            [Message(role="user", content="Hi")],
            True,
        )


def test_google_models_request_pagination_query() -> None:
    adapter = GoogleAdapter()
    request = adapter.models_request(
        _endpoint("google", credential="k"), page_token="tok", page_size=50
    )
    parts = urlsplit(request.url)
    assert parts.path == "/v1beta/models"
    assert parse_qs(parts.query) == {"key": ["k"], "pageSize": ["50"], "pageToken": ["tok"]}
    assert adapter.next_page_token({"nextPageToken": "n2"}) == "n2"
    assert adapter.next_page_token({"models": []}) is None


def test_google_query_values_are_encoded() -> None:
    adapter = GoogleAdapter()
    endpoint = _endpoint("google", credential="a b&c=d")
    chat = adapter.build_request(endpoint, "gemini-pro", [Message(role="user", content="Hi")], True)
    listing = adapter.models_request(endpoint, page_token="tok/2")

    assert parse_qs(urlsplit(chat.url).query) == {"key": ["a b&c=d"]}
    assert parse_qs(urlsplit(listing.url).query) == {"key": ["a b&c=d"], "pageToken": ["tok/2"]}
    assert "a b&c=d" not in chat.redacted_url()


def test_google_extracts_candidate_text() -> None:
    adapter = GoogleAdapter()
    body = b'{"candidates":[{"content":{"parts":[{"text":"Hello "},{"text":"there"}]}}]}'
    assert adapter.extract_text(body, "application/json") == "Hello there"


@pytest.mark.parametrize("provider_type", ["openai_compatible", "custom"])
@pytest.mark.parametrize("base_url", [None, "", "   "])
def test_generic_types_require_base_url(provider_type, base_url) -> None:
    adapter = OpenAICompatibleAdapter()
    with pytest.raises(ConfigurationError) as excinfo:
        adapter.build_request(
            _endpoint(provider_type, base_url=base_url, credential="sk-abc"),
            "m",
            [Message(role="user", content="Hi")],
            True,
        )
    assert isinstance(excinfo.value, MissingBaseUrl)


def test_openai_compatible_request_shape() -> None:
    adapter = OpenAICompatibleAdapter()
    request = adapter.build_request(
        _endpoint("openai_compatible", base_url="https://llm.example/v1/", credential="sk-abc"),
        "gpt-4o",
        [Message(role="user", content="Hi")],
        True,
        options=GenerationOptions(parameters={"temperature": 0.5, "stream": False}),
    )

    assert request.url == "https://llm.example/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-abc"
    assert request.body == {
        "model": "gpt-4o",
        "messages": [{"role": "user", "content": "Hi"}],
        "stream": True,
        "temperature": 0.5,
    }


def test_custom_endpoint_may_omit_credential() -> None:
    adapter = OpenAICompatibleAdapter()
    request = adapter.build_request(
        _endpoint("custom", base_url="http://localhost:8000/v1"),
        "local",
        [Message(role="user", content="Hi")],
        False,
    )
    assert "Authorization" not in request.headers
    assert request.media_type == "application/json"


@pytest.mark.parametrize("provider_type", ["openai", "mistral", "groq", "openai_compatible"])
def test_credentialed_types_fail_without_key(provider_type) -> None:
    adapter = OpenAICompatibleAdapter()
    with pytest.raises(MissingCredential):
        adapter.build_request(
            _endpoint(provider_type, base_url="https://llm.example/v1"),
            "m",
            [Message(role="user", content="Hi")],
            True,
        )


def test_anthropic_uses_api_key_header() -> None:
    adapter = OpenAICompatibleAdapter()
    request = adapter.build_request(
        _endpoint("anthropic", credential="sk-ant-123"),
        "claude-3-haiku",
        [Message(role="user", content="Hi")],
        True,
    )

    assert request.url == "https://api.anthropic.com/v1/chat/completions"
    assert request.headers["x-api-key"] == "sk-ant-123"
    assert request.headers["anthropic-version"] == "2023-06-01"
    assert "Authorization" not in request.headers


@pytest.mark.parametrize(
    ("provider_type", "expected"),
    [
        ("openai", "https://api.openai.com/v1/models"),
        ("groq", "https://api.groq.com/openai/v1/models"),
        ("mistral", "https://api.mistral.ai/v1/models"),
        ("openrouter", "https://openrouter.ai/api/v1/models"),
    ],
)
def test_default_base_urls_for_known_providers(provider_type, expected) -> None:
    adapter = OpenAICompatibleAdapter()
    request = adapter.models_request(_endpoint(provider_type, credential="sk-abc"))
    assert request.url == expected
    assert request.method == "GET"


def test_explicit_base_url_wins_over_default() -> None:
    adapter = OpenAICompatibleAdapter()
    request = adapter.models_request(
        _endpoint("openai", base_url="https://proxy.example/v1", credential="sk-abc")
    )
    assert request.url == "https://proxy.example/v1/models"


def test_registry_falls_back_to_openai_compatible() -> None:
    registry = build_adapter_registry()
    assert isinstance(registry.for_type("google"), GoogleAdapter)
    assert isinstance(registry.for_type(" Pollinations "), PollinationsAdapter)
    assert isinstance(registry.for_type("anthropic"), OpenAICompatibleAdapter)
    assert isinstance(registry.for_type("brand-new"), OpenAICompatibleAdapter)
    assert "google" in registry.provider_types()


def test_registry_register_overrides_type() -> None:
    custom = OpenAICompatibleAdapter()
    registry = AdapterRegistry([GoogleAdapter()])
    registry.register(custom, "google")
    assert registry.for_type("google") is custom
