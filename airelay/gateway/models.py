"""Relay API request/response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatTurn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str
    content: Any = None


class GenerateTextRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    prompt: str = Field(..., min_length=1)
    endpoint_id: str = Field(..., alias="endpointId", min_length=1)
    model_id: str = Field(..., alias="modelId", min_length=1)
    system_prompt: str | None = Field(None, alias="systemPrompt")
    chat_history: list[ChatTurn] = Field(default_factory=list, alias="chatHistory")
    stream: bool = True
    parameters: dict[str, Any] = Field(default_factory=dict)
    web_search: bool = Field(False, alias="webSearch")


class ConnectionTestRequest(BaseModel):
    provider: str = Field(..., min_length=1)
    api_key: str | None = None
    base_url: str | None = None


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    models: list[str] = Field(default_factory=list)


class SyncModelsResponse(BaseModel):
    message: str
    models_found: int


class ModelToggleRequest(BaseModel):
    enabled: bool


class EndpointModelView(BaseModel):
    endpoint_id: str
    model_id: str
    model_name: str
    enabled: bool


class CatalogEntry(BaseModel):
    model_id: str
    display_name: str
    endpoint_id: str
    provider_type: str
    endpoint_name: str = ""


class RelayHealth(BaseModel):
    status: str = Field("ok")
    provider_types: list[str] = Field(default_factory=list)


__all__ = [
    "CatalogEntry",
    "ChatTurn",
    "ConnectionTestRequest",
    "ConnectionTestResponse",
    "EndpointModelView",
    "GenerateTextRequest",
    "ModelToggleRequest",
    "RelayHealth",
    "SyncModelsResponse",
]
