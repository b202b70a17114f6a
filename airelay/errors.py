"""Error taxonomy shared by the relay, catalog and API layers."""

from __future__ import annotations

from typing import Any


class RelayError(RuntimeError):
    """Base error carrying the HTTP status the API layer should surface."""

    category = "relay_error"
    default_status = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code or self.default_status
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ConfigurationError(RelayError):
    category = "configuration"
    default_status = 500


class MissingCredential(ConfigurationError):
    category = "missing_credential"


class MissingBaseUrl(ConfigurationError):
    category = "missing_base_url"


class EndpointNotFound(RelayError):
    category = "endpoint_not_found"
    default_status = 404


class EndpointDisabled(RelayError):
    category = "endpoint_disabled"
    default_status = 403


class ModelNotFound(RelayError):
    category = "model_not_found"
    default_status = 404


class Unauthorized(RelayError):
    category = "unauthorized"
    default_status = 401


class UpstreamError(RelayError):
    """Provider answered with a non-2xx status or could not be reached."""

    category = "upstream"
    default_status = 502

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int | None = None,
        status_code: int | None = None,
        details: Any | None = None,
    ) -> None:
        if details is None and upstream_status is not None:
            details = {"upstream_status": upstream_status, "message": message}
        super().__init__(message, status_code=status_code, details=details)
        self.upstream_status = upstream_status


class UpstreamListError(UpstreamError):
    category = "upstream_list"

    def __init__(self, message: str, *, upstream_status: int | None, body: str) -> None:
        super().__init__(
            message,
            upstream_status=upstream_status,
            details={"upstream_status": upstream_status, "body": body},
        )
        self.body = body


class UnexpectedResponseShape(RelayError):
    category = "unexpected_response_shape"
    default_status = 502


class UpstreamTimeout(RelayError):
    category = "timeout"
    default_status = 504


class ClientInputError(RelayError):
    category = "client_input"
    default_status = 400


class StreamInterrupted(RelayError):
    """Upstream stream failed after bytes were already forwarded."""

    category = "stream_interrupted"
    default_status = 502


__all__ = [
    "RelayError",
    "ConfigurationError",
    "MissingCredential",
    "MissingBaseUrl",
    "EndpointNotFound",
    "EndpointDisabled",
    "ModelNotFound",
    "Unauthorized",
    "UpstreamError",
    "UpstreamListError",
    "UnexpectedResponseShape",
    "UpstreamTimeout",
    "ClientInputError",
    "StreamInterrupted",
]
