from __future__ import annotations

from typing import Optional


class InferenceError(RuntimeError):
    """Base class for all inference pipeline failures."""

    kind = "inference_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        model: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.model = model


class ConfigurationError(InferenceError):
    """The service credential (or other required setting) is missing."""

    kind = "configuration"


class CredentialError(InferenceError):
    """
    Authentication/authorization rejected by the endpoint (401/403).
    Fatal to the whole cascade.
    """

    kind = "credential"


class ModelUnavailableError(InferenceError):
    """Bad request or not-found for one model (400/404). Next candidate is tried."""

    kind = "model_unavailable"


class UpstreamError(InferenceError):
    """Any other non-success status. Aborts the cascade."""

    kind = "upstream"


class TransportFailure(InferenceError):
    """Network-level failure or timeout. Next candidate is tried."""

    kind = "transport"


class MalformedResponseError(InferenceError):
    """The reply is not valid JSON or lacks the required structure."""

    kind = "malformed_response"
