"""
app/core/errors.py — Exception hierarchy for the review relay
Every error carries the HTTP status and machine-readable error_type
it is rendered with by the exception handler in app/main.py.
"""
from __future__ import annotations

from typing import Any, Optional


class RelayError(Exception):
    """Base class for all relay errors.

    Attributes:
        message: Human-readable description, shown verbatim to the reviewer.
        details: Extra fields merged into the JSON error body.
    """

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "errorType": self.error_type,
        }
        payload.update(self.details)
        return payload


class SubmissionValidationError(RelayError):
    """Empty subject and body, or an action outside the accepted set."""

    status_code = 400
    error_type = "validation_error"


class RequestNotFoundError(RelayError):
    """Unknown or expired request id."""

    status_code = 404
    error_type = "not_found"

    def __init__(self, request_id: str) -> None:
        super().__init__(
            "Edit request not found or expired",
            details={"found": False, "status": "not_found", "requestId": request_id},
        )
        self.request_id = request_id


class RateLimitExceededError(RelayError):
    """Per-client sliding window exhausted. Window parameters are not disclosed."""

    status_code = 429
    error_type = "rate_limited"

    def __init__(self) -> None:
        super().__init__("Too many requests. Please try again later.")


class UpstreamDeliveryError(RelayError):
    """Webhook forward failed before any HTTP response arrived."""

    status_code = 500
    error_type = "delivery_error"


class InternalError(RelayError):
    """Unexpected parse / serialization failure."""


# ──────────────────────────────────────────────────────────────────────────────
# Rewrite gateway (Gemini) errors
# ──────────────────────────────────────────────────────────────────────────────

class RewriteError(RelayError):
    """Base for AI rewrite failures."""

    status_code = 502
    error_type = "provider_error"


class ConfigurationError(RewriteError):
    status_code = 503
    error_type = "configuration_error"

    def __init__(self, message: str = "AI rewriting is unavailable: no API key configured.") -> None:
        super().__init__(message)


class AuthenticationError(RewriteError):
    error_type = "authentication_error"


class RateLimitError(RewriteError):
    status_code = 429
    error_type = "provider_rate_limited"


class ProviderError(RewriteError):
    error_type = "provider_error"


class ProtocolError(RewriteError):
    error_type = "protocol_error"


class NetworkError(RewriteError):
    status_code = 503
    error_type = "network_error"
