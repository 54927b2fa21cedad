"""Error taxonomy shared by the gateways, the store and the draft engine.

Every error carries a user-facing ``message`` and the HTTP status the API
renders it with. Nothing in this hierarchy is retried automatically.
"""
from __future__ import annotations


class TalkStudioError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TalkStudioError):
    """A required brief field or input was empty or out of range."""
    status_code = 400


class AuthenticationRequired(TalkStudioError):
    status_code = 401


class ReadOnlyRecord(TalkStudioError):
    """Mutation attempted on a demo record. Informational, not a failure."""
    status_code = 403


class NotFound(TalkStudioError):
    status_code = 404


class OperationInProgress(TalkStudioError):
    status_code = 409


class InvalidTransition(TalkStudioError):
    status_code = 409


class SessionClosed(TalkStudioError):
    status_code = 410


class QuotaExceeded(TalkStudioError):
    status_code = 429


class RateLimited(TalkStudioError):
    status_code = 429


class GatewayError(TalkStudioError):
    """Generic upstream failure."""
    status_code = 502


class UpstreamMalformed(GatewayError):
    """Upstream replied without a field we need."""


class StoreFailure(TalkStudioError):
    status_code = 503


class LLMCallError(Exception):
    """LLM call failed or returned unparseable output."""

    def __init__(self, message: str, retryable: bool = False, status_code: int | None = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class LLMConfigError(LLMCallError):
    """The LLM provider is unknown or its credentials are missing."""
