"""Domain exception hierarchy for the agent chat client."""

from __future__ import annotations


class AgentChatError(RuntimeError):
    """Base class for all domain-level chat errors."""


class AttachmentValidationError(AgentChatError):
    """Raised when a candidate attachment violates the size/type policy."""


class WebhookError(AgentChatError):
    """Base class for failures of a single webhook attempt (all retryable)."""


class RequestTimeoutError(WebhookError):
    """Raised when an attempt exceeds the client-side timeout."""


class WebhookConnectionError(WebhookError):
    """Raised when the webhook host cannot be reached."""


class WebhookHTTPError(WebhookError):
    """Raised when the webhook answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"HTTP error! status: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


class ResponseParseError(WebhookError):
    """Raised when the webhook response body is not valid JSON."""


class PersistenceError(AgentChatError):
    """Raised when the local snapshot cannot be read or written."""


class PersistenceFormatError(PersistenceError):
    """Raised when a persisted payload cannot be decoded safely."""


class SubmissionInProgressError(AgentChatError):
    """Raised when a submission starts while another one is in flight."""


class ConfigValidationError(AgentChatError):
    """Raised when configuration cannot be validated safely."""
