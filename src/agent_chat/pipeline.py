"""Submit user turns to the agent webhook with timeout and retry.

One submission appends the user message optimistically, posts a JSON payload
(file bytes inlined as base64) and then appends exactly one assistant
message: the agent's reply, or a synthetic error entry when every attempt
failed.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any

import httpx

from .agents import AUTO_AGENT, AgentSelection
from .attachments import Attachment, UploadController
from .exceptions import (
    RequestTimeoutError,
    ResponseParseError,
    SubmissionInProgressError,
    WebhookConnectionError,
    WebhookError,
    WebhookHTTPError,
)
from .models import Message, MessageRole, format_datetime, utc_now
from .state import StateManager, SubmissionState
from .store import ConversationStore

LOGGER = logging.getLogger(__name__)

DEFAULT_WEBHOOK_URL = "https://jpl13.app.n8n.cloud/webhook/jplx13-form"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE_MS = 1000
DEFAULT_MODEL_LABEL = "GPT-4o"

EMPTY_REPLY = "I received your message but couldn't generate a proper response."
ERROR_REPLY = (
    "I apologize, but I encountered an error processing your request. "
    "Please check your connection and try again."
)
ERROR_AGENT = "system"
ERROR_MODEL = "error"
FILE_PROCESSING_ERROR = "Failed to process file. Please try again."


@dataclass(frozen=True)
class SubmissionOutcome:
    """Terminal result of one ``submit`` call."""

    success: bool
    message: Message | None
    attempts: int
    error: Exception | None = None


class RequestPipeline:
    """Build, send, and reconcile one submission at a time."""

    def __init__(
        self,
        store: ConversationStore,
        uploads: UploadController | None = None,
        agents: AgentSelection | None = None,
        *,
        webhook_url: str = DEFAULT_WEBHOOK_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS,
        default_model_label: str = DEFAULT_MODEL_LABEL,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.uploads = uploads or UploadController()
        self.agents = agents or AgentSelection()
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.backoff_base_ms = backoff_base_ms
        self.default_model_label = default_model_label
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._sleep = sleep
        self._clock = clock
        self.state = StateManager()
        self._last_submission: tuple[str, Attachment | None, str | None] | None = None
        self._attempts_used = 0

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RequestPipeline:
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.aclose()

    @property
    def is_loading(self) -> bool:
        return self.state.state != SubmissionState.IDLE

    def backoff_delay_ms(self, failed_attempt: int) -> int:
        """Delay after the given 1-based failed attempt: 1s, 2s, 4s, ..."""
        return (2 ** (failed_attempt - 1)) * self.backoff_base_ms

    # Payload -------------------------------------------------------------

    def build_payload(
        self, text: str, attachment: Attachment | None, agent_key: str
    ) -> dict[str, Any]:
        """Return the webhook JSON body.

        The whole attachment is read and base64 encoded here; ``OSError``
        propagates when the file cannot be read.
        """
        payload: dict[str, Any] = {
            "timestamp": format_datetime(self._clock()),
            "sessionId": str(self.store.ids.next()),
        }
        if text:
            payload["chatInput"] = text
        if attachment is not None:
            encoded = base64.b64encode(attachment.read_bytes()).decode("ascii")
            payload["file"] = {
                "name": attachment.name,
                "type": attachment.type,
                "size": attachment.size,
                "data": encoded,
            }
        if agent_key != AUTO_AGENT:
            payload["selectedAgent"] = agent_key
            payload["manualOverride"] = True
        return payload

    # Transport -----------------------------------------------------------

    async def _attempt(self, payload: dict[str, Any]) -> Any:
        try:
            response = await asyncio.wait_for(
                self._client.post(
                    self.webhook_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout_seconds,
                ),
                timeout=self.timeout_seconds,
            )
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise RequestTimeoutError(
                f"Request to {self.webhook_url} timed out after {self.timeout_seconds:g}s."
            ) from exc
        except httpx.HTTPError as exc:
            raise WebhookConnectionError(
                f"Unable to reach {self.webhook_url}: {exc}"
            ) from exc

        if not response.is_success:
            body = response.text
            LOGGER.error(
                "pipeline.http_error",
                extra={
                    "event": "pipeline.http_error",
                    "status": response.status_code,
                    "body": body,
                },
            )
            raise WebhookHTTPError(response.status_code, body)

        try:
            return response.json()
        except ValueError as exc:
            LOGGER.error(
                "pipeline.parse_error",
                extra={
                    "event": "pipeline.parse_error",
                    "content_type": response.headers.get("content-type"),
                    "body": response.text,
                },
            )
            raise ResponseParseError(f"Failed to parse response as JSON: {exc}") from exc

    async def send_with_retry(self, payload: dict[str, Any]) -> Any:
        """Post ``payload`` up to ``max_attempts`` times; re-raise the last failure."""
        for attempt in range(1, self.max_attempts + 1):
            self._attempts_used = attempt
            await self.state.transition_to(SubmissionState.SENDING)
            try:
                data = await self._attempt(payload)
            except WebhookError as exc:
                LOGGER.warning(
                    "pipeline.attempt.failed",
                    extra={
                        "event": "pipeline.attempt.failed",
                        "attempt": attempt,
                        "error_type": exc.__class__.__name__,
                        "error": str(exc),
                        "is_timeout": isinstance(exc, RequestTimeoutError),
                    },
                )
                if attempt >= self.max_attempts:
                    raise
                delay_ms = self.backoff_delay_ms(attempt)
                LOGGER.info(
                    "pipeline.retry.scheduled",
                    extra={
                        "event": "pipeline.retry.scheduled",
                        "attempt": attempt + 1,
                        "delay_ms": delay_ms,
                    },
                )
                await self.state.transition_to(SubmissionState.RETRYING)
                await self._sleep(delay_ms / 1000)
                continue

            LOGGER.info(
                "pipeline.attempt.succeeded",
                extra={"event": "pipeline.attempt.succeeded", "attempt": attempt},
            )
            return data
        raise AssertionError("unreachable: the final attempt re-raises")

    # Reconciliation ------------------------------------------------------

    def _reply_from_response(self, data: Any, agent_key: str) -> Message:
        response = data.get("response") if isinstance(data, dict) else None
        document = data.get("document") if isinstance(data, dict) else None
        if not isinstance(response, dict):
            response = {}
        if not isinstance(document, dict):
            document = {}

        download_url = document.get("downloadUrl") if document.get("generated") else None
        return Message(
            id=self.store.ids.next(),
            role=MessageRole.ASSISTANT,
            content=str(response.get("content") or EMPTY_REPLY),
            agent=str(response.get("agent") or agent_key),
            model=str(response.get("model") or self.default_model_label),
            download_url=str(download_url) if download_url else None,
            timestamp=self._clock(),
        )

    def _error_reply(self) -> Message:
        return Message(
            id=self.store.ids.next(),
            role=MessageRole.ASSISTANT,
            content=ERROR_REPLY,
            agent=ERROR_AGENT,
            model=ERROR_MODEL,
            is_error=True,
            timestamp=self._clock(),
        )

    # Submission ----------------------------------------------------------

    async def submit(
        self,
        text: str,
        attachment: Attachment | None = None,
        agent: str | None = None,
    ) -> SubmissionOutcome | None:
        """Run one full submission; ``None`` when there is nothing to send.

        Network failures never escape: after the last attempt an error
        message is appended and a failed outcome is returned.
        """
        trimmed = text.strip()
        if not trimmed and attachment is None:
            return None
        if not await self.state.transition_if(
            SubmissionState.IDLE, SubmissionState.BUILDING
        ):
            raise SubmissionInProgressError("A submission is already in flight.")

        agent_key = agent or self.agents.selected
        self._last_submission = (text, attachment, agent)
        LOGGER.info(
            "pipeline.submission.started",
            extra={
                "event": "pipeline.submission.started",
                "has_input": bool(trimmed),
                "has_file": attachment is not None,
                "agent": agent_key,
                "manual_override": agent_key != AUTO_AGENT,
            },
        )

        try:
            self.uploads.clear_error()
            if self.store.current_conversation_id is None:
                self.store.create_conversation(trimmed)
            self.store.add_message(
                Message(
                    id=self.store.ids.next(),
                    role=MessageRole.USER,
                    content=trimmed,
                    file=attachment.info if attachment is not None else None,
                    timestamp=self._clock(),
                )
            )
            self.agents.set_loading(True)
            self.uploads.set_progress(0)

            if attachment is not None:
                self.uploads.set_progress(25)
            try:
                payload = self.build_payload(trimmed, attachment, agent_key)
            except OSError as exc:
                LOGGER.error(
                    "pipeline.file_error",
                    extra={"event": "pipeline.file_error", "error": str(exc)},
                )
                self.uploads.set_error(FILE_PROCESSING_ERROR)
                await self.state.transition_to(SubmissionState.FAILED)
                return SubmissionOutcome(False, None, attempts=0, error=exc)

            self.uploads.set_progress(50)
            try:
                data = await self.send_with_retry(payload)
            except WebhookError as exc:
                return await self._fail(exc)

            self.uploads.set_progress(100)
            reply = self._reply_from_response(data, agent_key)
            self.store.add_message(reply)
            self.uploads.remove_file()
            await self.state.transition_to(SubmissionState.SUCCEEDED)
            LOGGER.info(
                "pipeline.submission.succeeded",
                extra={
                    "event": "pipeline.submission.succeeded",
                    "agent": reply.agent,
                    "model": reply.model,
                    "has_download": reply.download_url is not None,
                },
            )
            return SubmissionOutcome(True, reply, attempts=self._attempts_used)
        finally:
            self.agents.set_loading(False)
            self.uploads.set_progress(0)
            await self.state.transition_to(SubmissionState.IDLE)

    async def _fail(self, exc: WebhookError) -> SubmissionOutcome:
        attempts = self._attempts_used
        LOGGER.error(
            "pipeline.submission.failed",
            extra={
                "event": "pipeline.submission.failed",
                "attempts": attempts,
                "error_type": exc.__class__.__name__,
                "error": str(exc),
            },
        )
        if isinstance(exc, RequestTimeoutError):
            banner = f"Request timed out after {attempts} attempts. Please try again."
        else:
            banner = f"Connection failed after {attempts} attempts. Please try again."
        self.uploads.set_error(banner)

        reply = self._error_reply()
        self.store.add_message(reply)
        await self.state.transition_to(SubmissionState.FAILED)
        return SubmissionOutcome(False, reply, attempts=attempts, error=exc)

    async def retry_last(self) -> SubmissionOutcome | None:
        """Re-run the most recent submission, if any."""
        if self._last_submission is None:
            return None
        LOGGER.info("pipeline.manual_retry", extra={"event": "pipeline.manual_retry"})
        text, attachment, agent = self._last_submission
        return await self.submit(text, attachment, agent)
