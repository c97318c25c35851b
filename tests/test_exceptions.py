"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from agent_chat.exceptions import (
    AgentChatError,
    AttachmentValidationError,
    ConfigValidationError,
    PersistenceError,
    PersistenceFormatError,
    RequestTimeoutError,
    ResponseParseError,
    SubmissionInProgressError,
    WebhookConnectionError,
    WebhookError,
    WebhookHTTPError,
)


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        for error_type in (
            AttachmentValidationError,
            ConfigValidationError,
            PersistenceError,
            SubmissionInProgressError,
            WebhookError,
        ):
            self.assertTrue(issubclass(error_type, AgentChatError))
        for error_type in (
            RequestTimeoutError,
            ResponseParseError,
            WebhookConnectionError,
            WebhookHTTPError,
        ):
            self.assertTrue(issubclass(error_type, WebhookError))
        self.assertTrue(issubclass(PersistenceFormatError, PersistenceError))

    def test_http_error_keeps_status_and_body(self) -> None:
        error = WebhookHTTPError(502, "bad gateway")
        self.assertEqual(error.status_code, 502)
        self.assertEqual(error.body, "bad gateway")
        self.assertIn("502", str(error))


if __name__ == "__main__":
    unittest.main()
