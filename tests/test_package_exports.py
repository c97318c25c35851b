"""Tests for top-level package lazy exports."""

from __future__ import annotations

import unittest

import agent_chat


class PackageExportTests(unittest.TestCase):
    """Ensure __getattr__ and exported symbols behave as expected."""

    def test_lazy_exports_resolve_known_symbols(self) -> None:
        self.assertTrue(callable(agent_chat.load_config))
        self.assertTrue(callable(agent_chat.ensure_config_dir))
        self.assertTrue(callable(agent_chat.generate_title))
        self.assertTrue(callable(agent_chat.validate_file))
        self.assertIsNotNone(agent_chat.ConversationStore)
        self.assertIsNotNone(agent_chat.RequestPipeline)
        self.assertIsNotNone(agent_chat.UploadController)
        self.assertIsNotNone(agent_chat.AgentChatError)
        self.assertIsNotNone(agent_chat.WebhookError)
        self.assertIsNotNone(agent_chat.RequestTimeoutError)

    def test_every_exported_name_resolves(self) -> None:
        for name in agent_chat.__all__:
            with self.subTest(name=name):
                self.assertIsNotNone(getattr(agent_chat, name))

    def test_unknown_symbol_raises_attribute_error(self) -> None:
        with self.assertRaises(AttributeError):
            getattr(agent_chat, "THIS_DOES_NOT_EXIST")


if __name__ == "__main__":
    unittest.main()
