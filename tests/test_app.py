"""Tests for the Textual front-end."""

from __future__ import annotations

from copy import deepcopy
from datetime import UTC, datetime
import unittest

import httpx

from agent_chat.agents import AgentSelection
from agent_chat.attachments import Attachment, UploadController
from agent_chat.config import DEFAULT_CONFIG
from agent_chat.models import FileInfo, Message, MessageRole
from agent_chat.pipeline import RequestPipeline
from agent_chat.storage import MemoryStorage
from agent_chat.store import ConversationStore

try:
    from textual.widgets import Input, OptionList, Static

    from agent_chat.app import AgentChatApp, parse_command
    from agent_chat.widgets import MessageBubble, message_details, message_header
except ModuleNotFoundError:
    AgentChatApp = None  # type: ignore[assignment]

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@unittest.skipIf(AgentChatApp is None, "textual is not installed")
class FormattingTests(unittest.TestCase):
    """Validate pure rendering helpers."""

    def test_parse_command(self) -> None:
        self.assertEqual(parse_command("/file ~/notes.pdf"), ("file", "~/notes.pdf"))
        self.assertEqual(parse_command("  /AGENT data "), ("agent", "data"))
        self.assertEqual(parse_command("/new"), ("new", ""))
        self.assertIsNone(parse_command("hello /file"))
        self.assertIsNone(parse_command("/"))

    def test_format_user_message_with_file(self) -> None:
        message = Message(
            1,
            MessageRole.USER,
            "see attached",
            timestamp=T0,
            file=FileInfo("deck.pdf", 2 * 1024 * 1024, "application/pdf"),
        )
        self.assertTrue(message_header(message).startswith("You · "))
        self.assertEqual(message_details(message), ["📎 deck.pdf (2.00MB)"])

    def test_format_assistant_message_with_download(self) -> None:
        message = Message(
            2,
            MessageRole.ASSISTANT,
            "Report ready",
            timestamp=T0,
            agent="data",
            model="GPT-4o",
            download_url="https://files.test/report.pdf",
        )
        self.assertTrue(message_header(message).startswith("📊 Data · GPT-4o · "))
        self.assertEqual(message_details(message), ["⬇ https://files.test/report.pdf"])

    def test_format_error_message(self) -> None:
        message = Message(
            3, MessageRole.ASSISTANT, "failed", timestamp=T0, agent="system", is_error=True
        )
        self.assertTrue(message_header(message).startswith("⚠️ Error · "))


@unittest.skipIf(AgentChatApp is None, "textual is not installed")
class AppRuntimeTests(unittest.IsolatedAsyncioTestCase):
    """Drive the real app against a mocked webhook."""

    def _build_app(self, handler) -> AgentChatApp:  # noqa: ANN001
        config = deepcopy(DEFAULT_CONFIG)
        config["persistence"]["enabled"] = False
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        self.addAsyncCleanup(client.aclose)

        async def _no_sleep(_delay: float) -> None:
            return None

        store = ConversationStore(MemoryStorage())
        pipeline = RequestPipeline(
            store,
            UploadController(),
            AgentSelection(),
            client=client,
            sleep=_no_sleep,
        )
        return AgentChatApp(config, store=store, pipeline=pipeline)

    async def test_submit_renders_conversation_and_reply(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"response": {"content": "Launch plan drafted", "agent": "reasoning"}}
            )

        app = self._build_app(handler)
        async with app.run_test() as pilot:
            message_input = app.query_one("#message-input", Input)
            message_input.value = "Can you help me plan a launch"
            await app._submit(message_input.value)
            await pilot.pause()

            self.assertEqual(message_input.value, "")
            conversation = app.store.current_conversation
            self.assertEqual(conversation.title, "Plan Launch")
            self.assertEqual(len(conversation.messages), 2)
            self.assertEqual(app.query_one("#conversation-list", OptionList).option_count, 1)
            self.assertEqual(len(app.query(MessageBubble)), 2)

    async def test_failed_submit_shows_banner_and_keeps_input(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        app = self._build_app(handler)
        async with app.run_test() as pilot:
            message_input = app.query_one("#message-input", Input)
            message_input.value = "Anyone there"
            await app._submit(message_input.value)
            await pilot.pause()

            self.assertEqual(message_input.value, "Anyone there")
            self.assertEqual(
                app.uploads.state.error,
                "Connection failed after 3 attempts. Please try again.",
            )
            banner = app.query_one("#banner", Static)
            self.assertIn("Connection failed", str(banner.render()))
            self.assertEqual(len(app.query("MessageBubble.error")), 1)

    async def test_actions_and_commands(self) -> None:
        app = self._build_app(lambda request: httpx.Response(200, json={}))
        async with app.run_test() as pilot:
            app.action_new_conversation()
            app.action_new_conversation()
            await pilot.pause()
            self.assertEqual(len(app.store.conversations), 2)
            self.assertEqual(app.query_one("#conversation-list", OptionList).option_count, 2)

            await pilot.press("tab")
            self.assertEqual(app.agent_selection.selected, "reasoning")

            app._run_command("agent", "creative")
            self.assertEqual(app.agent_selection.selected, "creative")
            app._run_command("agent", "astrology")
            self.assertEqual(app.agent_selection.selected, "creative")

            app._run_command("file", "/definitely/not/here.pdf")
            self.assertIsNotNone(app.uploads.state.error)

            app._run_command("new", "")
            self.assertEqual(len(app.store.conversations), 3)

    async def test_new_conversation_resets_composer(self) -> None:
        app = self._build_app(lambda request: httpx.Response(200, json={}))
        async with app.run_test() as pilot:
            app.uploads.select_file(
                Attachment.from_bytes("notes.txt", b"hello", "text/plain")
            )
            message_input = app.query_one("#message-input", Input)
            message_input.value = "draft"

            await pilot.press("ctrl+n")
            await pilot.pause()

            self.assertEqual(len(app.store.conversations), 1)
            self.assertEqual(message_input.value, "")
            self.assertIsNone(app.uploads.selected_file)

    async def test_tab_cycles_agents_only_from_message_input(self) -> None:
        app = self._build_app(lambda request: httpx.Response(200, json={}))
        async with app.run_test() as pilot:
            before = app.agent_selection.selected
            app.query_one("#search", Input).focus()
            await pilot.pause()

            await pilot.press("tab")
            await pilot.pause()
            self.assertEqual(app.agent_selection.selected, before)
            self.assertNotEqual(app.focused.id, "search")

            app.query_one("#message-input", Input).focus()
            await pilot.pause()
            await pilot.press("tab")
            self.assertNotEqual(app.agent_selection.selected, before)


if __name__ == "__main__":
    unittest.main()
