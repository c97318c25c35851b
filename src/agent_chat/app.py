"""Textual front-end for chatting with the webhook agents."""

from __future__ import annotations

import logging
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import Footer, Header, Input, OptionList, Static
from textual.widgets.option_list import Option

from .agents import AGENTS, AgentSelection
from .attachments import UploadController
from .config import load_config
from .pipeline import RequestPipeline
from .screens import ConfirmScreen, ErrorScreen, TextPromptScreen
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from .store import ConversationStore
from .task_manager import TaskManager
from .widgets import MessageBubble

LOGGER = logging.getLogger(__name__)

SUBMISSION_TASK = "submission"


def parse_command(raw_text: str) -> tuple[str, str] | None:
    """Split ``/name args`` into ``(name, args)``; ``None`` for plain text."""
    text = raw_text.strip()
    if not text.startswith("/") or len(text) == 1:
        return None
    name, _, args = text[1:].partition(" ")
    return name.lower(), args.strip()


class AgentChatApp(App[None]):
    """Conversation list, transcript and composer."""

    CSS = """
    #layout {
        height: 1fr;
    }

    #sidebar {
        width: 36;
        border-right: solid $panel;
        background: $surface;
    }

    #search {
        margin: 0 0 1 0;
    }

    #conversation-list {
        height: 1fr;
    }

    #main {
        width: 1fr;
    }

    #conversation-header {
        height: auto;
        padding: 0 1;
        text-style: bold;
        border-bottom: solid $panel;
    }

    #transcript {
        height: 1fr;
        padding: 1;
    }

    #banner {
        height: auto;
        color: $error;
        padding: 0 1;
    }

    #composer-status {
        height: auto;
        padding: 0 1;
        border-top: dashed $panel;
    }
    """

    BINDINGS = [
        Binding("ctrl+n", "new_conversation", "New Chat"),
        Binding("ctrl+d", "delete_conversation", "Delete"),
        Binding("ctrl+e", "rename_conversation", "Rename"),
        Binding("ctrl+r", "retry", "Retry"),
        Binding("ctrl+l", "clear_all", "Clear All"),
        Binding("ctrl+k", "focus_search", "Search"),
        Binding("tab", "cycle_agent", "Agent", priority=True),
        Binding("escape", "clear_file", "Clear File"),
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        config: dict[str, dict[str, Any]] | None = None,
        *,
        store: ConversationStore | None = None,
        pipeline: RequestPipeline | None = None,
    ) -> None:
        super().__init__()
        self.config = config or load_config()
        persistence_cfg = self.config["persistence"]
        storage: KeyValueStorage = (
            JsonFileStorage(persistence_cfg["path"])
            if persistence_cfg["enabled"]
            else MemoryStorage()
        )
        self.store = store or ConversationStore(
            storage, storage_key=str(persistence_cfg["storage_key"])
        )

        if pipeline is None:
            webhook_cfg = self.config["webhook"]
            pipeline = RequestPipeline(
                self.store,
                UploadController(
                    max_file_size=int(self.config["uploads"]["max_file_bytes"])
                ),
                AgentSelection(str(self.config["agents"]["default"])),
                webhook_url=str(webhook_cfg["url"]),
                timeout_seconds=float(webhook_cfg["timeout_seconds"]),
                max_attempts=int(webhook_cfg["max_attempts"]),
                backoff_base_ms=int(webhook_cfg["backoff_base_ms"]),
                default_model_label=str(webhook_cfg["default_model_label"]),
            )
        self.pipeline = pipeline
        self.uploads = pipeline.uploads
        self.agent_selection = pipeline.agents
        self._tasks = TaskManager()
        self._search_query = ""
        self._render_failed = False
        self.title = str(self.config["app"]["title"])

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="layout"):
            with Vertical(id="sidebar"):
                yield Input(placeholder="Search conversations", id="search")
                yield OptionList(id="conversation-list")
            with Vertical(id="main"):
                yield Static("", id="conversation-header", markup=False)
                yield VerticalScroll(id="transcript")
                yield Static("", id="banner", markup=False)
                yield Static("", id="composer-status", markup=False)
                yield Input(
                    placeholder="Message, or /file <path>, /agent <name>",
                    id="message-input",
                )
        yield Footer()

    def on_mount(self) -> None:
        self.store.subscribe(self._refresh_view)
        self.uploads.on_change(lambda _state: self._refresh_status())
        self._refresh_view()
        self.query_one("#message-input", Input).focus()

    async def on_unmount(self) -> None:
        await self._tasks.cancel_all()
        await self.pipeline.aclose()

    # Rendering -------------------------------------------------------------

    def _refresh_view(self) -> None:
        """Re-render every panel; a failure shows the error screen instead."""
        if self._render_failed:
            return
        try:
            self._render_sidebar()
            self._render_transcript()
            self._refresh_status()
        except Exception as exc:  # noqa: BLE001 - last-resort containment boundary.
            LOGGER.exception(
                "app.render_failed",
                extra={"event": "app.render_failed", "error": str(exc)},
            )
            self._render_failed = True
            self.push_screen(ErrorScreen(exc), callback=self._on_error_dismissed)

    def _on_error_dismissed(self, _result: None) -> None:
        LOGGER.info("app.render_reset", extra={"event": "app.render_reset"})
        self._render_failed = False
        self._search_query = ""
        self.store.cancel_editing_title()
        self._refresh_view()

    def _render_sidebar(self) -> None:
        option_list = self.query_one("#conversation-list", OptionList)
        option_list.clear_options()
        newest_first = reversed(self.store.search(self._search_query))
        option_list.add_options(
            [
                Option(
                    f"{'▶' if conv.active else ' '} {conv.title} · "
                    f"{self.store.format_timestamp(conv.timestamp)}",
                    id=conv.id,
                )
                for conv in newest_first
            ]
        )

    def _render_transcript(self) -> None:
        header = self.query_one("#conversation-header", Static)
        transcript = self.query_one("#transcript", VerticalScroll)
        transcript.remove_children()

        conversation = self.store.current_conversation
        if conversation is None:
            header.update("No conversation selected. Type a message to start one.")
            return

        count = len(conversation.messages)
        header.update(
            f"{conversation.title} · {count} messages · "
            f"{self.store.format_timestamp(conversation.updated_at)}"
        )
        bubbles = [MessageBubble(message) for message in conversation.messages]
        if bubbles:
            transcript.mount(*bubbles)
            transcript.scroll_end(animate=False)

    def _refresh_status(self) -> None:
        state = self.uploads.state
        self.query_one("#banner", Static).update(state.error or "")

        agent = AGENTS[self.agent_selection.selected]
        parts = [f"{agent.emoji} {agent.label}: {agent.tooltip}"]
        selected_file = self.uploads.selected_file
        if selected_file is not None:
            parts.append(f"📎 {selected_file.name}")
        if state.is_uploading:
            parts.append(f"{state.progress}%")
        if self.agent_selection.state.is_loading:
            parts.append("Sending…")
        self.query_one("#composer-status", Static).update("  |  ".join(parts))

    # Events ----------------------------------------------------------------

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "search":
            return
        self._search_query = event.value
        self._render_sidebar()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id != "conversation-list" or event.option.id is None:
            return
        event.stop()
        self.store.switch_conversation(event.option.id)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "message-input":
            return
        event.stop()
        command = parse_command(event.value)
        if command is not None:
            event.input.value = ""
            self._run_command(*command)
            return
        if self.pipeline.is_loading or self._tasks.is_running(SUBMISSION_TASK):
            self.notify("Wait for the current request to finish.", severity="warning")
            return
        self._tasks.start(SUBMISSION_TASK, self._submit(event.value))

    def _run_command(self, name: str, args: str) -> None:
        if name == "file":
            if not args:
                self.notify("Usage: /file <path>", severity="warning")
            elif self.uploads.select_path(args):
                self.notify(f"File attached: {self.uploads.selected_file.name}")  # type: ignore[union-attr]
        elif name == "agent":
            key = args.lower()
            if key not in AGENTS:
                self.notify(f"Unknown agent {args!r}.", severity="warning")
            else:
                self.agent_selection.select_agent(key)
                self._refresh_status()
        elif name == "new":
            self.action_new_conversation()
        else:
            self.notify(f"Unknown command /{name}", severity="warning")

    async def _submit(self, text: str) -> None:
        message_input = self.query_one("#message-input", Input)
        message_input.disabled = True
        try:
            outcome = await self.pipeline.submit(
                text, self.uploads.selected_file, self.agent_selection.selected
            )
            if outcome is not None and outcome.success:
                message_input.value = ""
        finally:
            message_input.disabled = False
            message_input.focus()
            self._refresh_status()

    # Actions ---------------------------------------------------------------

    def action_new_conversation(self) -> None:
        self.store.create_conversation()
        self.query_one("#message-input", Input).value = ""
        if self.uploads.selected_file is not None:
            self.uploads.remove_file()

    def action_delete_conversation(self) -> None:
        conversation = self.store.current_conversation
        if conversation is None:
            return

        def _on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self.store.delete_conversation(conversation.id)

        self.push_screen(
            ConfirmScreen(f"Delete conversation {conversation.title!r}?"),
            callback=_on_confirm,
        )

    def action_rename_conversation(self) -> None:
        conversation = self.store.current_conversation
        if conversation is None:
            return
        self.store.start_editing_title(conversation.id)

        def _on_title(value: str | None) -> None:
            if not value:
                self.store.cancel_editing_title()
                return
            self.store.update_conversation_title(conversation.id, value)

        self.push_screen(
            TextPromptScreen("Rename conversation", value=conversation.title),
            callback=_on_title,
        )

    def action_retry(self) -> None:
        if self.pipeline.is_loading or self._tasks.is_running(SUBMISSION_TASK):
            return
        self._tasks.start(SUBMISSION_TASK, self.pipeline.retry_last())

    def action_clear_all(self) -> None:
        def _on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self.store.clear_all_conversations()

        self.push_screen(
            ConfirmScreen("Delete every conversation? This cannot be undone."),
            callback=_on_confirm,
        )

    def action_focus_search(self) -> None:
        self.query_one("#search", Input).focus()

    def action_cycle_agent(self) -> None:
        focused = self.focused
        if focused is None or focused.id != "message-input":
            # Elsewhere tab keeps moving focus.
            self.screen.focus_next()
            return
        self.agent_selection.cycle_agent()
        self._refresh_status()

    def action_clear_file(self) -> None:
        if self.uploads.selected_file is not None:
            self.uploads.remove_file()
