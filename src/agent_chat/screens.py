"""Modal screens for prompts, confirmations and the error fallback."""

from __future__ import annotations

from typing import Any

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static


class TextPromptScreen(ModalScreen[str | None]):
    """Modal screen to prompt for a single line of text."""

    CSS = """
    TextPromptScreen {
        align: center middle;
    }

    #text-prompt-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #text-prompt-title {
        padding-bottom: 1;
        text-style: bold;
    }

    #text-prompt-input {
        width: 100%;
        margin-bottom: 1;
    }
    """

    def __init__(self, title: str, placeholder: str = "", value: str = "") -> None:
        super().__init__()
        self._title = title
        self._placeholder = placeholder
        self._value = value

    def compose(self) -> ComposeResult:
        with Container(id="text-prompt-dialog"):
            yield Static(self._title, id="text-prompt-title")
            yield Input(
                value=self._value,
                placeholder=self._placeholder,
                id="text-prompt-input",
            )
            yield Static("Enter to confirm | Esc to cancel", id="text-prompt-help")

    def on_mount(self) -> None:
        self.query_one("#text-prompt-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "text-prompt-input":
            return
        event.stop()
        self.dismiss(event.value.strip())

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        if str(getattr(event, "key", "")).lower() == "escape":
            self.dismiss(None)


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no confirmation for destructive actions."""

    CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: round $error;
        background: $surface;
    }

    #confirm-actions {
        height: 3;
        align: right middle;
    }
    """

    def __init__(self, question: str) -> None:
        super().__init__()
        self._question = question

    def compose(self) -> ComposeResult:
        with Container(id="confirm-dialog"):
            yield Static(self._question, id="confirm-question")
            with Horizontal(id="confirm-actions"):
                yield Button("Cancel", id="confirm-no")
                yield Button("Delete", id="confirm-yes", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.dismiss(event.button.id == "confirm-yes")

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        if str(getattr(event, "key", "")).lower() == "escape":
            self.dismiss(False)


class ErrorScreen(ModalScreen[None]):
    """Fallback shown when the main view fails to render."""

    CSS = """
    ErrorScreen {
        align: center middle;
    }

    #error-dialog {
        width: 70;
        height: auto;
        padding: 1 2;
        border: round $error;
        background: $surface;
    }

    #error-title {
        text-style: bold;
        color: $error;
        padding-bottom: 1;
    }

    #error-actions {
        height: 3;
        align: right middle;
    }
    """

    def __init__(self, error: BaseException | None = None) -> None:
        super().__init__()
        self._error = error

    def compose(self) -> ComposeResult:
        detail = str(self._error) if self._error else "An unexpected error occurred."
        with Container(id="error-dialog"):
            yield Static("Something went wrong", id="error-title")
            yield Static(detail, id="error-detail")
            with Horizontal(id="error-actions"):
                yield Button("Try again", id="error-reset", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "error-reset":
            event.stop()
            self.dismiss(None)
