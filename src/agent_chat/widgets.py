"""Transcript widgets."""

from __future__ import annotations

from typing import Any

from rich.console import Group, RenderableType
from rich.markdown import Markdown
from rich.text import Text
from textual.widgets import Static

from .agents import get_agent_info
from .models import Message, MessageRole


def message_header(message: Message, time_format: str = "%H:%M") -> str:
    """Return the author line shown above a message."""
    stamp = message.timestamp.astimezone().strftime(time_format)
    if message.role is MessageRole.USER:
        return f"You · {stamp}"
    if message.is_error:
        return f"⚠️ Error · {stamp}"
    agent = get_agent_info(message.agent)
    return f"{agent.emoji} {agent.label} · {message.model or '?'} · {stamp}"


def message_details(message: Message) -> list[str]:
    """Attachment and download lines rendered below the content."""
    lines: list[str] = []
    if message.file is not None:
        size_mb = message.file.size / 1024 / 1024
        lines.append(f"📎 {message.file.name} ({size_mb:.2f}MB)")
    if message.download_url:
        lines.append(f"⬇ {message.download_url}")
    return lines


class MessageBubble(Static):
    """Render one transcript entry; assistant replies are Markdown."""

    DEFAULT_CSS = """
    MessageBubble {
        height: auto;
        width: 85%;
        margin: 1 0;
        padding: 1 2;
        border: round $panel;
    }
    MessageBubble.role-user {
        background: $primary 30%;
    }
    MessageBubble.role-assistant {
        background: $surface;
    }
    MessageBubble.error {
        border: round $error;
    }
    """

    def __init__(self, message: Message, **kwargs: Any) -> None:
        super().__init__(self.build_renderable(message), **kwargs)
        self.chat_message = message
        self.add_class(f"role-{message.role.value}")
        if message.is_error:
            self.add_class("error")

    @staticmethod
    def build_renderable(message: Message) -> RenderableType:
        parts: list[RenderableType] = [Text(message_header(message), style="bold")]
        if message.content:
            if message.role is MessageRole.ASSISTANT and not message.is_error:
                parts.append(Markdown(message.content))
            else:
                # Plain Text so user input is never parsed as markup.
                parts.append(Text(message.content))
        for line in message_details(message):
            parts.append(Text(line, style="dim"))
        return Group(*parts)
