"""Top-level package for agent-chat."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import AgentChatApp
    from .attachments import UploadController, validate_file
    from .config import ensure_config_dir, load_config
    from .exceptions import (
        AgentChatError,
        AttachmentValidationError,
        ConfigValidationError,
        PersistenceError,
        RequestTimeoutError,
        WebhookError,
    )
    from .pipeline import RequestPipeline
    from .store import ConversationStore
    from .titles import generate_title

__all__ = [
    "AgentChatApp",
    "AgentChatError",
    "AttachmentValidationError",
    "ConfigValidationError",
    "ConversationStore",
    "PersistenceError",
    "RequestPipeline",
    "RequestTimeoutError",
    "UploadController",
    "WebhookError",
    "ensure_config_dir",
    "generate_title",
    "load_config",
    "validate_file",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols to keep the Textual UI optional at import time."""
    if name == "AgentChatApp":
        from .app import AgentChatApp

        return AgentChatApp
    if name == "ConversationStore":
        from .store import ConversationStore

        return ConversationStore
    if name == "RequestPipeline":
        from .pipeline import RequestPipeline

        return RequestPipeline
    if name == "generate_title":
        from .titles import generate_title

        return generate_title
    if name in {"UploadController", "validate_file"}:
        from . import attachments

        return getattr(attachments, name)
    if name in {"ensure_config_dir", "load_config"}:
        from . import config

        return getattr(config, name)
    if name in {
        "AgentChatError",
        "AttachmentValidationError",
        "ConfigValidationError",
        "PersistenceError",
        "RequestTimeoutError",
        "WebhookError",
    }:
        from . import exceptions

        return getattr(exceptions, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
