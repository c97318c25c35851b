"""Conversation and message records plus their snapshot encoding."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
import threading
import time
from typing import Any

from .exceptions import PersistenceFormatError


class MessageRole(str, Enum):
    """Author of a transcript entry."""

    USER = "user"
    ASSISTANT = "assistant"


def utc_now() -> datetime:
    return datetime.now(UTC)


def parse_datetime(value: Any) -> datetime:
    """Revive an ISO-8601 string (``Z`` suffix allowed) as an aware datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise PersistenceFormatError(f"Invalid timestamp {value!r}.") from exc
    else:
        raise PersistenceFormatError(f"Invalid timestamp {value!r}.")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_datetime(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


class IdSequence:
    """Millisecond-clock identifiers that never repeat or go backwards."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            candidate = time.time_ns() // 1_000_000
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return candidate

    def observe(self, value: int) -> None:
        """Make sure future identifiers are greater than ``value``."""
        with self._lock:
            self._last = max(self._last, value)


@dataclass(frozen=True)
class FileInfo:
    """Attachment metadata kept in the transcript (never the bytes)."""

    name: str
    size: int
    type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "size": self.size, "type": self.type}

    @classmethod
    def from_dict(cls, payload: Any) -> FileInfo:
        if not isinstance(payload, dict):
            raise PersistenceFormatError("File info must be an object.")
        try:
            size = int(payload.get("size", 0))
        except (TypeError, ValueError) as exc:
            raise PersistenceFormatError("File size must be a number.") from exc
        return cls(
            name=str(payload.get("name", "")),
            size=size,
            type=str(payload.get("type") or ""),
        )


@dataclass(frozen=True)
class Message:
    """A single transcript entry."""

    id: int
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=utc_now)
    agent: str | None = None
    model: str | None = None
    file: FileInfo | None = None
    download_url: str | None = None
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": format_datetime(self.timestamp),
        }
        if self.agent is not None:
            payload["agent"] = self.agent
        if self.model is not None:
            payload["model"] = self.model
        if self.file is not None:
            payload["file"] = self.file.to_dict()
        if self.download_url is not None:
            payload["downloadUrl"] = self.download_url
        if self.is_error:
            payload["isError"] = True
        return payload

    @classmethod
    def from_dict(cls, payload: Any, *, now: datetime | None = None) -> Message:
        """Decode a stored message.

        A missing timestamp falls back to ``now`` (the load moment), so the
        original creation time of such entries is lost.
        """
        if not isinstance(payload, dict):
            raise PersistenceFormatError("Message must be an object.")
        try:
            role = MessageRole(str(payload.get("role", "")))
        except ValueError as exc:
            raise PersistenceFormatError(
                f"Unknown message role {payload.get('role')!r}."
            ) from exc
        try:
            message_id = int(payload["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceFormatError("Message id must be an integer.") from exc

        raw_timestamp = payload.get("timestamp")
        timestamp = (
            parse_datetime(raw_timestamp)
            if raw_timestamp
            else (now or utc_now())
        )
        raw_file = payload.get("file")
        return cls(
            id=message_id,
            role=role,
            content=str(payload.get("content") or ""),
            timestamp=timestamp,
            agent=payload.get("agent"),
            model=payload.get("model"),
            file=FileInfo.from_dict(raw_file) if raw_file is not None else None,
            download_url=payload.get("downloadUrl"),
            is_error=bool(payload.get("isError", False)),
        )


@dataclass(frozen=True)
class Conversation:
    """A titled thread of messages.

    Records are immutable; the store replaces them on every mutation.
    """

    id: str
    title: str
    active: bool
    last_message: str
    timestamp: datetime
    created_at: datetime
    updated_at: datetime
    messages: tuple[Message, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "active": self.active,
            "lastMessage": self.last_message,
            "timestamp": format_datetime(self.timestamp),
            "createdAt": format_datetime(self.created_at),
            "updatedAt": format_datetime(self.updated_at),
            "messages": [message.to_dict() for message in self.messages],
        }

    @classmethod
    def from_dict(cls, payload: Any, *, now: datetime | None = None) -> Conversation:
        if not isinstance(payload, dict):
            raise PersistenceFormatError("Conversation must be an object.")
        raw_id = payload.get("id")
        if raw_id is None or not str(raw_id).strip():
            raise PersistenceFormatError("Conversation id is missing.")
        raw_messages = payload.get("messages", [])
        if not isinstance(raw_messages, list):
            raise PersistenceFormatError("Conversation messages must be a list.")
        load_moment = now or utc_now()
        return cls(
            id=str(raw_id),
            title=str(payload.get("title") or ""),
            active=bool(payload.get("active", False)),
            last_message=str(payload.get("lastMessage") or ""),
            timestamp=parse_datetime(payload.get("timestamp")),
            created_at=parse_datetime(payload.get("createdAt")),
            updated_at=parse_datetime(payload.get("updatedAt")),
            messages=tuple(
                Message.from_dict(item, now=load_moment) for item in raw_messages
            ),
        )
