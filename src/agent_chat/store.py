"""Persisted collection of conversation threads with active selection."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
import json
import logging

from .exceptions import PersistenceError
from .models import Conversation, IdSequence, Message, MessageRole, utc_now
from .storage import KeyValueStorage, MemoryStorage
from .titles import generate_title

LOGGER = logging.getLogger(__name__)

STORAGE_KEY = "jplx13-conversations"
DEFAULT_CONVERSATION_TITLE = "New Conversation"


class ConversationStore:
    """Own every conversation, the active selection, and the snapshot.

    The store is the only writer of the collection. Each mutation swaps in a
    new tuple of immutable records and synchronously writes the whole
    collection to ``storage`` under ``storage_key``. Snapshot failures are
    logged and never raised to callers.
    """

    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        *,
        storage_key: str = STORAGE_KEY,
        clock: Callable[[], datetime] = utc_now,
        ids: IdSequence | None = None,
    ) -> None:
        self._storage: KeyValueStorage = storage if storage is not None else MemoryStorage()
        self._storage_key = storage_key
        self._clock = clock
        self.ids = ids or IdSequence()
        self._conversations: tuple[Conversation, ...] = ()
        self._current_id: str | None = None
        self._editing_title_id: str | None = None
        self._listeners: list[Callable[[], None]] = []
        self._load()

    @property
    def conversations(self) -> tuple[Conversation, ...]:
        return self._conversations

    @property
    def current_conversation_id(self) -> str | None:
        return self._current_id

    @property
    def current_conversation(self) -> Conversation | None:
        if self._current_id is None:
            return None
        return self.get_conversation(self._current_id)

    @property
    def editing_title_id(self) -> str | None:
        return self._editing_title_id

    def subscribe(self, callback: Callable[[], None]) -> None:
        """Register a callback invoked after every mutation."""
        self._listeners.append(callback)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener()

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    # Persistence ---------------------------------------------------------

    def _load(self) -> None:
        try:
            stored = self._storage.get_item(self._storage_key)
            if not stored:
                return
            payload = json.loads(stored)
            if not isinstance(payload, list):
                raise PersistenceError("Conversation snapshot must be a list.")
            now = self._clock()
            conversations = tuple(
                Conversation.from_dict(item, now=now) for item in payload
            )
        except (PersistenceError, ValueError, TypeError, RecursionError) as exc:
            LOGGER.error(
                "store.load_failed",
                extra={
                    "event": "store.load_failed",
                    "error_type": exc.__class__.__name__,
                    "error": str(exc),
                },
            )
            self._conversations = ()
            self._current_id = None
            return

        for conversation in conversations:
            if conversation.id.isdigit():
                self.ids.observe(int(conversation.id))
            for message in conversation.messages:
                self.ids.observe(message.id)

        active = next((c for c in conversations if c.active), None)
        if active is None and conversations:
            active = conversations[0]
        self._current_id = active.id if active is not None else None
        self._conversations = tuple(
            conv if conv.active == (conv.id == self._current_id)
            else replace(conv, active=conv.id == self._current_id)
            for conv in conversations
        )
        LOGGER.info(
            "store.loaded",
            extra={
                "event": "store.loaded",
                "conversations": len(self._conversations),
                "active_id": self._current_id,
            },
        )

    def _save(self) -> None:
        snapshot = json.dumps(
            [conversation.to_dict() for conversation in self._conversations],
            ensure_ascii=False,
        )
        try:
            self._storage.set_item(self._storage_key, snapshot)
        except PersistenceError as exc:
            LOGGER.error(
                "store.save_failed",
                extra={"event": "store.save_failed", "error": str(exc)},
            )

    def _commit(
        self, conversations: tuple[Conversation, ...], current_id: str | None
    ) -> None:
        self._conversations = conversations
        self._current_id = current_id
        self._save()
        self._notify()

    # Mutations -----------------------------------------------------------

    def create_conversation(self, first_message: str | None = None) -> str:
        """Create a conversation, make it the only active one, return its id."""
        now = self._clock()
        new_id = str(self.ids.next())
        title = generate_title(first_message) if first_message else DEFAULT_CONVERSATION_TITLE
        conversation = Conversation(
            id=new_id,
            title=title,
            active=True,
            last_message=first_message or "",
            timestamp=now,
            created_at=now,
            updated_at=now,
        )
        others = tuple(
            replace(conv, active=False) if conv.active else conv
            for conv in self._conversations
        )
        self._commit(others + (conversation,), new_id)
        LOGGER.info(
            "store.conversation.created",
            extra={"event": "store.conversation.created", "conversation_id": new_id},
        )
        return new_id

    def switch_conversation(self, conversation_id: str) -> None:
        """Activate ``conversation_id``; unknown ids are ignored."""
        if self.get_conversation(conversation_id) is None:
            LOGGER.debug("Ignoring switch to unknown conversation %s", conversation_id)
            return
        updated = tuple(
            replace(conv, active=conv.id == conversation_id)
            for conv in self._conversations
        )
        self._commit(updated, conversation_id)

    def add_message(self, message: Message) -> None:
        """Append ``message`` to the active conversation.

        The first message of a conversation retitles it when a user wrote it.
        """
        current = self.current_conversation
        if current is None:
            LOGGER.warning(
                "store.message.dropped",
                extra={"event": "store.message.dropped", "message_id": message.id},
            )
            return

        now = self._clock()
        is_first_message = not current.messages
        title = current.title
        if is_first_message and message.role is MessageRole.USER:
            title = generate_title(message.content)

        updated_conversation = replace(
            current,
            messages=current.messages + (message,),
            last_message=message.content,
            timestamp=now,
            updated_at=now,
            title=title,
        )
        updated = tuple(
            updated_conversation if conv.id == current.id else conv
            for conv in self._conversations
        )
        self._commit(updated, self._current_id)

    def delete_conversation(self, conversation_id: str) -> None:
        """Remove a conversation; promote the newest survivor if it was active."""
        if self.get_conversation(conversation_id) is None:
            LOGGER.debug("Ignoring delete of unknown conversation %s", conversation_id)
            return

        remaining = tuple(c for c in self._conversations if c.id != conversation_id)
        current_id = self._current_id
        if conversation_id == current_id:
            if remaining:
                promoted = max(reversed(remaining), key=lambda c: c.created_at)
                current_id = promoted.id
                remaining = tuple(
                    replace(conv, active=conv.id == promoted.id) for conv in remaining
                )
            else:
                current_id = None
        if self._editing_title_id == conversation_id:
            self._editing_title_id = None
        self._commit(remaining, current_id)
        LOGGER.info(
            "store.conversation.deleted",
            extra={
                "event": "store.conversation.deleted",
                "conversation_id": conversation_id,
                "active_id": current_id,
            },
        )

    def update_conversation_title(self, conversation_id: str, new_title: str) -> None:
        trimmed = new_title.strip()
        if not trimmed:
            return
        target = self.get_conversation(conversation_id)
        self._editing_title_id = None
        if target is None:
            return
        now = self._clock()
        renamed = replace(target, title=trimmed, timestamp=now, updated_at=now)
        updated = tuple(
            renamed if conv.id == conversation_id else conv
            for conv in self._conversations
        )
        self._commit(updated, self._current_id)

    def start_editing_title(self, conversation_id: str) -> None:
        self._editing_title_id = conversation_id

    def cancel_editing_title(self) -> None:
        self._editing_title_id = None

    def clear_all_conversations(self) -> None:
        """Drop every conversation and erase the persisted snapshot."""
        self._conversations = ()
        self._current_id = None
        self._editing_title_id = None
        try:
            self._storage.remove_item(self._storage_key)
        except PersistenceError as exc:
            LOGGER.error(
                "store.clear_failed",
                extra={"event": "store.clear_failed", "error": str(exc)},
            )
        LOGGER.info("store.cleared", extra={"event": "store.cleared"})
        self._notify()

    # Queries -------------------------------------------------------------

    def search(self, query: str) -> tuple[Conversation, ...]:
        """Return conversations whose title or last message contains ``query``."""
        needle = query.strip().lower()
        if not needle:
            return self._conversations
        return tuple(
            conv
            for conv in self._conversations
            if needle in conv.title.lower() or needle in conv.last_message.lower()
        )

    @staticmethod
    def format_timestamp(when: datetime, now: datetime | None = None) -> str:
        """Render a short relative age such as ``5m ago``."""
        reference = now or utc_now()
        elapsed = (reference - when).total_seconds()
        minutes = int(elapsed // 60)
        hours = int(elapsed // 3600)
        days = int(elapsed // 86400)
        if minutes < 1:
            return "Just now"
        if minutes < 60:
            return f"{minutes}m ago"
        if hours < 24:
            return f"{hours}h ago"
        if days < 7:
            return f"{days}d ago"
        return when.astimezone().strftime("%x")
