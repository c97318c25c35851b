"""Tests for record encoding and identifier generation."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
import unittest

from agent_chat.exceptions import PersistenceFormatError
from agent_chat.models import (
    Conversation,
    FileInfo,
    IdSequence,
    Message,
    MessageRole,
    format_datetime,
    parse_datetime,
)

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class DatetimeCodecTests(unittest.TestCase):
    """Validate ISO timestamp handling."""

    def test_z_suffix_round_trip(self) -> None:
        self.assertEqual(format_datetime(T0), "2026-03-01T12:00:00Z")
        self.assertEqual(parse_datetime("2026-03-01T12:00:00Z"), T0)

    def test_offsets_are_normalized_to_utc(self) -> None:
        local = datetime(2026, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        self.assertEqual(format_datetime(local), "2026-03-01T12:00:00Z")

    def test_naive_values_are_treated_as_utc(self) -> None:
        self.assertEqual(parse_datetime("2026-03-01T12:00:00"), T0)

    def test_invalid_values_raise(self) -> None:
        for value in ("yesterday", "", None, 42):
            with self.subTest(value=value):
                with self.assertRaises(PersistenceFormatError):
                    parse_datetime(value)


class IdSequenceTests(unittest.TestCase):
    """Validate monotonic identifiers."""

    def test_ids_strictly_increase(self) -> None:
        ids = IdSequence()
        values = [ids.next() for _ in range(500)]
        self.assertEqual(values, sorted(set(values)))

    def test_observe_moves_sequence_forward(self) -> None:
        ids = IdSequence()
        far_future = ids.next() + 10_000_000
        ids.observe(far_future)
        self.assertEqual(ids.next(), far_future + 1)


class MessageCodecTests(unittest.TestCase):
    """Validate the camelCase snapshot shape."""

    def test_optional_fields_are_omitted(self) -> None:
        payload = Message(1, MessageRole.USER, "hi", timestamp=T0).to_dict()
        self.assertEqual(
            payload,
            {"id": 1, "role": "user", "content": "hi", "timestamp": "2026-03-01T12:00:00Z"},
        )

    def test_assistant_fields_use_camel_case(self) -> None:
        message = Message(
            2,
            MessageRole.ASSISTANT,
            "done",
            timestamp=T0,
            agent="data",
            model="GPT-4o",
            file=FileInfo("a.csv", 3, "text/csv"),
            download_url="https://example.test/report.pdf",
            is_error=True,
        )
        payload = message.to_dict()
        self.assertEqual(payload["downloadUrl"], "https://example.test/report.pdf")
        self.assertTrue(payload["isError"])
        self.assertEqual(payload["file"], {"name": "a.csv", "size": 3, "type": "text/csv"})
        self.assertEqual(Message.from_dict(payload), message)

    def test_missing_timestamp_defaults_to_load_moment(self) -> None:
        message = Message.from_dict({"id": 3, "role": "user", "content": "x"}, now=T0)
        self.assertEqual(message.timestamp, T0)

    def test_bad_payloads_raise(self) -> None:
        for payload in (
            "nope",
            {"id": 1, "role": "robot", "content": ""},
            {"role": "user", "content": ""},
            {"id": 1, "role": "user", "file": {"name": "a", "size": "big"}},
        ):
            with self.subTest(payload=payload):
                with self.assertRaises(PersistenceFormatError):
                    Message.from_dict(payload, now=T0)


class ConversationCodecTests(unittest.TestCase):
    """Validate conversation decoding."""

    def test_round_trip_revives_timestamps(self) -> None:
        conversation = Conversation(
            id="1700000000000",
            title="Plan Launch",
            active=True,
            last_message="ok",
            timestamp=T0,
            created_at=T0 - timedelta(hours=1),
            updated_at=T0,
            messages=(Message(5, MessageRole.USER, "ok", timestamp=T0),),
        )
        payload = conversation.to_dict()
        self.assertEqual(payload["createdAt"], "2026-03-01T11:00:00Z")
        self.assertEqual(payload["lastMessage"], "ok")
        self.assertEqual(Conversation.from_dict(payload, now=T0), conversation)

    def test_missing_id_raises(self) -> None:
        with self.assertRaises(PersistenceFormatError):
            Conversation.from_dict({"title": "x"}, now=T0)


if __name__ == "__main__":
    unittest.main()
