"""Deterministic conversation titles derived from the first user message."""

from __future__ import annotations

import re

DEFAULT_TITLE = "New Chat"
MAX_TITLE_WORDS = 4

# Checked in order; only the first match is removed.
FILLER_PREFIXES: tuple[str, ...] = (
    "can you help me",
    "could you help me",
    "can you",
    "please",
    "help me",
    "i need",
    "how to",
    "what is",
    "explain",
    "tell me",
    "i want to",
    "i would like",
    "could you",
    "would you",
    "can someone",
    "does anyone",
    "i'm looking for",
    "i'm trying to",
    "i need help with",
    "i need assistance with",
)

STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "this", "that", "these", "those",
        "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us",
        "them", "my", "your", "his", "its", "our", "their",
    }
)  # fmt: skip

_PUNCTUATION = re.compile(r"[^A-Za-z0-9_\s]")
_WHITESPACE = re.compile(r"\s+")


def _strip_filler_prefix(text: str) -> str:
    for prefix in FILLER_PREFIXES:
        if text.startswith(prefix):
            return text[len(prefix) :].strip()
    return text


def generate_title(message: str) -> str:
    """Return a 1-4 word title for ``message`` or ``DEFAULT_TITLE``.

    >>> generate_title("Can you help me plan a launch?")
    'Plan Launch'
    """
    cleaned = _strip_filler_prefix(message.strip().lower())
    cleaned = _WHITESPACE.sub(" ", _PUNCTUATION.sub(" ", cleaned)).strip()

    words = [
        word
        for word in cleaned.split(" ")
        if len(word) > 2 and word not in STOP_WORDS
    ]
    title_words = words[:MAX_TITLE_WORDS]
    if not title_words:
        return DEFAULT_TITLE
    return " ".join(word[0].upper() + word[1:] for word in title_words)
