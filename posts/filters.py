"""
posts/filters.py -- Message content filter.

Posts whose message contains a blocked word (case-insensitive substring
match) are rejected before anything is stored. The word list comes from
Settings.filtered_words.
"""

from __future__ import annotations

from collections.abc import Iterable


def contains_filtered_words(message: str, words: Iterable[str]) -> bool:
    """Return True if any word in words occurs in message, ignoring case."""
    lowered = message.lower()
    return any(word.lower() in lowered for word in words if word)
