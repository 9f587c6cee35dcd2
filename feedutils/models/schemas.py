"""Data models for feedutils.

This module defines the entry record shared by the parser, the merge step and
the on-disk store.
"""

import unicodedata
from dataclasses import dataclass


def sanitize(text: str) -> str:
    """Remove all control characters from a string.

    Works on characters rather than bytes, so multi-byte UTF-8 text passes
    through intact. Tabs and newlines are control characters, which keeps the
    store's tab separated format unambiguous.
    """
    return "".join(c for c in text if unicodedata.category(c) != "Cc")


@dataclass
class Entry:
    """Represents a single item from a feed."""

    feed: str
    id: str
    title: str
    updated: str
    link: str
    read: bool = False

    def __post_init__(self):
        self.feed = sanitize(self.feed)
        self.id = sanitize(self.id)
        self.title = sanitize(self.title)
        self.updated = sanitize(self.updated)
        self.link = sanitize(self.link)
