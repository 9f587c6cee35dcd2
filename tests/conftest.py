"""Shared fixtures for feedutils tests."""

import logging
import stat
from pathlib import Path

import pytest

from feedutils.config import Config
from feedutils.models.schemas import Entry
from feedutils.storage.database import encode_entries


RSS_FEED = b"""<?xml version="1.0"?>
<rss version="2.0">
    <channel>
        <title>Test Blog</title>
        <link>https://example.com/</link>
        <item>
            <guid>post-1</guid>
            <title>First Post</title>
            <link>https://example.com/post1</link>
            <pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate>
        </item>
        <item>
            <guid>post-2</guid>
            <title>Second Post</title>
            <link>https://example.com/post2</link>
            <pubDate>Tue, 02 Jan 2024 12:00:00 GMT</pubDate>
        </item>
    </channel>
</rss>
"""


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config pointing at a temporary store and feed directory."""
    config_dir = tmp_path / "feeds"
    config_dir.mkdir()
    return Config(
        database_path=tmp_path / "feedutils.tsv",
        config_dir=config_dir,
        log_level="DEBUG",
    )


@pytest.fixture
def write_store(config: Config):
    """Write entries straight into the store file."""

    def _write(entries):
        config.database_path.write_text(encode_entries(entries), encoding="utf-8")

    return _write


@pytest.fixture
def make_feed(config: Config):
    """Create a feed directory whose fetch script prints the given document."""

    def _make(name: str, document: bytes = RSS_FEED, fetch_exit: int = 0, open_exit: int = 0) -> Path:
        feed_dir = config.config_dir / name
        feed_dir.mkdir()
        (feed_dir / "feed.xml").write_bytes(document)

        fetch = feed_dir / "fetch"
        fetch.write_text(
            "#!/bin/sh\n"
            f"cat '{feed_dir / 'feed.xml'}'\n"
            "echo 'fetch diagnostics' >&2\n"
            f"exit {fetch_exit}\n"
        )
        fetch.chmod(fetch.stat().st_mode | stat.S_IEXEC)

        opener = feed_dir / "open"
        opener.write_text(
            "#!/bin/sh\n"
            f"printf '%s\\t%s\\n' \"$TITLE\" \"$LINK\" >> '{feed_dir / 'opened.log'}'\n"
            f"exit {open_exit}\n"
        )
        opener.chmod(opener.stat().st_mode | stat.S_IEXEC)
        return feed_dir

    return _make


@pytest.fixture
def make_entry():
    """Build an Entry with defaults for the fields a test does not care about."""

    def _make(feed="blog", id="1", title="Title", updated="2024-01-01T00:00:00+00:00",
              link="https://example.com/1", read=False) -> Entry:
        return Entry(feed=feed, id=id, title=title, updated=updated, link=link, read=read)

    return _make


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo setup_logging after each test."""
    yield
    feedutils_logger = logging.getLogger("feedutils")
    for handler in list(feedutils_logger.handlers):
        feedutils_logger.removeHandler(handler)
    feedutils_logger.setLevel(logging.NOTSET)
