"""Feed directory lookup.

Each feed is a directory under the configuration directory, holding its
"fetch" and "open" executables.
"""

from pathlib import Path
from typing import List

from feedutils.config import Config


class FeedDirError(Exception):
    """The feed configuration directory cannot be read."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Cannot read feed config: {path}")


class FeedNotFoundError(Exception):
    """No directory exists for the named feed."""

    def __init__(self, feed_name: str):
        self.feed_name = feed_name
        super().__init__(f"Feed does not exist: {feed_name}")


def get_feed_dir(config: Config, feed_name: str) -> Path:
    """Return the directory of an existing feed.

    Raises:
        FeedDirError: If the configuration directory is missing
        FeedNotFoundError: If the feed has no directory
    """
    if not config.config_dir.is_dir():
        raise FeedDirError(config.config_dir)

    feed_dir = config.config_dir / feed_name
    if not feed_dir.is_dir():
        raise FeedNotFoundError(feed_name)

    return feed_dir


def list_feed_names(config: Config) -> List[str]:
    """List all configured feeds, sorted by name.

    Names are returned as found on disk so they can be passed back to
    get_feed_dir. Callers sanitize them before matching stored entries.
    """
    try:
        children = list(config.config_dir.iterdir())
    except OSError as e:
        raise FeedDirError(config.config_dir) from e

    return sorted(child.name for child in children if child.is_dir())
