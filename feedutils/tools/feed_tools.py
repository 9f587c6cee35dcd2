"""Feed operations.

This module wires the parser, the merge step and the entry store together
into the operations exposed on the command line. Every access to the store,
including read-only listings, goes through a locked transaction.
"""

import logging
import shutil
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from feedutils.config import Config
from feedutils.models.schemas import Entry, sanitize
from feedutils.services.executor import ExecError, FetchError, OpenError, run_fetch, run_open
from feedutils.services.feed_dirs import (
    FeedDirError,
    FeedNotFoundError,
    get_feed_dir,
    list_feed_names,
)
from feedutils.services.feed_parser import parse_feed
from feedutils.services.merge import reconcile
from feedutils.storage.database import EntryStore, StoreError, init_store


# Failures that end one feed's update without stopping the others
UPDATE_ERRORS = (FeedDirError, FeedNotFoundError, ExecError, FetchError, StoreError)


@dataclass
class UpdateResult:
    """Outcome of refreshing one feed."""

    feed: str
    added: int = 0
    removed: int = 0
    total: int = 0
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ReadResult:
    """Outcome of opening a feed's unread entries."""

    feed: str
    opened: int = 0
    errors: List[Exception] = field(default_factory=list)


def _feed_ids(entries: Iterable[Entry], feed_name: str) -> set:
    feed_name = sanitize(feed_name)
    return {e.id for e in entries if e.feed == feed_name}


def update_feed(config: Config, feed_name: str) -> UpdateResult:
    """Fetch a feed and merge its entries into the store.

    Args:
        config: Resolved configuration
        feed_name: Name of the feed directory

    Returns:
        UpdateResult with the number of entries added and removed

    Raises:
        FeedDirError, FeedNotFoundError: If the feed is not configured
        ExecError, FetchError: If the fetch executable fails
        StoreError: If the store cannot be updated
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Updating feed {feed_name}")

    feed_dir = get_feed_dir(config, feed_name)
    data = run_fetch(feed_dir)
    feed_entries = parse_feed(data, feed_name)

    if not config.database_path.exists():
        logger.info(f"Creating entry store at {config.database_path}")
        init_store(config.database_path)

    before = set()

    def merge(entries: List[Entry]) -> List[Entry]:
        before.update(_feed_ids(entries, feed_name))
        return reconcile(feed_name, feed_entries, entries)

    merged = EntryStore(config.database_path).transact(merge)
    after = _feed_ids(merged, feed_name)

    result = UpdateResult(
        feed=feed_name,
        added=len(after - before),
        removed=len(before - after),
        total=len(after),
    )
    logger.info(f"{feed_name}: {result.added} new, {result.removed} removed, {result.total} stored")
    return result


def update_feeds(config: Config, feed_names: Optional[List[str]] = None) -> List[UpdateResult]:
    """Update several feeds, or every configured feed when none are named.

    A failing feed is recorded in its result and does not stop the others.

    Raises:
        FeedDirError: If no names were given and the feeds cannot be listed
    """
    logger = logging.getLogger(__name__)

    if not feed_names:
        feed_names = list_feed_names(config)

    results = []
    for feed_name in feed_names:
        try:
            results.append(update_feed(config, feed_name))
        except UPDATE_ERRORS as e:
            logger.error(f"Error updating {feed_name}: {e}")
            results.append(UpdateResult(feed=feed_name, error=e))

    return results


def count_unread(config: Config) -> Dict[str, int]:
    """Count unread entries per feed. Feeds with none are omitted."""
    entries = EntryStore(config.database_path).entries()
    return dict(Counter(e.feed for e in entries if not e.read))


def get_feed_entries(config: Config, feed_name: str) -> List[Entry]:
    """All stored entries of one feed, oldest first (ties broken by id)."""
    feed_name = sanitize(feed_name)
    entries = EntryStore(config.database_path).entries()
    feed_entries = [e for e in entries if e.feed == feed_name]
    feed_entries.sort(key=lambda e: (e.updated, e.id))
    return feed_entries


def mark_entry_read(config: Config, feed_name: str, entry_id: str) -> bool:
    """Mark one entry as read.

    Returns:
        True if the entry exists in the store
    """
    feed_name = sanitize(feed_name)
    entry_id = sanitize(entry_id)
    found = []

    def modifier(entries: List[Entry]) -> List[Entry]:
        for entry in entries:
            if entry.feed == feed_name and entry.id == entry_id:
                entry.read = True
                found.append(entry)
        return entries

    EntryStore(config.database_path).transact(modifier)
    return bool(found)


def mark_feed_read(config: Config, feed_name: str) -> int:
    """Mark every entry of a feed as read.

    Returns:
        Number of entries that were unread

    Raises:
        FeedDirError, FeedNotFoundError: If the feed is not configured
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Marking {feed_name} as read")

    get_feed_dir(config, feed_name)
    store_name = sanitize(feed_name)
    marked = []

    def modifier(entries: List[Entry]) -> List[Entry]:
        for entry in entries:
            if entry.feed == store_name and not entry.read:
                entry.read = True
                marked.append(entry)
        return entries

    EntryStore(config.database_path).transact(modifier)
    return len(marked)


def read_feed(config: Config, feed_name: str) -> ReadResult:
    """Open each unread entry of a feed, oldest first, marking it read.

    An entry is only marked read once its open executable succeeded. Errors
    for single entries are collected and the remaining entries still opened.

    Raises:
        FeedDirError, FeedNotFoundError: If the feed is not configured
        StoreError: If the feed's entries cannot be listed
    """
    logger = logging.getLogger(__name__)
    feed_dir = get_feed_dir(config, feed_name)
    result = ReadResult(feed=feed_name)

    for entry in get_feed_entries(config, feed_name):
        if entry.read:
            continue
        try:
            run_open(feed_dir, entry)
            mark_entry_read(config, entry.feed, entry.id)
        except (ExecError, OpenError, StoreError) as e:
            logger.error(f"Error reading {entry.id} from {feed_name}: {e}")
            result.errors.append(e)
            continue
        result.opened += 1

    return result


def delete_feed(config: Config, feed_name: str) -> int:
    """Remove a feed's entries from the store, then its directory.

    Returns:
        Number of entries removed

    Raises:
        FeedDirError, FeedNotFoundError: If the feed is not configured
        StoreError: If the store cannot be updated
        OSError: If the feed directory cannot be removed
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Deleting feed {feed_name}")

    feed_dir = get_feed_dir(config, feed_name)
    store_name = sanitize(feed_name)
    removed = []

    def modifier(entries: List[Entry]) -> List[Entry]:
        kept = []
        for entry in entries:
            if entry.feed == store_name:
                removed.append(entry)
            else:
                kept.append(entry)
        return kept

    EntryStore(config.database_path).transact(modifier)
    shutil.rmtree(feed_dir)

    return len(removed)
