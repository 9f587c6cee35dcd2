"""Feed merge service.

This module combines freshly parsed feed entries with the stored collection.
"""

from typing import Dict, List

from feedutils.models.schemas import Entry, sanitize


def reconcile(feed_name: str, incoming: List[Entry], current: List[Entry]) -> List[Entry]:
    """Merge one feed's parsed entries into the full stored collection.

    - entries of other feeds are kept untouched
    - stored entries still listed by the feed are kept as stored (never
      replaced by the incoming copy, even if its fields changed)
    - stored entries no longer listed are kept while unread, dropped once read
    - incoming entries with an id not yet stored are appended as unread

    Args:
        feed_name: Name of the feed that was refreshed
        incoming: Entries just parsed from that feed
        current: Every entry currently in the store

    Returns:
        The next full collection
    """
    feed_name = sanitize(feed_name)

    # Treat everything from the feed as new until it is found in the store.
    # Later duplicates of an id replace earlier ones but keep their position.
    new_entries: Dict[str, Entry] = {}
    for entry in incoming:
        new_entries[entry.id] = entry

    merged = []
    for entry in current:
        if entry.feed != feed_name:
            merged.append(entry)
        elif entry.id in new_entries:
            del new_entries[entry.id]
            merged.append(entry)
        elif not entry.read:
            merged.append(entry)

    for entry in new_entries.values():
        merged.append(Entry(
            feed=feed_name,
            id=entry.id,
            title=entry.title,
            updated=entry.updated,
            link=entry.link,
            read=False,
        ))

    return merged
