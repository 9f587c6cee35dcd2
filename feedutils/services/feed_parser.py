"""Feed parser service.

This module turns an RSS or Atom document into entries. The format is picked
from the root element and the document is read once, incrementally, through
an lxml pull parser.
"""

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union
from urllib.parse import urlsplit

from lxml import etree

from feedutils.models.schemas import Entry, sanitize


ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
READ_CHUNK_SIZE = 4096
UNTITLED = "Untitled"

# Schemes that are meaningless without a host
_HOST_SCHEMES = {"http", "https", "ftp", "ws", "wss"}
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*$")

FeedSource = Union[bytes, bytearray, BinaryIO]


def parse_feed(source: FeedSource, feed_name: str) -> List[Entry]:
    """Parse an RSS/Atom document into entries.

    The first element decides the format: <rss> is handled as RSS, <feed> as
    Atom, anything else yields no entries. Entries missing required fields are
    skipped. Malformed XML stops parsing, and the entries completed before the
    error are still returned.

    Args:
        source: Raw document bytes, or a binary file-like object
        feed_name: Name of the feed the entries belong to

    Returns:
        List of unread Entry objects, in document order
    """
    logger = logging.getLogger(__name__)
    feed_name = sanitize(feed_name)

    events = _iter_events(source)
    root = None
    for event, elem in events:
        if event == "start":
            root = elem
            break

    if root is None:
        logger.warning(f"{feed_name}: no root element found in feed")
        return []

    name = etree.QName(root).localname
    if name == "rss":
        entries = _parse_rss(events, feed_name)
    elif name == "feed":
        entries = _parse_atom(events, feed_name)
    else:
        logger.warning(f"{feed_name}: doesn't seem to be either an Atom or an RSS feed (root <{name}>)")
        return []

    logger.info(f"{feed_name}: parsed {len(entries)} entries from {name} feed")
    return entries


def _iter_chunks(source: FeedSource) -> Iterator[bytes]:
    if isinstance(source, (bytes, bytearray)):
        for start in range(0, len(source), READ_CHUNK_SIZE):
            yield bytes(source[start:start + READ_CHUNK_SIZE])
        return

    while True:
        chunk = source.read(READ_CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def _iter_events(source: FeedSource) -> Iterator[Tuple[str, etree._Element]]:
    """Yield (event, element) pairs, stopping quietly at the first XML error."""
    logger = logging.getLogger(__name__)
    parser = etree.XMLPullParser(
        events=("start", "end"),
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
    )

    try:
        for chunk in _iter_chunks(source):
            parser.feed(chunk)
            yield from parser.read_events()
        parser.close()
        yield from parser.read_events()
    except etree.XMLSyntaxError as e:
        # Events seen before the error are still valid
        yield from parser.read_events()
        logger.warning(f"Error parsing XML: {e}")


def _release(elem: etree._Element) -> None:
    """Drop a processed element and its earlier siblings from the tree."""
    elem.clear(keep_tail=True)
    parent = elem.getparent()
    if parent is not None:
        while elem.getprevious() is not None:
            del parent[0]


def _is_element(elem: etree._Element, name: str, namespace: Optional[str]) -> bool:
    qname = etree.QName(elem)
    if qname.localname != name:
        return False
    return qname.namespace is None or qname.namespace == namespace


def _text(elem: etree._Element) -> Optional[str]:
    """Sanitized character data of an element and its descendants, None if blank."""
    text = sanitize("".join(elem.itertext())).strip()
    return text or None


def _children(elem: etree._Element, namespace: Optional[str]) -> Iterator[Tuple[str, etree._Element]]:
    for child in elem:
        if not isinstance(child.tag, str):
            continue
        qname = etree.QName(child)
        if qname.namespace is None or qname.namespace == namespace:
            yield qname.localname, child


def _parse_rss(events: Iterator[Tuple[str, etree._Element]], feed_name: str) -> List[Entry]:
    logger = logging.getLogger(__name__)
    entries = []

    for event, elem in events:
        if event != "end" or not _is_element(elem, "item", None):
            continue

        fields = {}
        for name, child in _children(elem, None):
            if name in ("guid", "title", "pubDate", "link"):
                text = _text(child)
                if text is not None:
                    fields[name] = text
        _release(elem)

        link = fields.get("link")
        if link is None:
            logger.warning(f"{feed_name}: ignoring incomplete entry, missing link field")
            continue

        entries.append(Entry(
            feed=feed_name,
            id=fields.get("guid", link),
            title=fields.get("title", UNTITLED),
            updated=parse_rss_date(fields.get("pubDate")),
            link=link,
        ))

    return entries


def _atom_link(elem: etree._Element, feed_name: str) -> Optional[str]:
    """Pick the entry link, preferring rel="alternate" (or no rel)."""
    logger = logging.getLogger(__name__)
    alternate = None
    other = None

    for name, child in _children(elem, ATOM_NAMESPACE):
        if name != "link":
            continue
        href = child.get("href")
        if href is None:
            continue
        href = sanitize(href).strip()
        if not is_valid_url(href):
            logger.warning(f"{feed_name}: ignoring invalid URL: {href!r}")
            continue
        if child.get("rel", "alternate") == "alternate":
            alternate = alternate or href
        else:
            other = href

    return alternate or other


def _parse_atom(events: Iterator[Tuple[str, etree._Element]], feed_name: str) -> List[Entry]:
    logger = logging.getLogger(__name__)
    entries = []

    for event, elem in events:
        if event != "end" or not _is_element(elem, "entry", ATOM_NAMESPACE):
            continue

        fields = {}
        for name, child in _children(elem, ATOM_NAMESPACE):
            if name in ("id", "title", "updated"):
                text = _text(child)
                if text is not None:
                    fields[name] = text
        link = _atom_link(elem, feed_name)
        _release(elem)

        missing = next(
            (f for f in ("id", "title", "updated") if f not in fields),
            None if link is not None else "link",
        )
        if missing is not None:
            entry_id = fields.get("id", "<no id>")
            logger.warning(f"{feed_name}: ignoring incomplete entry {entry_id}, missing {missing} field")
            continue

        entries.append(Entry(
            feed=feed_name,
            id=fields["id"],
            title=fields["title"],
            updated=fields["updated"],
            link=link,
        ))

    return entries


def parse_rss_date(pub_date: Optional[str]) -> str:
    """Convert an RSS pubDate to an RFC 3339 timestamp.

    Feeds often get RFC 2822 slightly wrong, so "UTC" is rewritten to "GMT"
    before parsing. Missing or unparseable dates become the current time.
    """
    if pub_date is not None:
        try:
            updated = parsedate_to_datetime(pub_date.replace("UTC", "GMT"))
        except (TypeError, ValueError, IndexError):
            updated = None
        if updated is not None:
            if updated.tzinfo is None:
                updated = updated.replace(tzinfo=timezone.utc)
            return updated.isoformat()

    return datetime.now(timezone.utc).isoformat()


def is_valid_url(url: str) -> bool:
    """Check that a string is an absolute URL that can be parsed."""
    try:
        parts = urlsplit(url)
        parts.port
    except ValueError:
        return False

    if not parts.scheme or not _SCHEME_RE.match(parts.scheme):
        return False
    if parts.scheme.lower() in _HOST_SCHEMES and not parts.hostname:
        return False
    if any(c.isspace() for c in url):
        return False

    return True
