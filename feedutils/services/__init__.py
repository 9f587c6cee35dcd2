"""Services for feedutils."""

from .executor import ExecError, FetchError, OpenError, run_fetch, run_open
from .feed_dirs import FeedDirError, FeedNotFoundError, get_feed_dir, list_feed_names
from .feed_parser import parse_feed
from .merge import reconcile

__all__ = [
    "ExecError",
    "FetchError",
    "OpenError",
    "run_fetch",
    "run_open",
    "FeedDirError",
    "FeedNotFoundError",
    "get_feed_dir",
    "list_feed_names",
    "parse_feed",
    "reconcile",
]
