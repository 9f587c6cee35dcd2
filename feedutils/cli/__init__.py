"""Command line package initialization"""

from feedutils.cli.app import delete, main, markasread, read, unread, update

__all__ = ["main", "update", "unread", "read", "markasread", "delete"]
