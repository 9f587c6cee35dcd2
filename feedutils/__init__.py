"""feedutils - a file-backed log of feed entries and their read state."""

__version__ = "0.1.0"
