"""Flat-file entry storage for feedutils.

The store is a single tab separated text file: a fixed header line followed by
one line per entry. Every change goes through transact(), which holds an
exclusive lock file for the whole read-modify-write cycle, writes the new
contents into that lock file and renames it over the store.

Database location: FEEDUTILS_DB, $XDG_DATA_HOME/feedutils.tsv or
~/.local/share/feedutils.tsv (see feedutils.config)
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable, Iterable, List, TextIO, Union

from feedutils.models.schemas import Entry


HEADER = "feed\tid\tupdated\ttitle\tlink\tread\n"
FIELDS = ("feed", "id", "updated", "title", "link", "read")

LOCK_SUFFIX = ".lock"
LOCK_INITIAL_DELAY_MS = 50
LOCK_TIMEOUT_MS = 2000

PathLike = Union[str, os.PathLike]
Modifier = Callable[[List[Entry]], List[Entry]]


class StoreError(Exception):
    """Base class for all entry store failures."""


class LockError(StoreError):
    """The lock file could not be created."""

    def __init__(self, path: Path, source: OSError):
        self.path = path
        self.source = source
        super().__init__(f"Unable to lock database: {source}: {path}")


class LockTimeoutError(LockError):
    """Another process held the lock for longer than the timeout."""

    def __init__(self, path: Path, waited_ms: int):
        self.waited_ms = waited_ms
        source = FileExistsError(f"lock still held after {waited_ms}ms")
        super().__init__(path, source)


class StoreReadError(StoreError):
    """The store file could not be opened, read or decoded."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"Database read error: {message}: {path}")


class MissingFieldError(StoreReadError):
    """A store row has fewer fields than the header."""

    def __init__(self, path: Path, field: str, line_number: int):
        self.field = field
        self.line_number = line_number
        super().__init__(path, f"Missing {field} field on line {line_number}")


class StoreWriteError(StoreError):
    """Writing, syncing or replacing the store failed."""

    def __init__(self, path: Path, operation: str, source: OSError):
        self.path = path
        self.operation = operation
        self.source = source
        super().__init__(f"Unable to {operation} database: {source}: {path}")


def encode_entry(entry: Entry) -> str:
    """Encode one entry as a store line, including the trailing newline."""
    return "\t".join([
        entry.feed,
        entry.id,
        entry.updated,
        entry.title,
        entry.link,
        "read" if entry.read else "unread",
    ]) + "\n"


def encode_entries(entries: Iterable[Entry]) -> str:
    """Encode a whole collection, header first."""
    return HEADER + "".join(encode_entry(e) for e in entries)


def decode_entries(lines: Iterable[str], path: PathLike = "<memory>") -> List[Entry]:
    """Decode store lines into entries.

    The first line is the header and is skipped. Fields are positional; any
    fields past the sixth are ignored.

    Args:
        lines: Lines of the store file, with or without trailing newlines
        path: Path used in error messages

    Returns:
        List of Entry objects in file order

    Raises:
        MissingFieldError: If a row has fewer than six fields
    """
    entries = []

    for line_number, line in enumerate(lines, start=1):
        if line_number == 1:
            continue

        fields = line.rstrip("\n").split("\t")
        if len(fields) < len(FIELDS):
            raise MissingFieldError(Path(path), FIELDS[len(fields)], line_number)

        feed, entry_id, updated, title, link, read = fields[:len(FIELDS)]
        entries.append(Entry(
            feed=feed,
            id=entry_id,
            title=title,
            updated=updated,
            link=link,
            read=read == "read",
        ))

    return entries


def read_entries(path: PathLike) -> List[Entry]:
    """Read and decode the store file without taking the lock.

    Raises:
        StoreReadError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            return decode_entries(f, path)
    except (OSError, UnicodeDecodeError) as e:
        raise StoreReadError(path, str(e)) from e


def lock_path(path: PathLike) -> Path:
    """Path of the lock file guarding a store."""
    path = Path(path)
    return path.with_name(path.name + LOCK_SUFFIX)


def acquire_lock(path: PathLike) -> TextIO:
    """Create the lock file for a store, waiting for other holders.

    Creation is exclusive, so success means this process owns the lock. While
    the file exists the attempt is retried with exponential backoff, starting
    at LOCK_INITIAL_DELAY_MS and doubling, until the total time slept reaches
    LOCK_TIMEOUT_MS.

    Args:
        path: Path of the store (not of the lock file)

    Returns:
        The lock file, open for writing

    Raises:
        LockTimeoutError: If the lock is still held after the timeout
        LockError: If the lock file cannot be created for any other reason
    """
    logger = logging.getLogger(__name__)
    lockfile_path = lock_path(path)

    delay_ms = LOCK_INITIAL_DELAY_MS
    waited_ms = 0

    while True:
        try:
            return open(lockfile_path, "x", encoding="utf-8", newline="")
        except FileExistsError as e:
            if waited_ms >= LOCK_TIMEOUT_MS:
                raise LockTimeoutError(lockfile_path, waited_ms) from e
            sleep_ms = min(delay_ms, LOCK_TIMEOUT_MS - waited_ms)
            logger.debug(f"Lock {lockfile_path} held, retrying in {sleep_ms}ms")
            time.sleep(sleep_ms / 1000)
            waited_ms += sleep_ms
            delay_ms *= 2
        except OSError as e:
            raise LockError(lockfile_path, e) from e


def _remove_lockfile(lockfile_path: Path) -> None:
    logger = logging.getLogger(__name__)
    try:
        os.remove(lockfile_path)
    except OSError as e:
        logger.warning(f"Unable to delete lockfile: {e}")


def _commit(lockfile: TextIO, lockfile_path: Path, path: Path, entries: List[Entry]) -> None:
    """Write entries into the held lock file, sync it and swap it in."""
    try:
        lockfile.write(encode_entries(entries))
        lockfile.flush()
    except OSError as e:
        raise StoreWriteError(lockfile_path, "write", e) from e

    try:
        os.fsync(lockfile.fileno())
        lockfile.close()
    except OSError as e:
        raise StoreWriteError(lockfile_path, "sync", e) from e

    try:
        os.replace(lockfile_path, path)
    except OSError as e:
        raise StoreWriteError(lockfile_path, "replace", e) from e


def transact(path: PathLike, modifier: Modifier) -> List[Entry]:
    """Run a locked read-modify-write cycle over the whole store.

    The modifier receives every stored entry and returns the collection to
    store in their place. The original file is never written in place: the
    new contents go into the lock file, which is synced and then renamed over
    the store. On any failure the lock file is removed and the store is left
    untouched.

    Args:
        path: Path of the store file
        modifier: Function mapping the current entries to the new entries

    Returns:
        The list of entries that was written

    Raises:
        LockError: If the lock could not be acquired (LockTimeoutError on timeout)
        StoreReadError: If the current store could not be read or decoded
        StoreWriteError: If the new store could not be written
    """
    path = Path(path)
    lockfile_path = lock_path(path)
    lockfile = acquire_lock(path)

    try:
        with lockfile:
            entries = read_entries(path)
            modified_entries = list(modifier(entries))
            _commit(lockfile, lockfile_path, path, modified_entries)
    except BaseException:
        _remove_lockfile(lockfile_path)
        raise

    return modified_entries


def init_store(path: PathLike) -> bool:
    """Create an empty store if none exists yet.

    Parent directories are created as needed. An existing store is left
    alone.

    Returns:
        True if a new store was created, False if one already existed
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    lockfile_path = lock_path(path)
    lockfile = acquire_lock(path)

    try:
        with lockfile:
            if path.exists():
                created = False
            else:
                _commit(lockfile, lockfile_path, path, [])
                created = True
    except BaseException:
        _remove_lockfile(lockfile_path)
        raise

    if not created:
        _remove_lockfile(lockfile_path)

    return created


class EntryStore:
    """Entry store bound to one file path."""

    def __init__(self, path: PathLike):
        self.path = Path(path)

    def transact(self, modifier: Modifier) -> List[Entry]:
        return transact(self.path, modifier)

    def entries(self) -> List[Entry]:
        """Snapshot of all entries, taken under the lock."""
        return self.transact(lambda entries: entries)

    def init(self) -> bool:
        return init_store(self.path)
