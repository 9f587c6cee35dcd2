"""Runs the per-feed "fetch" and "open" executables."""

import logging
import os
import subprocess
from pathlib import Path

from feedutils.models.schemas import Entry


FETCH_EXECUTABLE = "fetch"
OPEN_EXECUTABLE = "open"
ERROR_LOG = "error.log"


class ExecError(Exception):
    """An executable could not be launched."""

    def __init__(self, path: Path, source: OSError):
        self.path = path
        self.source = source
        super().__init__(f"Failed to launch executable: {source}: {path}")


class FetchError(Exception):
    """The fetch executable exited unsuccessfully."""

    def __init__(self, path: Path, returncode: int, stderr: bytes):
        self.path = path
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Failed to run fetch, exit status {returncode}: {path}")


class OpenError(Exception):
    """The open executable exited unsuccessfully."""

    def __init__(self, path: Path, returncode: int):
        self.path = path
        self.returncode = returncode
        super().__init__(f"Failed to run open, exit status {returncode}: {path}")


def run_fetch(feed_dir: Path) -> bytes:
    """Run a feed's fetch executable and return its standard output.

    On failure the captured stderr is saved to error.log in the feed
    directory so it can be shown later; on success a stale error.log is
    removed.

    Raises:
        ExecError: If the executable cannot be started
        FetchError: If it exits with a nonzero status
    """
    logger = logging.getLogger(__name__)
    exec_path = feed_dir / FETCH_EXECUTABLE
    error_path = feed_dir / ERROR_LOG

    try:
        result = subprocess.run([str(exec_path)], capture_output=True)
    except OSError as e:
        raise ExecError(exec_path, e) from e

    if result.returncode != 0:
        try:
            error_path.write_bytes(result.stderr)
        except OSError as e:
            logger.warning(f"Unable to save fetch errors to {error_path}: {e}")
        raise FetchError(exec_path, result.returncode, result.stderr)

    try:
        error_path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Unable to remove {error_path}: {e}")

    logger.debug(f"Fetched {len(result.stdout)} bytes with {exec_path}")
    return result.stdout


def run_open(feed_dir: Path, entry: Entry) -> None:
    """Run a feed's open executable for one entry.

    The entry is passed through the TITLE and LINK environment variables.

    Raises:
        ExecError: If the executable cannot be started
        OpenError: If it exits with a nonzero status
    """
    exec_path = feed_dir / OPEN_EXECUTABLE
    env = dict(os.environ, TITLE=entry.title, LINK=entry.link)

    try:
        result = subprocess.run([str(exec_path)], env=env)
    except OSError as e:
        raise ExecError(exec_path, e) from e

    if result.returncode != 0:
        raise OpenError(exec_path, result.returncode)
