"""Event logging to standard output and to an append-only log file."""

from __future__ import annotations

import os
import sys
import threading
import time
from pathlib import Path

DEFAULT_LOG_FILE = "log.txt"

_lock = threading.Lock()


def _timestamp() -> str:
    return time.strftime("%Y/%m/%d %H:%M:%S")


def reset_log_file(path: str | os.PathLike[str] = DEFAULT_LOG_FILE) -> None:
    """Delete the log file if it exists; report, but do not raise, other failures."""
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        print(exc)


def log_event(
    node_id: str,
    event: str,
    path: str | os.PathLike[str] | None = DEFAULT_LOG_FILE,
) -> str:
    """Log ``| node_id | event`` to stdout and, unless ``path`` is None, to the log file.

    Returns the message line without its timestamp.
    """
    line = f"| {node_id} | {event}"
    stamped = f"{_timestamp()} {line}\n"
    with _lock:
        sys.stdout.write(stamped)
        sys.stdout.flush()
        if path is not None:
            with open(path, "a", encoding="utf-8") as handle:
                handle.write(stamped)
    return line