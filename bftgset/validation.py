"""Validation of identifiers and records typed by users."""

from __future__ import annotations

import random
import string
from typing import Callable

_FORBIDDEN = (" ", ".", "{", "}")


def is_message_valid(msg: str) -> bool:
    """A non-empty string free of spaces, dots, braces and semicolons."""
    return bool(msg) and not any(ch in msg for ch in (*_FORBIDDEN, ";"))


def is_atomic_message_valid(
    msg: str, network_exists: Callable[[str], bool] | None = None
) -> bool:
    """Four non-empty ``;``-separated parts, free of spaces, dots and braces.

    When ``network_exists`` is given, the second part must name a known network.
    """
    if not msg or any(ch in msg for ch in _FORBIDDEN):
        return False
    parts = msg.split(";")
    if len(parts) != 4 or not all(parts):
        return False
    if network_exists is not None and not network_exists(parts[1]):
        return False
    return True


def is_record_valid(record: str) -> bool:
    """A record that is not empty and not only whitespace."""
    return bool(record.strip())


def random_record(rng: random.Random | None = None) -> str:
    """A random lowercase string of length 0 to 5."""
    rng = rng or random.Random()
    length = rng.randrange(6)
    return "".join(rng.choice(string.ascii_lowercase) for _ in range(length))