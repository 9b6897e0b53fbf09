"""Cluster configuration: nodes, fault thresholds and configuration file parsing."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_LOCAL_PORTS = range(5555, 5559)

_SERVER_CATEGORIES = ("[servers-normal]", "[servers-mute]", "[servers-malicious]")


@dataclass(frozen=True)
class Node:
    """A server address: a host name and a TCP port."""

    host: str
    port: int

    def endpoint(self) -> str:
        """The transport endpoint used to connect to this node."""
        return f"tcp://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Quorum:
    """Byzantine fault thresholds for ``n`` replicas tolerating ``f`` faults."""

    n: int
    f: int
    high: int
    medium: int
    low: int


def quorum_for(n: int) -> Quorum:
    """Compute f = (n-1)/3 and the 3f+1, 2f+1 and f+1 thresholds."""
    if n < 0:
        raise ValueError(f"negative node count: {n}")
    f = (n - 1) // 3 if n > 0 else 0
    return Quorum(n=n, f=f, high=3 * f + 1, medium=2 * f + 1, low=f + 1)


def parse_port_range_file(path: str | os.PathLike[str]) -> list[Node]:
    """Read a ``min-max`` port range (last one wins) and return local nodes for it."""
    port_range: tuple[int, int] | None = None
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if "[" in line or not line:
                continue
            bounds = line.split("-")
            if len(bounds) < 2:
                raise ValueError(f"invalid port range: {line!r}")
            port_range = (int(bounds[0]), int(bounds[1]))
    if port_range is None:
        raise ValueError(f"no port range in {path}")
    low, high = port_range
    return [Node("localhost", port) for port in range(low, high + 1)]


def get_hosts(path: str | os.PathLike[str], option: str) -> list[str]:
    """Return the hosts listed under a category of a sectioned hosts file.

    ``option`` is ``master``, ``clients`` or ``servers``; the last gathers the
    normal, mute and malicious server sections in file order. Any other option
    yields an empty list.
    """
    groups: dict[str, list[str]] = {"master": [], "clients": [], "servers": []}
    category = ""
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        if line.startswith("[") and line.endswith("]"):
            category = line
            continue
        if not line:
            continue
        if category == "[master]":
            groups["master"].append(line)
        elif category == "[clients]":
            groups["clients"].append(line)
        elif category in _SERVER_CATEGORIES:
            groups["servers"].append(line)
    return groups.get(option, [])


def get_port_and_threads(path: str | os.PathLike[str]) -> tuple[int, int]:
    """Read ``key=port`` and ``key=threads`` from the first two lines of a file."""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    try:
        port_text = lines[0].split("=")[1]
        threads_text = lines[1].split("=")[1]
    except IndexError:
        raise ValueError(f"malformed configuration file: {path}") from None
    return int(port_text), int(threads_text)


def expand_nodes(hosts: list[str], default_port: int, num_threads: int) -> list[Node]:
    """One node per host and per port in ``[default_port, default_port + num_threads)``."""
    return [
        Node(host, port)
        for host in hosts
        for port in range(default_port, default_port + num_threads)
    ]


def local_nodes() -> list[Node]:
    """The fixed set of local nodes used by the standalone broadcast demo."""
    return [Node("localhost", port) for port in _LOCAL_PORTS]


def network_exists(base_dir: str | os.PathLike[str], name: str) -> bool:
    """True if a network description named ``name`` exists under ``base_dir``."""
    return (Path(base_dir) / name).exists()