"""Command-line entry points for G-set clients, replicas and the broadcast demo."""

from __future__ import annotations

import argparse
import socket
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterable, TextIO

import zmq

from .client import GSetClient
from .config import (
    Node,
    expand_nodes,
    get_hosts,
    get_port_and_threads,
    local_nodes,
    parse_port_range_file,
)
from .logger import DEFAULT_LOG_FILE, log_event, reset_log_file
from .messages import Tag
from .server import Behaviour, ZmqServer, start_servers
from .validation import is_message_valid

MENU = "Type 'g' for GET, 'a' for ADD or 'e' for EXIT\n> "

_BEHAVIOUR_ALIASES = {
    "normal": Behaviour.NORMAL,
    "mute": Behaviour.MUTE,
    "mutes": Behaviour.MUTE,
    "m": Behaviour.MUTE,
    "malicious": Behaviour.MALICIOUS,
}


def _short_hostname() -> str:
    return socket.gethostname().split(".")[0]


def run_interactive(
    make_client: Callable[[str], Any],
    lines: Iterable[str] | None = None,
    out: TextIO | None = None,
) -> list[str]:
    """Drive a client from text commands; returns the results of every GET.

    The first valid line is the client id. Then ``g`` reads the set, ``a``
    followed by a record line appends it, and ``e`` ends the session.
    """
    source = iter(lines if lines is not None else sys.stdin)
    out = out if out is not None else sys.stdout

    def read() -> str | None:
        line = next(source, None)
        return None if line is None else line.rstrip("\r\n")

    out.write("Your ID\n> ")
    client_id = read()
    while client_id is not None and not is_message_valid(client_id):
        out.write("Invalid ID, try again\n> ")
        client_id = read()
    if client_id is None:
        return []
    out.write(f"ID set to '{client_id}'\n\n")

    results: list[str] = []
    client = make_client(client_id)
    try:
        out.write(MENU)
        while (line := read()) is not None:
            command = line.lower()
            if command == "e":
                break
            if command == "g":
                result = client.get()
                results.append(result)
                log_event(
                    client_id, result, getattr(client, "log_path", DEFAULT_LOG_FILE)
                )
            if command == "a":
                out.write("Record to append > ")
                record = read()
                if record is None:
                    break
                if is_message_valid(record):
                    client.add(record)
                else:
                    out.write("Invalid message\n")
            out.write("> " if not command else MENU)
    finally:
        client.close()
    return results


def run_automated(
    make_client: Callable[[str], Any], clients: int = 1, requests: int = 5
) -> dict[str, list[str]]:
    """Run ``clients`` concurrent clients, each doing ``requests`` ADD-then-GET rounds.

    Returns the GET results of every client, keyed by client id.
    """
    if clients < 0 or requests < 0:
        raise ValueError("client and request counts must not be negative")

    def task(index: int) -> tuple[str, list[str]]:
        client = make_client(f"c{index}")
        name = getattr(client, "client_id", f"c{index}")
        log_path = getattr(client, "log_path", DEFAULT_LOG_FILE)
        log_event(name, "Id set", log_path)
        results: list[str] = []
        try:
            for r in range(requests):
                client.add(f"{name}-test-{r}")
                results.append(client.get())
        finally:
            client.close()
        log_event(name, "Done", log_path)
        return name, results

    if clients == 0:
        return {}
    with ThreadPoolExecutor(max_workers=clients) as pool:
        futures = [pool.submit(task, i) for i in range(clients)]
        return dict(future.result() for future in futures)


def _hosts_dir(value: str | None) -> Path:
    return Path(value) if value else Path.cwd().parent


def _load_servers(base: Path, remote: bool) -> list[Node]:
    if remote:
        hosts = get_hosts(base / "hosts", "servers")
        port, threads = get_port_and_threads(base / "config")
        return expand_nodes(hosts, port, threads)
    return parse_port_range_file(base / "hosts")


def _wait_forever() -> None:
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass


def client_main(argv: list[str] | None = None) -> int:
    """Start an interactive or automated G-set client."""
    parser = argparse.ArgumentParser(prog="bftgset-client")
    parser.add_argument("-net", "--net", default="", help="network name")
    parser.add_argument("-auto", "--auto", action="store_true", help="automated run")
    parser.add_argument("-clients", "--clients", type=int, default=1,
                        help="amount of automated clients")
    parser.add_argument("-reqs", "--reqs", type=int, default=5,
                        help="amount of requests")
    parser.add_argument("--remote", action="store_true",
                        help="read sectioned hosts and config files")
    parser.add_argument("--hosts-dir", default=None,
                        help="directory holding the hosts file")
    parser.add_argument("--timeout", type=float, default=None,
                        help="seconds to wait for a quorum of replies")
    args = parser.parse_args(argv)

    reset_log_file()
    try:
        servers = _load_servers(_hosts_dir(args.hosts_dir), args.remote)
    except (OSError, ValueError) as exc:
        print(f"Cannot load configuration: {exc}", file=sys.stderr)
        return 1
    if not servers:
        print("No servers configured", file=sys.stderr)
        return 1

    prefix = f"{_short_hostname()}_" if args.remote else ""
    context = zmq.Context()

    def make_client(client_id: str) -> GSetClient:
        name = client_id if not (args.auto and prefix) else f"{prefix}client_{client_id[1:]}"
        return GSetClient(name, servers, context, timeout=args.timeout)

    try:
        if args.auto:
            run_automated(make_client, args.clients, args.reqs)
        else:
            run_interactive(make_client)
    except TimeoutError as exc:
        print(exc, file=sys.stderr)
        return 1
    finally:
        context.term()
    return 0


def server_main(argv: list[str] | None = None) -> int:
    """Start the replicas of this machine and serve until interrupted."""
    parser = argparse.ArgumentParser(prog="bftgset-server")
    parser.add_argument("behaviour", nargs="?", default="normal",
                        choices=sorted(_BEHAVIOUR_ALIASES))
    parser.add_argument("--remote", action="store_true",
                        help="read sectioned hosts and config files")
    parser.add_argument("--hosts-dir", default=None,
                        help="directory holding the hosts file")
    args = parser.parse_args(argv)

    reset_log_file()
    base = _hosts_dir(args.hosts_dir)
    try:
        if args.remote:
            hosts = get_hosts(base / "hosts", "servers")
            port, threads = get_port_and_threads(base / "config")
            peers = expand_nodes(hosts, port, threads)
            nodes = expand_nodes([_short_hostname()], port, threads)
        else:
            peers = parse_port_range_file(base / "hosts")
            nodes = peers
    except (OSError, ValueError) as exc:
        print(f"Cannot load configuration: {exc}", file=sys.stderr)
        return 1

    context = zmq.Context()
    servers = start_servers(nodes, peers, _BEHAVIOUR_ALIASES[args.behaviour], context)
    _wait_forever()
    for server in servers:
        server.close()
    return 0


def bracha_main(argv: list[str] | None = None) -> int:
    """Run local broadcast-only replicas and broadcast one value through them."""
    parser = argparse.ArgumentParser(prog="bftgset-bracha")
    parser.add_argument("--value", default=None, help="value to broadcast")
    args = parser.parse_args(argv)

    nodes = local_nodes()
    context = zmq.Context()
    servers = [
        ZmqServer(node, nodes, context, broadcast_only=True, log_path=None)
        for node in nodes
    ]
    for server in servers:
        threading.Thread(
            target=server.serve_forever, name=f"bracha-{server.node}", daemon=True
        ).start()

    sender = context.socket(zmq.DEALER)
    sender.setsockopt(zmq.LINGER, 0)
    sender.setsockopt(zmq.IDENTITY, b"DEFAULT_CLIENT")
    target = nodes[0].endpoint()
    sender.connect(target)
    log_event("DEFAULT_CLIENT", f"Established connection with {target}", None)

    time.sleep(1)
    value = args.value
    if value is None:
        try:
            value = input("\nValue to broadcast: ")
        except EOFError:
            value = ""
    sender.send_multipart([Tag.BRACHA_BROADCAST.value.encode(), value.encode("utf-8")])

    _wait_forever()
    sender.close(linger=0)
    for server in servers:
        server.close()
    return 0