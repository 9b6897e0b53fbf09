"""G-set client: quorum reads and writes against a set of replicas over ZeroMQ."""

from __future__ import annotations

import random
import time
from collections import Counter
from collections.abc import Iterator, Mapping, Sequence

import zmq

from .config import Node, Quorum, quorum_for
from .gset import strip_record
from .logger import DEFAULT_LOG_FILE, log_event
from .messages import Tag


def choose_targets(
    servers: Sequence[str], amount: int, rng: random.Random | None = None
) -> list[str]:
    """Pick ``amount`` distinct servers at random."""
    if amount < 0:
        raise ValueError(f"negative target count: {amount}")
    if amount > len(servers):
        raise ValueError(f"cannot pick {amount} targets out of {len(servers)} servers")
    shuffled = list(servers)
    (rng or random.Random()).shuffle(shuffled)
    return shuffled[:amount]


def count_matching_replies(replies: Mapping[str, str], f: int) -> str:
    """Records reported by at least f+1 of at least 2f+1 replies, space separated.

    Returns an empty string while fewer than 2f+1 replies have arrived or no
    record reaches f+1 reports.
    """
    if len(replies) < 2 * f + 1:
        return ""
    counts: Counter[str] = Counter()
    for reply in replies.values():
        counts.update(reply.split(","))
    return " ".join(record for record, count in counts.items() if count >= f + 1)


def find_valid_reply(replies: Mapping[str, str], f: int) -> str:
    """The most common whole reply, if at least f+1 of at least 2f+1 replies agree.

    Replies are compared as sorted, space-separated record lists; an empty
    string means no reply is valid yet.
    """
    if len(replies) < 2 * f + 1:
        return ""
    normalised = (" ".join(sorted(reply.split(","))) for reply in replies.values())
    histogram = Counter(normalised)
    best, count = histogram.most_common(1)[0]
    return best if count >= f + 1 else ""


def add_reply_record(payload: str) -> str:
    """The bare record of an ADD reply, dropping a ``sender.counter.`` prefix."""
    return strip_record(payload)


class GSetClient:
    """A client holding one DEALER socket per server, all with the client's identity."""

    def __init__(
        self,
        client_id: str,
        servers: Sequence[Node],
        context: zmq.Context | None = None,
        *,
        quorum: Quorum | None = None,
        rng: random.Random | None = None,
        timeout: float | None = None,
        log_path: str | None = DEFAULT_LOG_FILE,
    ) -> None:
        if not client_id:
            raise ValueError("client id must not be empty")
        self.client_id = client_id
        self.quorum = quorum or quorum_for(len(servers))
        self.rng = rng or random.Random()
        self.timeout = timeout
        self.log_path = log_path
        self.message_counter = 0
        self._owns_context = context is None
        self.context = context if context is not None else zmq.Context()
        self._poller = zmq.Poller()
        self._closed = False
        self.servers: dict[str, zmq.Socket] = {}

        identity = client_id.encode("utf-8")
        for node in servers:
            endpoint = node.endpoint()
            if endpoint in self.servers:
                continue
            sock = self.context.socket(zmq.DEALER)
            sock.setsockopt(zmq.LINGER, 0)
            sock.setsockopt(zmq.IDENTITY, identity)
            sock.connect(endpoint)
            self._log(f"Established connection with {endpoint}")
            self.servers[endpoint] = sock
            self._poller.register(sock, zmq.POLLIN)

    def _log(self, event: str) -> None:
        log_event(self.client_id, event, self.log_path)

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("client is closed")

    def _send(self, frames: list[str], amount: int) -> None:
        encoded = [frame.encode("utf-8") for frame in frames]
        for endpoint in choose_targets(list(self.servers), amount, self.rng):
            self.servers[endpoint].send_multipart(encoded)

    def _incoming(self) -> Iterator[list[str]]:
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        while True:
            if deadline is None:
                wait = None
            else:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"no quorum of replies within {self.timeout}s")
                wait = max(1, int(remaining * 1000))
            for sock, _ in self._poller.poll(wait):
                frames = sock.recv_multipart()
                yield [frame.decode("utf-8", "replace") for frame in frames]

    def get(self) -> str:
        """Read the set: the records that f+1 of 2f+1 replicas agree on."""
        self._check_open()
        self._log("Called GET")
        self.message_counter += 1
        start = time.perf_counter()
        self._send([Tag.GET.value, str(self.message_counter)], self.quorum.high)

        replies: dict[str, str] = {}
        self._log("Waiting for valid GET_REPLY")
        for frames in self._incoming():
            if len(frames) >= 3 and frames[1] == Tag.GET_RESPONSE:
                replies[frames[0]] = frames[2]
            result = count_matching_replies(replies, self.quorum.f)
            if result:
                elapsed = time.perf_counter() - start
                self._log(f"GET completed in: {elapsed:.6f}s")
                return result
        raise AssertionError("unreachable")

    def add(self, record: str) -> None:
        """Append a record; returns once f+1 replicas confirm it."""
        self._check_open()
        self.message_counter += 1
        self._log(f"Called ADD({record})")
        payload = f"{self.message_counter}.{record}"
        start = time.perf_counter()
        self._send([Tag.ADD.value, payload], self.quorum.medium)

        confirmed: set[str] = set()
        self._log("Waiting for f+1 ADD replies")
        for frames in self._incoming():
            if len(frames) >= 3 and frames[1] == Tag.ADD_RESPONSE:
                try:
                    replied = add_reply_record(frames[2])
                except ValueError:
                    self._log("Ignored malformed reply: " + " ".join(frames))
                    replied = None
                if replied == record:
                    confirmed.add(frames[0])
            if len(confirmed) >= self.quorum.low:
                elapsed = time.perf_counter() - start
                self._log(
                    f"ADD completed in: {elapsed:.6f}s. Record {{{record}}} appended"
                )
                return

    def close(self) -> None:
        """Close all sockets, and the context if the client created it."""
        if self._closed:
            return
        self._closed = True
        for sock in self.servers.values():
            self._poller.unregister(sock)
            sock.close(linger=0)
        if self._owns_context:
            self.context.term()

    def __enter__(self) -> GSetClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()