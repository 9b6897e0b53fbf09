"""G-set replicas: message handling, transport over ZeroMQ and server start-up."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence

import zmq

from .broadcast import BrachaState, KeyStyle, initial_broadcast
from .config import Node, Quorum, quorum_for
from .gset import GSet
from .logger import DEFAULT_LOG_FILE, log_event
from .messages import Message, MessageError, Tag, parse_server_message

_POLL_MS = 100


class Behaviour(str, Enum):
    """How a replica reacts to incoming messages."""

    NORMAL = "normal"
    MUTE = "mute"
    MALICIOUS = "malicious"


@dataclass
class Outgoing:
    """Frames to send: to every peer, or back through the receiving socket.

    A reply's first frame is the identity of the party it is routed to.
    """

    frames: list[str] = field(default_factory=list)
    to_peers: bool = False


def _as_text(frames: Iterable[str | bytes]) -> list[str]:
    return [f.decode("utf-8") if isinstance(f, bytes) else f for f in frames]


class Replica:
    """Transport-free state machine of one server.

    ``handle`` turns received frames into the frames the server must send.
    A broadcast-only replica runs the reliable broadcast without a G-set.
    """

    def __init__(
        self,
        node_id: str,
        n: int,
        f: int,
        *,
        behaviour: Behaviour | str = Behaviour.NORMAL,
        broadcast_only: bool = False,
        style: KeyStyle | None = None,
        log_path: str | None = DEFAULT_LOG_FILE,
    ) -> None:
        self.node_id = node_id
        self.behaviour = Behaviour(behaviour)
        self.broadcast_only = broadcast_only
        self.log_path = log_path
        self.gset = GSet()
        if style is None:
            style = KeyStyle.DOTTED if broadcast_only else KeyStyle.BRACED
        self.broadcast = BrachaState(n, f, style)

    def _log(self, event: str) -> None:
        log_event(self.node_id, event, self.log_path)

    def handle(self, frames: Sequence[str | bytes]) -> list[Outgoing]:
        """Process one received message and return what must be sent in reply."""
        text = _as_text(frames)
        if self.behaviour is not Behaviour.NORMAL:
            self._log(f"Received {{{' '.join(text)}}}, no action")
            return []
        try:
            message = parse_server_message(text)
            if self.broadcast_only:
                return self._handle_broadcast_only(message)
            return self._handle_gset(message)
        except ValueError:
            self._log("Error msg: " + " ".join(text))
            return []

    def _handle_broadcast_only(self, message: Message) -> list[Outgoing]:
        self._log(
            f"Received {message.tag} {'.'.join(message.content)} from {message.sender}"
        )
        if message.tag == Tag.BRACHA_BROADCAST:
            return [Outgoing(initial_broadcast(message), to_peers=True)]
        if Tag.BRACHA_BROADCAST.value not in message.tag:
            return []
        out: list[Outgoing] = []
        delivered = self.broadcast.handle(
            message, lambda frames: out.append(Outgoing(frames, to_peers=True))
        )
        if delivered:
            self._log("Delivered value " + message.content[1])
        return out

    def _handle_gset(self, message: Message) -> list[Outgoing]:
        if message.tag == Tag.GET:
            self._log(f"Received {message.tag} from {message.sender}")
            return self._on_get(message)
        self._log(
            f"Received {message.tag} {{{' '.join(message.content)}}} from {message.sender}"
        )
        if message.tag == Tag.ADD:
            return self._on_add(message)
        return self._on_broadcast(message)

    def _reply(self, frames: list[str]) -> Outgoing:
        self._log("sent " + " ".join(frames))
        return Outgoing(frames)

    def _on_get(self, message: Message) -> list[Outgoing]:
        frames = [message.sender, self.node_id, Tag.GET_RESPONSE.value, self.gset.render(False)]
        self._log(f"{Tag.GET_RESPONSE} to {message.sender}")
        return [Outgoing(frames)]

    def _on_add(self, message: Message) -> list[Outgoing]:
        if not message.content:
            raise MessageError("ADD without a record")
        record = f"{message.sender}.{message.content[0]}"
        message.content[0] = record
        if not self.gset.exists(record):
            return [Outgoing(initial_broadcast(message), to_peers=True)]
        return [self._reply([message.sender, self.node_id, Tag.ADD_RESPONSE.value, record])]

    def _on_broadcast(self, message: Message) -> list[Outgoing]:
        if len(message.content) < 2:
            raise MessageError("broadcast message lacks a value")
        client, record = message.content[0], message.content[1]
        response = [client, self.node_id, Tag.ADD_RESPONSE.value, record]

        if self.gset.exists(record):
            return [self._reply(response)]

        out: list[Outgoing] = []
        delivered = self.broadcast.handle(
            message, lambda frames: out.append(Outgoing(frames, to_peers=True))
        )
        if not delivered:
            return out
        if not self.gset.exists(record):
            self.gset.add(record)
            out.append(self._reply(response))
            self._log(f"Appended record {{{record}}}")
        else:
            out.append(self._reply(response))
            self._log(f"Record {{{record}}} already exists")
        return out


class ZmqServer:
    """A replica bound to a ROUTER socket, with a DEALER socket to every peer."""

    def __init__(
        self,
        node: Node,
        peers: Sequence[Node],
        context: zmq.Context | None = None,
        *,
        behaviour: Behaviour | str = Behaviour.NORMAL,
        broadcast_only: bool = False,
        log_path: str | None = DEFAULT_LOG_FILE,
        quorum: Quorum | None = None,
    ) -> None:
        self.node = node
        self.node_id = str(node)
        q = quorum or quorum_for(len(peers))
        self.replica = Replica(
            self.node_id,
            q.n,
            q.f,
            behaviour=behaviour,
            broadcast_only=broadcast_only,
            log_path=log_path,
        )
        self._owns_context = context is None
        self.context = context if context is not None else zmq.Context()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._serving = False
        self._closed = False

        self._router = self.context.socket(zmq.ROUTER)
        self._router.setsockopt(zmq.LINGER, 0)
        self._router.bind(f"tcp://*:{node.port}")
        log_event(self.node_id, f"Bound tcp://*:{node.port}", log_path)

        self._peers: dict[str, zmq.Socket] = {}
        for peer in peers:
            sock = self.context.socket(zmq.DEALER)
            sock.setsockopt(zmq.LINGER, 0)
            sock.setsockopt(zmq.IDENTITY, self.node_id.encode("utf-8"))
            sock.connect(peer.endpoint())
            log_event(self.node_id, f"Connected to {peer}", log_path)
            self._peers[str(peer)] = sock

    def _dispatch(self, outgoing: Iterable[Outgoing]) -> None:
        for out in outgoing:
            encoded = [frame.encode("utf-8") for frame in out.frames]
            if out.to_peers:
                for sock in self._peers.values():
                    sock.send_multipart(encoded)
            else:
                self._router.send_multipart(encoded)

    def serve_forever(self) -> None:
        """Receive and handle messages until ``close`` is called."""
        with self._lock:
            if self._closed:
                raise RuntimeError("server is closed")
            self._serving = True
        poller = zmq.Poller()
        poller.register(self._router, zmq.POLLIN)
        try:
            while not self._stop.is_set():
                if not poller.poll(_POLL_MS):
                    continue
                frames = self._router.recv_multipart()
                self._dispatch(self.replica.handle(frames))
        except zmq.ContextTerminated:
            pass
        finally:
            with self._lock:
                self._serving = False
            self._close_sockets()

    def _close_sockets(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._router.close(linger=0)
        for sock in self._peers.values():
            sock.close(linger=0)
        if self._owns_context:
            self.context.term()

    def close(self) -> None:
        """Stop serving; sockets are released by the serving loop or right away."""
        self._stop.set()
        with self._lock:
            serving = self._serving
        if not serving:
            self._close_sockets()

    def __enter__(self) -> ZmqServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def start_servers(
    nodes: Sequence[Node],
    peers: Sequence[Node],
    behaviour: Behaviour | str = Behaviour.NORMAL,
    context: zmq.Context | None = None,
) -> list[ZmqServer]:
    """Start one serving thread per node, each connected to all ``peers``."""
    kind = Behaviour(behaviour)
    servers: list[ZmqServer] = []
    for node in nodes:
        server = ZmqServer(node, peers, context, behaviour=kind)
        log_event(
            server.node_id,
            f"Started with {kind.name} behaviour",
            server.replica.log_path,
        )
        threading.Thread(
            target=server.serve_forever, name=f"server-{node}", daemon=True
        ).start()
        servers.append(server)
    return servers