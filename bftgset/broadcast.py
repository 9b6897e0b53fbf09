"""Bracha reliable broadcast: per-value echo and vote bookkeeping."""

from __future__ import annotations

from enum import Enum
from typing import Callable

from .messages import Message, MessageError, Tag, create_message

SendToAll = Callable[[list[str]], None]


class KeyStyle(Enum):
    """How peer acknowledgements are keyed and matched to a value.

    ``BRACED`` keys acknowledgements as ``sender{value}``, matches on ``{value}``
    and forgets a sender's acknowledgements once the value is delivered.
    ``DOTTED`` keys them as ``sender.value``, matches any key containing the
    value and never forgets.
    """

    BRACED = "braced"
    DOTTED = "dotted"


def initial_broadcast(message: Message) -> list[str]:
    """Frames a leader sends to all peers to start broadcasting a message."""
    return create_message(Tag.BRACHA_BROADCAST_INIT, [message.sender, *message.content])


class BrachaState:
    """Reliable-broadcast state of one replica among ``n`` tolerating ``f`` faults."""

    def __init__(self, n: int, f: int, style: KeyStyle = KeyStyle.BRACED) -> None:
        self.n = n
        self.f = f
        self.style = style
        self._initiated: set[str] = set()
        self._echo_pending: set[str] = set()
        self._vote_pending: set[str] = set()
        self._echoes: set[str] = set()
        self._votes: set[str] = set()

    def _peer_key(self, sender: str, value: str) -> str:
        if self.style is KeyStyle.BRACED:
            return f"{sender}{{{value}}}"
        return f"{sender}.{value}"

    def _matches(self, key: str, value: str) -> bool:
        if self.style is KeyStyle.BRACED:
            return f"{{{value}}}" in key
        return value in key

    def counts(self, value: str) -> tuple[int, int]:
        """Number of distinct echoes and votes recorded for a value."""
        echoes = sum(1 for key in self._echoes if self._matches(key, value))
        votes = sum(1 for key in self._votes if self._matches(key, value))
        return echoes, votes

    def _send_vote(self, value: str, content: list[str], send_to_all: SendToAll) -> None:
        if value in self._vote_pending:
            send_to_all(create_message(Tag.BRACHA_BROADCAST_VOTE, content))
            self._vote_pending.discard(value)

    def _cleanup(self, peer_key: str) -> None:
        self._echoes = {key for key in self._echoes if peer_key not in key}
        for key in self._votes:
            if peer_key in key:
                self._vote_pending.discard(key)

    def handle(self, message: Message, send_to_all: SendToAll) -> bool:
        """Process an INIT, ECHO or VOTE message; True once the value is delivered."""
        if len(message.content) < 2:
            raise MessageError(f"broadcast message lacks a value: {message.content!r}")
        value = message.content[1]
        content = list(message.content)
        peer_key = self._peer_key(message.sender, value)
        tag = message.tag

        if tag == Tag.BRACHA_BROADCAST_INIT:
            if value not in self._initiated:
                self._initiated.add(value)
                self._echo_pending.add(value)
                self._vote_pending.add(value)
            if value in self._echo_pending:
                send_to_all(create_message(Tag.BRACHA_BROADCAST_ECHO, content))
                self._echo_pending.discard(value)

        if tag == Tag.BRACHA_BROADCAST_ECHO:
            self._echoes.add(peer_key)
        if tag == Tag.BRACHA_BROADCAST_VOTE:
            self._votes.add(peer_key)

        echo_count, vote_count = self.counts(value)

        if tag == Tag.BRACHA_BROADCAST_ECHO and echo_count >= self.n - self.f:
            self._send_vote(value, content, send_to_all)

        if tag == Tag.BRACHA_BROADCAST_VOTE and vote_count >= self.f + 1:
            self._send_vote(value, content, send_to_all)

        if tag == Tag.BRACHA_BROADCAST_VOTE and vote_count >= self.n - self.f:
            if self.style is KeyStyle.BRACED:
                self._cleanup(peer_key)
            return True

        return False