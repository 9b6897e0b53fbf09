"""Message tags and the parsing of multipart frames exchanged by clients and servers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class Tag(str, Enum):
    """Tags carried in the second frame of every message."""

    GET = "GET"
    GET_RESPONSE = "GET_RESPONSE"
    ADD = "ADD"
    ADD_RESPONSE = "ADD_RESPONSE"
    ADD_ATOMIC = "ADD_ATOMIC"
    ADD_ATOMIC_RESPONSE = "ADD_ATOMIC_RESPONSE"
    BRACHA_BROADCAST = "BRACHA_BROADCAST"
    BRACHA_BROADCAST_INIT = "BRACHA_BROADCAST_INIT"
    BRACHA_BROADCAST_ECHO = "BRACHA_BROADCAST_ECHO"
    BRACHA_BROADCAST_VOTE = "BRACHA_BROADCAST_VOTE"

    def __str__(self) -> str:
        return self.value


class MessageError(ValueError):
    """Raised when a frame sequence cannot be parsed as a message."""


@dataclass
class Message:
    """A received message: the sender identity, its tag and the remaining frames."""

    sender: str
    tag: str
    content: list[str] = field(default_factory=list)


def create_message(tag: str, content: Iterable[str]) -> list[str]:
    """Frames for a message: the tag followed by its content."""
    return [str(tag), *content]


def _split_header(frames: list[str]) -> tuple[str, str]:
    if not frames:
        raise MessageError("Message is empty")
    if len(frames) < 2:
        raise MessageError("Message has no tag")
    return frames[0], frames[1]


def parse_server_message(frames: list[str]) -> Message:
    """Parse frames arriving at a server: ``GET``, ``ADD`` or a broadcast tag."""
    frames = list(frames)
    sender, tag = _split_header(frames)
    if tag == Tag.GET:
        return Message(sender=sender, tag=tag)
    if tag == Tag.ADD or Tag.BRACHA_BROADCAST.value in tag:
        return Message(sender=sender, tag=tag, content=frames[2:])
    raise MessageError("Error parsing message")


def parse_client_message(frames: list[str]) -> Message:
    """Parse frames arriving at a client: ``GET_RESPONSE`` or ``ADD_RESPONSE``."""
    frames = list(frames)
    sender, tag = _split_header(frames)
    if tag in (Tag.GET_RESPONSE, Tag.ADD_RESPONSE):
        return Message(sender=sender, tag=tag, content=frames[2:])
    raise MessageError("error parsing message")