from collections import deque

import pytest

from bftgset.broadcast import BrachaState, KeyStyle, initial_broadcast
from bftgset.messages import Message, MessageError, Tag


def _collector():
    sent = []
    return sent, sent.append


def test_initial_broadcast_frames():
    msg = Message("c1", "ADD", ["c1.1.rec"])
    assert initial_broadcast(msg) == ["BRACHA_BROADCAST_INIT", "c1", "c1.1.rec"]


def test_init_sends_echo_once():
    state = BrachaState(4, 1)
    sent, send = _collector()
    init = Message("s0", Tag.BRACHA_BROADCAST_INIT.value, ["c1", "v"])
    assert state.handle(init, send) is False
    assert state.handle(init, send) is False
    assert sent == [["BRACHA_BROADCAST_ECHO", "c1", "v"]]


def test_echo_quorum_triggers_single_vote():
    state = BrachaState(4, 1)
    sent, send = _collector()
    state.handle(Message("s0", Tag.BRACHA_BROADCAST_INIT.value, ["c1", "v"]), send)
    sent.clear()
    for peer in ("s0", "s1"):
        state.handle(Message(peer, Tag.BRACHA_BROADCAST_ECHO.value, ["c1", "v"]), send)
    assert sent == []
    for peer in ("s2", "s3"):
        state.handle(Message(peer, Tag.BRACHA_BROADCAST_ECHO.value, ["c1", "v"]), send)
    assert sent == [["BRACHA_BROADCAST_VOTE", "c1", "v"]]
    assert state.counts("v") == (4, 0)


def test_duplicate_echoes_count_once():
    state = BrachaState(4, 1)
    sent, send = _collector()
    for _ in range(3):
        state.handle(Message("s1", Tag.BRACHA_BROADCAST_ECHO.value, ["c1", "v"]), send)
    assert state.counts("v") == (1, 0)


def test_vote_amplification_after_f_plus_one_votes():
    state = BrachaState(4, 1)
    sent, send = _collector()
    state.handle(Message("s0", Tag.BRACHA_BROADCAST_INIT.value, ["c1", "v"]), send)
    sent.clear()
    first = state.handle(Message("s1", Tag.BRACHA_BROADCAST_VOTE.value, ["c1", "v"]), send)
    assert first is False
    assert sent == []
    second = state.handle(Message("s2", Tag.BRACHA_BROADCAST_VOTE.value, ["c1", "v"]), send)
    assert second is False
    assert sent == [["BRACHA_BROADCAST_VOTE", "c1", "v"]]
    assert state.counts("v") == (0, 2)


def test_votes_without_init_do_not_send():
    state = BrachaState(4, 1)
    sent, send = _collector()
    results = [
        state.handle(Message(peer, Tag.BRACHA_BROADCAST_VOTE.value, ["c1", "v"]), send)
        for peer in ("s1", "s2")
    ]
    assert results == [False, False]
    assert state.counts("v") == (0, 2)
    assert sent == []


def test_delivery_after_n_minus_f_votes():
    state = BrachaState(4, 1)
    _, send = _collector()
    results = [
        state.handle(Message(peer, Tag.BRACHA_BROADCAST_VOTE.value, ["c1", "v"]), send)
        for peer in ("s1", "s2", "s3")
    ]
    assert results == [False, False, True]


def test_counts_separate_values_in_braced_style():
    state = BrachaState(4, 1)
    _, send = _collector()
    state.handle(Message("s1", Tag.BRACHA_BROADCAST_ECHO.value, ["c1", "ab"]), send)
    state.handle(Message("s1", Tag.BRACHA_BROADCAST_ECHO.value, ["c1", "a"]), send)
    assert state.counts("a") == (1, 0)
    assert state.counts("ab") == (1, 0)


def test_dotted_style_matches_substrings():
    state = BrachaState(4, 1, KeyStyle.DOTTED)
    _, send = _collector()
    state.handle(Message("s1", Tag.BRACHA_BROADCAST_ECHO.value, ["c1", "ab"]), send)
    state.handle(Message("s2", Tag.BRACHA_BROADCAST_ECHO.value, ["c1", "a"]), send)
    assert state.counts("a") == (2, 0)
    assert state.counts("ab") == (1, 0)


def test_short_content_raises():
    state = BrachaState(4, 1)
    with pytest.raises(MessageError):
        state.handle(Message("s1", Tag.BRACHA_BROADCAST_ECHO.value, ["only"]), lambda f: None)


@pytest.mark.parametrize("style", list(KeyStyle))
def test_four_replicas_all_deliver(style):
    ids = [f"s{i}" for i in range(4)]
    states = {i: BrachaState(4, 1, style) for i in ids}
    queue = deque()
    delivered = set()

    def sender(src):
        def send(frames):
            for dst in ids:
                queue.append((dst, Message(src, frames[0], frames[1:])))
        return send

    leader_frames = initial_broadcast(Message("c1", "ADD", ["c1.1.rec"]))
    sender("s0")(leader_frames)
    while queue:
        dst, msg = queue.popleft()
        if states[dst].handle(msg, sender(dst)):
            delivered.add(dst)
    assert delivered == set(ids)