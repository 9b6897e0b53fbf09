import random
import socket
import threading
import time

import pytest
import zmq

from bftgset.client import (
    GSetClient,
    add_reply_record,
    choose_targets,
    count_matching_replies,
    find_valid_reply,
)
from bftgset.config import Node
from bftgset.server import ZmqServer


def _free_ports(count):
    sockets = []
    try:
        for _ in range(count):
            s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            s.bind(("127.0.0.1", 0))
            sockets.append(s)
        return [s.getsockname()[1] for s in sockets]
    finally:
        for s in sockets:
            s.close()


def test_choose_targets_picks_distinct_subset():
    servers = ["a", "b", "c", "d", "e"]
    picked = choose_targets(servers, 3, random.Random(7))
    assert len(picked) == 3
    assert len(set(picked)) == 3
    assert set(picked) <= set(servers)


def test_choose_targets_deterministic_with_seed():
    servers = ["a", "b", "c", "d"]
    first = choose_targets(servers, 4, random.Random(3))
    second = choose_targets(servers, 4, random.Random(3))
    assert first == second
    assert sorted(first) == servers


def test_choose_targets_does_not_mutate_input():
    servers = ["a", "b", "c", "d"]
    choose_targets(servers, 2, random.Random(1))
    assert servers == ["a", "b", "c", "d"]


def test_choose_targets_zero():
    assert choose_targets(["a", "b"], 0) == []


def test_choose_targets_too_many_raises():
    with pytest.raises(ValueError):
        choose_targets(["a", "b"], 3)


def test_count_matching_needs_2f_plus_1_replies():
    replies = {"s1": "{x},{y}", "s2": "{x}"}
    assert count_matching_replies(replies, 1) == ""


def test_count_matching_keeps_records_with_f_plus_1_reports():
    replies = {"s1": "{x},{y}", "s2": "{x}", "s3": "{y},{z}"}
    result = count_matching_replies(replies, 1)
    assert set(result.split(" ")) == {"{x}", "{y}"}


def test_count_matching_empty_sets_agree():
    replies = {"s1": "{}", "s2": "{}", "s3": "{x}"}
    assert count_matching_replies(replies, 1) == "{}"


def test_count_matching_single_replica():
    replies = {"s1": "{a},{b}"}
    assert set(count_matching_replies(replies, 0).split(" ")) == {"{a}", "{b}"}


def test_count_matching_no_agreement():
    replies = {"s1": "{a}", "s2": "{b}", "s3": "{c}"}
    assert count_matching_replies(replies, 1) == ""


def test_find_valid_reply_ignores_order():
    replies = {"s1": "{y},{x}", "s2": "{x},{y}", "s3": "{z}"}
    assert find_valid_reply(replies, 1) == "{x} {y}"


def test_find_valid_reply_without_agreement():
    replies = {"s1": "{a}", "s2": "{b}", "s3": "{c}"}
    assert find_valid_reply(replies, 1) == ""


def test_find_valid_reply_needs_enough_replies():
    assert find_valid_reply({"s1": "{a}", "s2": "{a}"}, 1) == ""


def test_add_reply_record_strips_prefix():
    assert add_reply_record("alice.3.rec") == "rec"


def test_add_reply_record_plain():
    assert add_reply_record("rec") == "rec"


def test_add_reply_record_malformed():
    with pytest.raises(ValueError):
        add_reply_record("a.b")


def test_get_times_out_without_servers():
    ports = _free_ports(4)
    nodes = [Node("localhost", p) for p in ports]
    with GSetClient("bob", nodes, timeout=0.2, log_path=None) as client:
        with pytest.raises(TimeoutError):
            client.get()
        assert client.message_counter == 1


def test_closed_client_refuses_requests():
    nodes = [Node("localhost", p) for p in _free_ports(1)]
    client = GSetClient("carol", nodes, log_path=None)
    client.close()
    with pytest.raises(RuntimeError):
        client.get()


def test_empty_client_id_rejected():
    with pytest.raises(ValueError):
        GSetClient("", [Node("localhost", 1)], log_path=None)


@pytest.fixture
def cluster():
    ctx = zmq.Context()
    nodes = [Node("localhost", p) for p in _free_ports(4)]
    servers = [ZmqServer(node, nodes, ctx, log_path=None) for node in nodes]
    threads = [threading.Thread(target=s.serve_forever, daemon=True) for s in servers]
    for t in threads:
        t.start()
    try:
        yield ctx, nodes
    finally:
        for s in servers:
            s.close()
        for t in threads:
            t.join(timeout=5)
        ctx.term()


def test_add_then_get_round_trip(cluster):
    ctx, nodes = cluster
    client = GSetClient(
        "alice", nodes, ctx, timeout=10, rng=random.Random(1), log_path=None
    )
    try:
        client.add("rec1")
        result = ""
        for _ in range(100):
            result = client.get()
            if "{rec1}" in result.split(" "):
                break
            time.sleep(0.05)
        assert "{rec1}" in result.split(" ")
        assert client.message_counter >= 2
    finally:
        client.close()