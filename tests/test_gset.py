import pytest

from bftgset.gset import GSet, record_key, strip_record


def test_record_key_is_sha512_hex():
    key = record_key("abc")
    assert len(key) == 128
    assert set(key) <= set("0123456789abcdef")
    assert key == record_key("abc")
    assert key != record_key("abd")


def test_strip_record():
    assert strip_record("c1.3.rec") == "rec"
    assert strip_record("plain") == "plain"


def test_strip_record_malformed():
    with pytest.raises(ValueError):
        strip_record("a.b")


def test_empty_render():
    gs = GSet()
    assert gs.render() == "{}"
    assert gs.render(verbose=True) == "{}"
    assert len(gs) == 0


def test_add_and_exists():
    gs = GSet()
    assert gs.exists("rec") is False
    gs.add("rec")
    assert gs.exists("rec") is True
    assert "rec" in gs
    assert "other" not in gs


def test_add_strips_prefix():
    gs = GSet()
    gs.add("c1.3.rec")
    assert gs.exists("rec") is True
    assert gs.exists("c2.9.rec") is True
    assert list(gs) == ["rec"]


def test_add_is_idempotent():
    gs = GSet()
    gs.add("rec")
    gs.add("c0.1.rec")
    assert len(gs) == 1


def test_render_plain():
    gs = GSet()
    gs.add("a")
    gs.add("b")
    assert sorted(gs.render().split(",")) == ["{a}", "{b}"]
    assert str(gs) == gs.render()


def test_render_verbose():
    gs = GSet()
    gs.add("a")
    assert gs.render(verbose=True) == "{key:" + record_key("a") + ", value:a}"


def test_exists_malformed_raises():
    gs = GSet()
    with pytest.raises(ValueError):
        gs.exists("x.y")