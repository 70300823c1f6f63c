from __future__ import annotations

import json

import pytest

from gated_counter.contract import AccessGatedCounter
from gated_counter.identity import to_hex
from gated_counter.state_file import StateFileError, load_state, save_state


def _busy_record(owner, accounts) -> AccessGatedCounter:
    rec = AccessGatedCounter(owner)
    rec.grant_operator(owner, accounts["bob"])
    rec.grant_operator(owner, accounts["carol"])
    rec.revoke_operator(owner, accounts["carol"])
    rec.increment(accounts["bob"])
    rec.increment(owner)
    return rec


def test_snapshot_shape(owner, accounts):
    snap = _busy_record(owner, accounts).snapshot()
    assert snap["version"] == 1
    assert snap["owner"] == to_hex(owner)
    assert snap["counter"] == 2
    assert set(snap["operators"]) == {to_hex(owner), to_hex(accounts["bob"])}
    assert [e["name"] for e in snap["events"]] == [
        "OperatorAdded",
        "OperatorAdded",
        "OperatorRemoved",
        "CounterUpdated",
        "CounterUpdated",
    ]
    json.dumps(snap)  # JSON-safe


def test_from_snapshot_restores_without_emitting(owner, accounts):
    original = _busy_record(owner, accounts)
    restored = AccessGatedCounter.from_snapshot(original.snapshot())

    assert restored.owner == owner
    assert restored.counter == 2
    assert restored.is_operator(accounts["bob"])
    assert not restored.is_operator(accounts["carol"])
    assert list(restored.events) == list(original.events)

    ev = restored.decrement(accounts["bob"])
    assert ev.index == 5
    assert ev.new_value == 1


@pytest.mark.parametrize(
    "patch",
    [
        {"version": 99},
        {"counter": -1},
        {"counter": 1 << 256},
        {"counter": "3"},
    ],
)
def test_from_snapshot_rejects_bad_input(owner, patch):
    snap = AccessGatedCounter(owner).snapshot()
    snap.update(patch)
    with pytest.raises(ValueError):
        AccessGatedCounter.from_snapshot(snap)


def test_save_and_load(tmp_path, owner, accounts):
    path = tmp_path / "nested" / "state.json"
    rec = _busy_record(owner, accounts)

    assert save_state(path, rec) == path
    loaded = load_state(path)

    assert loaded is not None
    assert loaded.snapshot() == rec.snapshot()
    # no temp files left behind
    assert [p.name for p in path.parent.iterdir()] == ["state.json"]


def test_load_missing_returns_none(tmp_path):
    assert load_state(tmp_path / "absent.json") is None


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[]",
        '{"version": 1}',
        '{"version": 1, "owner": "0x01", "events": [1]}',
        '{"version": 1, "owner": "0x01", "events": [{"index": 0, "name": "OperatorAdded", "args": [1]}]}',
    ],
)
def test_load_broken_file(tmp_path, content):
    path = tmp_path / "state.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(StateFileError):
        load_state(path)
