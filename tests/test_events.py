from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from gated_counter.events import (
    COUNTER_UPDATED,
    OPERATOR_ADDED,
    Event,
    EventError,
    EventLog,
)


def test_append_assigns_sequential_indices():
    log = EventLog()
    a = log.append(OPERATOR_ADDED, {"operator": b"\x01" * 20})
    b = log.append(COUNTER_UPDATED, {"operator": b"\x01" * 20, "newValue": 1})
    assert (a.index, b.index) == (0, 1)
    assert len(log) == 2
    assert log.since(1) == [b]
    assert log.since(5) == []


def test_events_are_immutable():
    ev = EventLog().append(OPERATOR_ADDED, {"operator": b"\x01"})
    with pytest.raises(Exception):
        ev.name = "Other"  # type: ignore[misc]
    with pytest.raises(TypeError):
        ev.args["operator"] = b"\x02"  # type: ignore[index]
    assert ev.operator == b"\x01"


def test_event_args_are_copied():
    args = {"operator": b"\x01", "newValue": 1}
    ev = Event(index=0, name=COUNTER_UPDATED, args=args)
    args["newValue"] = 99
    assert ev.new_value == 1
    assert ev.to_receipt()["args"][1] == {"k": "newValue", "t": "i", "v": 1}


@pytest.mark.parametrize(
    "name,args",
    [
        ("Unknown", {"operator": b"\x01"}),
        (OPERATOR_ADDED, {"bad-key": b"\x01"}),
        (OPERATOR_ADDED, {"": b"\x01"}),
        (OPERATOR_ADDED, {"operator": 1.5}),
        (COUNTER_UPDATED, {"operator": b"\x01", "newValue": 1 << 256}),
    ],
)
def test_append_rejects_malformed(name, args):
    log = EventLog()
    with pytest.raises(EventError):
        log.append(name, args)
    assert len(log) == 0


def test_subscribers_see_events_in_order():
    log = EventLog()
    seen = []
    unsubscribe = log.subscribe(seen.append)

    log.append(OPERATOR_ADDED, {"operator": b"\x01"})
    log.append(OPERATOR_ADDED, {"operator": b"\x02"})
    unsubscribe()
    log.append(OPERATOR_ADDED, {"operator": b"\x03"})

    assert [e.operator for e in seen] == [b"\x01", b"\x02"]


def test_failing_subscriber_does_not_break_append():
    log = EventLog()
    seen = []

    def boom(_ev):
        raise RuntimeError("indexer down")

    log.subscribe(boom)
    log.subscribe(seen.append)

    ev = log.append(OPERATOR_ADDED, {"operator": b"\x01"})
    assert len(log) == 1
    assert seen == [ev]


def test_receipt_form():
    ev = Event(index=3, name=COUNTER_UPDATED, args={"operator": b"\xab\xcd", "newValue": 7})
    r = ev.to_receipt()
    assert r == {
        "index": 3,
        "name": COUNTER_UPDATED,
        "args": [
            {"k": "operator", "t": "b", "v": "0xabcd"},
            {"k": "newValue", "t": "i", "v": 7},
        ],
    }
    assert Event.from_receipt(r) == ev


def test_log_rejects_index_gaps():
    with pytest.raises(EventError):
        EventLog([Event(index=1, name=OPERATOR_ADDED, args={"operator": b"\x01"})])


def test_from_receipt_rejects_unknown_type():
    with pytest.raises(EventError):
        Event.from_receipt({"index": 0, "name": OPERATOR_ADDED, "args": [{"k": "x", "t": "f", "v": 1.0}]})


def test_failing_subscriber_is_logged():
    log = EventLog()

    def boom(_ev):
        raise RuntimeError("indexer down")

    log.subscribe(boom)
    with capture_logs() as logs:
        ev = log.append(OPERATOR_ADDED, {"operator": b"\x01"})

    failed = [e for e in logs if e["event"] == "subscriber_failed"]
    assert failed and failed[0]["event_name"] == OPERATOR_ADDED
    assert failed[0]["index"] == ev.index


@pytest.mark.parametrize(
    "receipt",
    [
        1,
        [],
        {"index": 0, "name": OPERATOR_ADDED, "args": [1]},
        {"index": 0, "name": OPERATOR_ADDED, "args": [{"k": "operator", "t": "x", "v": 1}]},
    ],
)
def test_from_receipt_rejects_malformed(receipt):
    with pytest.raises(EventError):
        Event.from_receipt(receipt)


def test_rewind_drops_tail_only():
    log = EventLog()
    seen = []
    log.subscribe(seen.append)
    first = log.append(OPERATOR_ADDED, {"operator": b"\x01"})
    log.append(OPERATOR_ADDED, {"operator": b"\x02"})

    log.rewind(1)
    assert list(log) == [first]

    again = log.append(OPERATOR_ADDED, {"operator": b"\x03"})
    assert again.index == 1
    assert len(seen) == 3

    with pytest.raises(EventError):
        log.rewind(5)
