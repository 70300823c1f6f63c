from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Sequence

from .identity import to_hex, to_identity
from .logging import get_logger

log = get_logger(__name__)

OPERATOR_ADDED = "OperatorAdded"
OPERATOR_REMOVED = "OperatorRemoved"
COUNTER_UPDATED = "CounterUpdated"

EVENT_NAMES = (OPERATOR_ADDED, OPERATOR_REMOVED, COUNTER_UPDATED)

MAX_KEY_LEN = 64
MAX_BYTES_LEN = 4096
MAX_INT_BITS = 256

# Keys must be identifier-like: letters/underscore, then letters/digits/underscore.
_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ArgValue = Any  # bytes | int | bool, checked on append

Subscriber = Callable[["Event"], None]


class EventError(ValueError):
    """Malformed event handed to the log."""


@dataclass(frozen=True)
class Event:
    """One immutable audit record. ``index`` is its position in the log."""

    index: int
    name: str
    args: Mapping[str, ArgValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # read-only view over a private copy
        object.__setattr__(self, "args", MappingProxyType(dict(self.args)))

    @property
    def operator(self) -> bytes:
        return self.args["operator"]

    @property
    def new_value(self) -> int:
        return self.args["newValue"]

    def to_receipt(self) -> Dict[str, Any]:
        """
        Canonical JSON-safe form:

            {"index": 3, "name": "CounterUpdated",
             "args": [{"k": "operator", "t": "b", "v": "0x.."},
                      {"k": "newValue", "t": "i", "v": 7}]}

        t="b" => bytes as 0x hex, t="i" => integer, t="z" => boolean
        """
        enc_args: List[Dict[str, Any]] = []
        for k, v in self.args.items():
            if isinstance(v, (bytes, bytearray)):
                enc_args.append({"k": k, "t": "b", "v": to_hex(v)})
            elif isinstance(v, bool):
                enc_args.append({"k": k, "t": "z", "v": v})
            else:
                enc_args.append({"k": k, "t": "i", "v": int(v)})
        return {"index": self.index, "name": self.name, "args": enc_args}

    @classmethod
    def from_receipt(cls, d: Mapping[str, Any]) -> "Event":
        if not isinstance(d, Mapping):
            raise EventError(f"receipt must be an object, got {type(d).__name__}")
        args: Dict[str, ArgValue] = {}
        for item in d.get("args", ()):
            if not isinstance(item, Mapping):
                raise EventError(f"receipt arg must be an object, got {type(item).__name__}")
            t = item.get("t")
            if t == "b":
                args[item["k"]] = to_identity(item["v"])
            elif t == "z":
                args[item["k"]] = bool(item["v"])
            elif t == "i":
                args[item["k"]] = int(item["v"])
            else:
                raise EventError(f"unknown receipt arg type: {t!r}")
        return cls(index=int(d["index"]), name=str(d["name"]), args=args)


def _check_name(name: Any) -> str:
    if name not in EVENT_NAMES:
        raise EventError(f"unknown event name: {name!r}")
    return name


def _check_key(key: Any) -> str:
    if not isinstance(key, str) or not key:
        raise EventError("event key must be a non-empty str")
    if len(key) > MAX_KEY_LEN:
        raise EventError("event key too long")
    if not _KEY_RE.match(key):
        raise EventError(f"event key has invalid characters: {key!r}")
    return key


def _check_value(value: Any) -> ArgValue:
    if isinstance(value, (bytes, bytearray)):
        b = bytes(value)
        if len(b) > MAX_BYTES_LEN:
            raise EventError("event bytes arg too long")
        return b
    if isinstance(value, bool):
        # bool is a subclass of int, so check it before int.
        return value
    if isinstance(value, int):
        if value.bit_length() > MAX_INT_BITS:
            raise EventError("event int arg out of range")
        return int(value)
    raise EventError(f"unsupported event arg type: {type(value).__name__}")


class EventLog:
    """
    Append-only, ordered audit log with subscriber fan-out.

    Subscribers are called synchronously, in append order, right after the
    record is stored. They observe; they never influence the caller: a raising
    subscriber is logged and skipped.
    """

    def __init__(self, events: Sequence[Event] = ()) -> None:
        self._lock = threading.RLock()
        self._events: List[Event] = []
        self._subscribers: List[Subscriber] = []
        for i, ev in enumerate(events):
            if ev.index != i:
                raise EventError(f"event index gap: expected {i}, got {ev.index}")
            self._events.append(ev)

    def append(self, name: str, args: Mapping[str, Any]) -> Event:
        checked = {_check_key(k): _check_value(v) for k, v in args.items()}
        with self._lock:
            ev = Event(index=len(self._events), name=_check_name(name), args=checked)
            self._events.append(ev)
            subscribers = tuple(self._subscribers)
            for cb in subscribers:
                try:
                    cb(ev)
                except Exception:
                    log.exception("subscriber_failed", event_name=ev.name, index=ev.index)
        return ev

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register `callback`; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def rewind(self, length: int) -> None:
        """
        Drop every event at index >= `length`. Only for undoing a call whose
        effects were rolled back; subscribers are not told.
        """
        with self._lock:
            if not 0 <= length <= len(self._events):
                raise EventError(f"cannot rewind to {length}, log has {len(self._events)} events")
            del self._events[length:]

    def since(self, index: int = 0) -> List[Event]:
        with self._lock:
            return list(self._events[max(0, index):])

    def to_receipts(self) -> List[Dict[str, Any]]:
        return [ev.to_receipt() for ev in self.since(0)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        # Stable snapshot
        return iter(self.since(0))


__all__ = [
    "OPERATOR_ADDED",
    "OPERATOR_REMOVED",
    "COUNTER_UPDATED",
    "EVENT_NAMES",
    "Event",
    "EventError",
    "EventLog",
    "Subscriber",
]
