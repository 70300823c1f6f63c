"""
gated_counter.contract
======================

The access-gated counter record: one owner, an operator allow-list, and a
shared unsigned counter, with an append-only audit log of every change.

API surface
-----------
- **Construction**
    - ``AccessGatedCounter(creator)``: creator becomes owner and operator;
      counter starts at 0. No event is emitted.

- **Queries** (no authorization)
    - ``owner -> bytes``
    - ``counter -> int``
    - ``is_operator(identity) -> bool`` (absent reads as False)
    - ``operators() -> list[bytes]``

- **Mutations** (each returns the emitted :class:`~gated_counter.events.Event`)
    - ``grant_operator(caller, target)``   owner only, else ``Unauthorized``
    - ``revoke_operator(caller, target)``  owner only, else ``Unauthorized``
    - ``increment(caller)``                operators only, else ``Forbidden``;
      ``Overflow`` at 2**256-1
    - ``decrement(caller)``                operators only, else ``Forbidden``;
      ``Underflow`` at 0

- **Snapshots**
    - ``snapshot()`` / ``from_snapshot(data)``
    - ``restore(data)``: roll back in place to an earlier snapshot of this record

Events
------
- **OperatorAdded**   : {"operator": bytes}
- **OperatorRemoved** : {"operator": bytes}
- **CounterUpdated**  : {"operator": bytes, "newValue": int}

Storage layout
--------------
- Owner:          key = b"counter:owner"                 -> identity bytes
- Counter:        key = b"counter:value"                 -> big-endian uint
- Operator flag:  key = b"counter:operator:" + identity  -> b"\\x01" / b"\\x00"

Every mutation runs check-then-mutate-then-append under one re-entrant lock
owned by the record. A failed call raises before touching storage or the log.
Grant and revoke are idempotent and always emit.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Mapping, Optional

from .errors import Forbidden, InvalidIdentity, Overflow, Unauthorized, Underflow
from .events import COUNTER_UPDATED, OPERATOR_ADDED, OPERATOR_REMOVED, Event, EventLog, Subscriber
from .identity import IdentityLike, to_hex, to_identity
from .logging import get_logger
from .storage import U256_MAX, Storage, StorageBackend

log = get_logger(__name__)

KEY_OWNER = b"counter:owner"
KEY_COUNT = b"counter:value"
OPERATOR_PREFIX = b"counter:operator:"

SNAPSHOT_VERSION = 1


def _key_operator(identity: bytes) -> bytes:
    return OPERATOR_PREFIX + identity


class AccessGatedCounter:
    """Owner-administered allow-list gating writes to a shared counter."""

    def __init__(self, creator: IdentityLike, *, backend: Optional[StorageBackend] = None) -> None:
        owner = to_identity(creator)
        self._attach(Storage(backend), EventLog())
        with self._lock:
            self._storage.set(KEY_OWNER, owner)
            self._storage.set_flag(_key_operator(owner), True)
            self._storage.set_int(KEY_COUNT, 0)
        log.info("record_created", owner=to_hex(owner))

    def _attach(self, storage: Storage, events: EventLog) -> None:
        self._lock = threading.RLock()
        self._storage = storage
        self._events = events

    # ---- queries ------------------------------------------------------------

    @property
    def owner(self) -> bytes:
        with self._lock:
            return self._storage.get(KEY_OWNER)

    @property
    def counter(self) -> int:
        with self._lock:
            return self._storage.get_int(KEY_COUNT) or 0

    def is_operator(self, identity: IdentityLike) -> bool:
        who = to_identity(identity)
        with self._lock:
            return self._storage.get_flag(_key_operator(who))

    def operators(self) -> List[bytes]:
        """Identities currently flagged as operators, in key order."""
        with self._lock:
            return [
                k[len(OPERATOR_PREFIX):]
                for k, v in self._storage.scan(OPERATOR_PREFIX)
                if v == b"\x01"
            ]

    @property
    def events(self) -> EventLog:
        return self._events

    def subscribe(self, callback: Subscriber):
        """Observe every appended event; returns an unsubscribe function."""
        return self._events.subscribe(callback)

    # ---- guards -------------------------------------------------------------

    def _require_owner(self, caller: bytes, op: str) -> None:
        if caller != self._storage.get(KEY_OWNER):
            log.warning("call_rejected", op=op, code="unauthorized", caller=to_hex(caller))
            raise Unauthorized(context={"op": op, "caller": to_hex(caller)})

    def _require_operator(self, caller: bytes, op: str) -> None:
        if not self._storage.get_flag(_key_operator(caller)):
            log.warning("call_rejected", op=op, code="forbidden", caller=to_hex(caller))
            raise Forbidden(context={"op": op, "caller": to_hex(caller)})

    # ---- admin mutations ----------------------------------------------------

    def grant_operator(self, caller: IdentityLike, target: IdentityLike) -> Event:
        caller_b = to_identity(caller)
        target_b = to_identity(target)
        with self._lock:
            self._require_owner(caller_b, "grant_operator")
            self._storage.set_flag(_key_operator(target_b), True)
            ev = self._events.append(OPERATOR_ADDED, {"operator": target_b})
        log.info("operator_added", operator=to_hex(target_b), index=ev.index)
        return ev

    def revoke_operator(self, caller: IdentityLike, target: IdentityLike) -> Event:
        caller_b = to_identity(caller)
        target_b = to_identity(target)
        with self._lock:
            self._require_owner(caller_b, "revoke_operator")
            self._storage.set_flag(_key_operator(target_b), False)
            ev = self._events.append(OPERATOR_REMOVED, {"operator": target_b})
        log.info("operator_removed", operator=to_hex(target_b), index=ev.index)
        return ev

    # ---- counter mutations --------------------------------------------------

    def increment(self, caller: IdentityLike) -> Event:
        caller_b = to_identity(caller)
        with self._lock:
            self._require_operator(caller_b, "increment")
            current = self._storage.get_int(KEY_COUNT) or 0
            if current >= U256_MAX:
                log.warning("call_rejected", op="increment", code="overflow", caller=to_hex(caller_b))
                raise Overflow(context={"value": current})
            new_value = current + 1
            self._storage.set_int(KEY_COUNT, new_value)
            ev = self._events.append(COUNTER_UPDATED, {"operator": caller_b, "newValue": new_value})
        log.info("counter_updated", operator=to_hex(caller_b), value=new_value, index=ev.index)
        return ev

    def decrement(self, caller: IdentityLike) -> Event:
        caller_b = to_identity(caller)
        with self._lock:
            self._require_operator(caller_b, "decrement")
            current = self._storage.get_int(KEY_COUNT) or 0
            if current == 0:
                log.warning("call_rejected", op="decrement", code="underflow", caller=to_hex(caller_b))
                raise Underflow(context={"value": 0})
            new_value = current - 1
            self._storage.set_int(KEY_COUNT, new_value)
            ev = self._events.append(COUNTER_UPDATED, {"operator": caller_b, "newValue": new_value})
        log.info("counter_updated", operator=to_hex(caller_b), value=new_value, index=ev.index)
        return ev

    # ---- snapshots ----------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe view of the whole record, events included."""
        with self._lock:
            return {
                "version": SNAPSHOT_VERSION,
                "owner": to_hex(self.owner),
                "counter": self.counter,
                "operators": [to_hex(o) for o in self.operators()],
                "events": self._events.to_receipts(),
            }

    @classmethod
    def from_snapshot(
        cls, data: Mapping[str, Any], *, backend: Optional[StorageBackend] = None
    ) -> "AccessGatedCounter":
        """Rebuild a record from :meth:`snapshot` output. Emits nothing."""
        version = data.get("version", SNAPSHOT_VERSION)
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version: {version!r}")
        if "owner" not in data:
            raise InvalidIdentity("snapshot has no owner")
        counter = data.get("counter", 0)
        if not isinstance(counter, int) or isinstance(counter, bool) or not 0 <= counter <= U256_MAX:
            raise ValueError(f"snapshot counter out of range: {counter!r}")

        events = EventLog([Event.from_receipt(r) for r in data.get("events", ())])
        obj = cls.__new__(cls)
        obj._attach(Storage(backend), events)
        with obj._lock:
            obj._storage.set(KEY_OWNER, to_identity(data["owner"]))
            for op in data.get("operators", ()):
                obj._storage.set_flag(_key_operator(to_identity(op)), True)
            obj._storage.set_int(KEY_COUNT, counter)
        return obj

    def restore(self, data: Mapping[str, Any]) -> None:
        """
        Put this record back to an earlier :meth:`snapshot` of itself. Keeps
        the storage backend and subscribers; drops events appended since.
        """
        fresh = type(self).from_snapshot(data)
        with self._lock:
            if len(fresh.events) > len(self._events):
                raise ValueError("snapshot is ahead of the record")
            for k, _ in list(self._storage.scan(b"counter:")):
                self._storage.delete(k)
            for k, v in fresh._storage.scan(b"counter:"):
                self._storage.set(k, v)
            self._events.rewind(len(fresh.events))
        log.info("record_restored", counter=self.counter, events=len(self._events))

    def __repr__(self) -> str:
        return f"AccessGatedCounter(owner={to_hex(self.owner)}, counter={self.counter})"


__all__ = [
    "AccessGatedCounter",
    "KEY_OWNER",
    "KEY_COUNT",
    "OPERATOR_PREFIX",
    "SNAPSHOT_VERSION",
]
