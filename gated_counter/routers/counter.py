from __future__ import annotations

"""
Record routes.

Reads are public. Mutations take the caller identity from the configured
header (``X-Caller`` by default) as hex; a missing or malformed header is a
400 ``invalid_identity``. Authorization itself is decided by the record, so a
wrong caller surfaces as the record's own 401/403.
"""

from typing import Callable

from fastapi import APIRouter, Depends, Query, Request

from ..contract import AccessGatedCounter
from ..errors import InvalidIdentity
from ..events import Event
from ..identity import to_hex, to_identity
from ..logging import get_logger
from ..models import CounterOut, EventOut, EventsOut, OperatorOut, OwnerOut
from ..state_file import save_state

log = get_logger(__name__)

router = APIRouter(tags=["counter"])


def get_record(request: Request) -> AccessGatedCounter:
    return request.app.state.record


def get_caller(request: Request) -> bytes:
    header = request.app.state.settings.caller_header
    raw = request.headers.get(header)
    if not raw:
        raise InvalidIdentity(f"missing {header} header", context={"header": header})
    return to_identity(raw)


def _apply(request: Request, op: Callable[[], Event]) -> EventOut:
    """
    Run one mutation and, when persistence is on, save before answering.
    A failed save puts the record back to its state before the call.
    """
    settings = request.app.state.settings
    with request.app.state.write_lock:
        if not settings.persist:
            return EventOut.from_event(op())
        record = request.app.state.record
        before = record.snapshot()
        ev = op()
        try:
            save_state(settings.state_path, record)
        except Exception:
            log.exception("persist_failed", path=str(settings.state_path), index=ev.index)
            record.restore(before)
            raise
    return EventOut.from_event(ev)


# ---- reads ------------------------------------------------------------------


@router.get("/owner", response_model=OwnerOut)
def read_owner(record: AccessGatedCounter = Depends(get_record)) -> OwnerOut:
    return OwnerOut(owner=to_hex(record.owner))


@router.get("/counter", response_model=CounterOut)
def read_counter(record: AccessGatedCounter = Depends(get_record)) -> CounterOut:
    return CounterOut(counter=record.counter)


@router.get("/operators/{identity}", response_model=OperatorOut)
def read_operator(identity: str, record: AccessGatedCounter = Depends(get_record)) -> OperatorOut:
    who = to_identity(identity)
    return OperatorOut(identity=to_hex(who), isOperator=record.is_operator(who))


@router.get("/events", response_model=EventsOut)
def read_events(
    since: int = Query(0, ge=0, description="Return events with index >= since"),
    record: AccessGatedCounter = Depends(get_record),
) -> EventsOut:
    events = record.events.since(since)
    nxt = events[-1].index + 1 if events else max(since, len(record.events))
    return EventsOut(events=[EventOut.from_event(ev) for ev in events], next=nxt)


# ---- mutations --------------------------------------------------------------


@router.post("/operators/{identity}", response_model=EventOut)
def grant_operator(
    identity: str,
    request: Request,
    caller: bytes = Depends(get_caller),
    record: AccessGatedCounter = Depends(get_record),
) -> EventOut:
    target = to_identity(identity)
    return _apply(request, lambda: record.grant_operator(caller, target))


@router.delete("/operators/{identity}", response_model=EventOut)
def revoke_operator(
    identity: str,
    request: Request,
    caller: bytes = Depends(get_caller),
    record: AccessGatedCounter = Depends(get_record),
) -> EventOut:
    target = to_identity(identity)
    return _apply(request, lambda: record.revoke_operator(caller, target))


@router.post("/counter/increment", response_model=EventOut)
def increment(
    request: Request,
    caller: bytes = Depends(get_caller),
    record: AccessGatedCounter = Depends(get_record),
) -> EventOut:
    return _apply(request, lambda: record.increment(caller))


@router.post("/counter/decrement", response_model=EventOut)
def decrement(
    request: Request,
    caller: bytes = Depends(get_caller),
    record: AccessGatedCounter = Depends(get_record),
) -> EventOut:
    return _apply(request, lambda: record.decrement(caller))


__all__ = ["router", "get_record", "get_caller"]
