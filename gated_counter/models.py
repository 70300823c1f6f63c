from __future__ import annotations

"""
API models for the HTTP surface.

Identities travel as 0x-prefixed lowercase hex; counter values as plain
integers (JSON numbers are arbitrary precision for our purposes, and Python
serializes big ints exactly).
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field

from .events import Event
from .identity import to_hex


class OwnerOut(BaseModel):
    owner: str = Field(..., description="Owner identity (0x hex)")


class CounterOut(BaseModel):
    counter: int = Field(..., ge=0)


class OperatorOut(BaseModel):
    identity: str
    isOperator: bool


class EventOut(BaseModel):
    index: int = Field(..., ge=0)
    name: str
    args: Dict[str, Any]

    @classmethod
    def from_event(cls, ev: Event) -> "EventOut":
        args: Dict[str, Any] = {}
        for k, v in ev.args.items():
            args[k] = to_hex(v) if isinstance(v, (bytes, bytearray)) else v
        return cls(index=ev.index, name=ev.name, args=args)


class EventsOut(BaseModel):
    events: List[EventOut]
    next: int = Field(..., ge=0, description="Index to pass as `since` to poll for newer events")


__all__ = ["OwnerOut", "CounterOut", "OperatorOut", "EventOut", "EventsOut"]
