"""
Gated Counter
=============

A single shared counter that only owner-approved operators may mutate, with
an append-only audit log of every change.

This package exposes:

- ``AccessGatedCounter``: the record and its four mutating operations
- the error types (``Unauthorized``, ``Forbidden``, ``Underflow``, ``Overflow``)
- ``build_app()``: convenience creator for the FastAPI service

Prefer importing submodules directly for specific concerns:
``gated_counter.events``, ``gated_counter.storage``, ``gated_counter.config``.
"""

from __future__ import annotations

from .contract import AccessGatedCounter
from .errors import CounterError, Forbidden, InvalidIdentity, Overflow, Unauthorized, Underflow
from .events import Event, EventLog
from .identity import ZERO_IDENTITY, to_hex, to_identity
from .version import __version__

__all__ = [
    "__version__",
    "AccessGatedCounter",
    "CounterError",
    "Unauthorized",
    "Forbidden",
    "Underflow",
    "Overflow",
    "InvalidIdentity",
    "Event",
    "EventLog",
    "ZERO_IDENTITY",
    "to_hex",
    "to_identity",
    "build_app",
]


def build_app():
    """
    Create and return the configured FastAPI application.

    Importing lazily avoids importing FastAPI when consumers only need the
    record itself.
    """
    from .app import create_app

    return create_app()
