from __future__ import annotations

"""
Error hierarchy for the gated counter.

Every failed call raises exactly one :class:`CounterError` subclass and leaves
the record untouched. Errors are structured so they can travel unchanged over
the HTTP surface:

- ``code`` (str): stable machine code (e.g. "forbidden")
- ``message`` (str): human-readable summary
- ``context`` (dict): optional extra fields (caller, target, value, ...)
- ``status_code`` (int): HTTP status used by the service layer

Usage
-----
    from gated_counter.errors import Forbidden

    raise Forbidden(context={"caller": "0x..."})
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


DEFAULT_ERROR_DOCS_BASE = "https://gated-counter.dev/errors"


@dataclass
class CounterError(Exception):
    message: str
    code: str = "counter_error"
    status_code: int = 400
    context: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
        self.context = dict(self.context or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context or {}),
        }

    # --- RFC 7807 helpers -------------------------------------------------- #

    def type_uri(self) -> str:
        return f"{DEFAULT_ERROR_DOCS_BASE}#{self.code}"

    def title(self) -> str:
        return {
            "unauthorized": "Unauthorized",
            "forbidden": "Forbidden",
            "underflow": "Counter Underflow",
            "overflow": "Counter Overflow",
            "invalid_identity": "Invalid Identity",
        }.get(self.code, "Error")

    def to_problem(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "type": self.type_uri(),
            "title": self.title(),
            "status": self.status_code,
            "code": self.code,
            "detail": self.message,
        }
        if self.context:
            body["context"] = dict(self.context)
        return body


# ------------------------------ Concrete types ------------------------------- #


class Unauthorized(CounterError):
    """Caller is not the owner on an admin-only operation."""

    def __init__(self, message: str = "Caller is not the owner", *, context: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, code="unauthorized", status_code=401, context=context)


class Forbidden(CounterError):
    """Caller is not a current operator on a counter operation."""

    def __init__(self, message: str = "Caller is not an operator", *, context: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, code="forbidden", status_code=403, context=context)


class Underflow(CounterError):
    def __init__(self, message: str = "Counter is zero", *, context: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, code="underflow", status_code=409, context=context)


class Overflow(CounterError):
    def __init__(self, message: str = "Counter is at its maximum", *, context: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, code="overflow", status_code=409, context=context)


class InvalidIdentity(CounterError):
    def __init__(self, message: str = "Invalid identity", *, context: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, code="invalid_identity", status_code=400, context=context)


__all__ = [
    "CounterError",
    "Unauthorized",
    "Forbidden",
    "Underflow",
    "Overflow",
    "InvalidIdentity",
]
