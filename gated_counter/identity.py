"""
gated_counter.identity: caller identities as opaque bytes.

An identity is whatever uniquely names a caller (typically a 20- or 32-byte
address derived from a public key). The record never interprets identities;
it only compares and hashes them. Helpers here normalize the shapes callers
hand us (raw bytes or hex text) so every layer keys on the same bytes.

Design notes
------------
- Hex strings (with or without "0x") are accepted and normalized to bytes.
- The zero identity is a valid identity; only *empty* input is rejected.
- Identities are capped at MAX_IDENTITY_BYTES to keep storage keys bounded.
"""

from __future__ import annotations

import hashlib
import re
from typing import Union

from .errors import InvalidIdentity

IdentityLike = Union[bytes, bytearray, memoryview, str]

MAX_IDENTITY_BYTES = 64

_HEX_RE = re.compile(r"[0-9a-fA-F]*")

ZERO_IDENTITY: bytes = b"\x00" * 20


def _strip_0x(s: str) -> str:
    return s[2:] if s.startswith(("0x", "0X")) else s


def to_identity(value: IdentityLike) -> bytes:
    """
    Coerce `value` to identity bytes.
    - If str, interpret as hex (with or without '0x'); odd-length hex is rejected.
    - If a bytes-like object, copy to immutable bytes.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        out = bytes(value)
    elif isinstance(value, str):
        h = _strip_0x(value.strip())
        if len(h) % 2 != 0:
            raise InvalidIdentity(
                f"hex identity must have even length, got {len(h)}",
                context={"value": value},
            )
        if not _HEX_RE.fullmatch(h):
            raise InvalidIdentity(f"invalid hex identity: {value!r}", context={"value": value})
        out = bytes.fromhex(h)
    else:
        raise InvalidIdentity(
            f"cannot convert type {type(value).__name__} to an identity",
            context={"py_type": type(value).__name__},
        )

    if len(out) == 0:
        raise InvalidIdentity("identity must be non-empty")
    if len(out) > MAX_IDENTITY_BYTES:
        raise InvalidIdentity(
            f"identity too long (>{MAX_IDENTITY_BYTES} bytes)",
            context={"len": len(out)},
        )
    return out


def to_hex(identity: Union[bytes, bytearray, memoryview]) -> str:
    """Encode identity bytes as 0x-prefixed lowercase hex."""
    return "0x" + bytes(identity).hex()


def derive_identity(tag: str) -> bytes:
    """
    Produce a stable 20-byte identity from a tag.
    Dev tooling and tests only; this is not a key derivation.
    """
    return hashlib.sha3_256(tag.encode("utf-8")).digest()[:20]


__all__ = [
    "IdentityLike",
    "MAX_IDENTITY_BYTES",
    "ZERO_IDENTITY",
    "to_identity",
    "to_hex",
    "derive_identity",
]
