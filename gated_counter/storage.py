"""
gated_counter.storage: deterministic key/value storage for the record.

Design goals
------------
- Deterministic: pure functions over (key, value) with no wall-clock or I/O.
- Simple default: in-process memory backend for local runs & tests.
- Pluggable: a tiny backend interface so a host can swap in a real state DB.
- Safe: strict byte-length caps; typed helpers for common int <-> bytes use.

Public API
----------
- Storage(backend=None)
    .get(key) / .set(key, value) / .delete(key) / .exists(key)
    .get_int(key) / .set_int(key, value)     # big-endian, unsigned, <= 2^256-1
    .get_flag(key) / .set_flag(key, on)      # absent reads as False
"""

from __future__ import annotations

import threading
from typing import Dict, Iterator, Optional, Protocol, Tuple, runtime_checkable

MAX_STORAGE_KEY_BYTES = 128
MAX_STORAGE_VALUE_BYTES = 4096

U256_MAX = (1 << 256) - 1

_FLAG_ON = b"\x01"
_FLAG_OFF = b"\x00"


class StorageError(Exception):
    """Malformed key/value handed to the storage layer."""


# ---------------------------- Backend API ---------------------------- #


@runtime_checkable
class StorageBackend(Protocol):
    """Minimal backend interface for record storage."""

    def get(self, key: bytes) -> Optional[bytes]: ...
    def set(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def exists(self, key: bytes) -> bool: ...
    def items(self) -> Iterator[Tuple[bytes, bytes]]: ...


class MemoryBackend:
    """Thread-safe in-memory backend for local runs and tests."""

    def __init__(self) -> None:
        self._store: Dict[bytes, bytes] = {}
        self._lock = threading.RLock()

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._store.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._store[key] = value

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._store.pop(key, None)

    def exists(self, key: bytes) -> bool:
        with self._lock:
            return key in self._store

    def items(self) -> Iterator[Tuple[bytes, bytes]]:
        with self._lock:
            snapshot = sorted(self._store.items())
        return iter(snapshot)


# --------------------------- Validation helpers --------------------------- #


def _check_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)):
        raise StorageError("storage key must be bytes")
    if len(key) == 0:
        raise StorageError("storage key must be non-empty")
    if len(key) > MAX_STORAGE_KEY_BYTES:
        raise StorageError(f"storage key too long (>{MAX_STORAGE_KEY_BYTES} bytes)")


def _check_value(value: bytes) -> None:
    if not isinstance(value, (bytes, bytearray)):
        raise StorageError("storage value must be bytes")
    if len(value) > MAX_STORAGE_VALUE_BYTES:
        raise StorageError(f"storage value too large (>{MAX_STORAGE_VALUE_BYTES} bytes)")


# ------------------------------ Facade ------------------------------------ #


class Storage:
    """Validated view over a backend, plus typed helpers."""

    def __init__(self, backend: Optional[StorageBackend] = None) -> None:
        if backend is not None:
            for attr in ("get", "set", "delete", "exists", "items"):
                if not hasattr(backend, attr):
                    raise StorageError(f"backend missing method: {attr}")
        self._backend: StorageBackend = backend if backend is not None else MemoryBackend()

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    def get(self, key: bytes) -> Optional[bytes]:
        """Return the value for `key`, or None if not set."""
        _check_key(key)
        return self._backend.get(bytes(key))

    def set(self, key: bytes, value: bytes) -> None:
        _check_key(key)
        _check_value(value)
        self._backend.set(bytes(key), bytes(value))

    def delete(self, key: bytes) -> None:
        """Delete `key` if present (no-op otherwise)."""
        _check_key(key)
        self._backend.delete(bytes(key))

    def exists(self, key: bytes) -> bool:
        _check_key(key)
        return self._backend.exists(bytes(key))

    def scan(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """Yield (key, value) pairs whose key starts with `prefix`, in key order."""
        for k, v in self._backend.items():
            if k.startswith(prefix):
                yield k, v

    # ------------------------------ Typed helpers ----------------------------- #

    def get_int(self, key: bytes) -> Optional[int]:
        """
        Read big-endian unsigned integer at `key`. Returns None if not set.
        Empty value is treated as 0 (but we never write empty for ints).
        """
        raw = self.get(key)
        if raw is None:
            return None
        if len(raw) == 0:
            return 0
        return int.from_bytes(raw, byteorder="big", signed=False)

    def set_int(self, key: bytes, value: int) -> None:
        """
        Store `value` as big-endian unsigned integer. Enforces 0 <= value <= 2^256-1.
        """
        if not isinstance(value, int) or isinstance(value, bool):
            raise StorageError("set_int value must be int")
        if value < 0 or value > U256_MAX:
            raise StorageError("set_int out of range (must fit in 256 bits)")
        if value == 0:
            encoded = b"\x00"
        else:
            width = (value.bit_length() + 7) // 8
            encoded = value.to_bytes(width, "big")
        self.set(key, encoded)

    def get_flag(self, key: bytes) -> bool:
        """Absent keys read as False."""
        return self.get(key) == _FLAG_ON

    def set_flag(self, key: bytes, on: bool) -> None:
        self.set(key, _FLAG_ON if on else _FLAG_OFF)


__all__ = [
    "MAX_STORAGE_KEY_BYTES",
    "MAX_STORAGE_VALUE_BYTES",
    "U256_MAX",
    "StorageError",
    "StorageBackend",
    "MemoryBackend",
    "Storage",
]
