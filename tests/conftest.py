# -*- coding: utf-8 -*-
"""
Shared pytest fixtures:
- Deterministic identities (alice is the deployer/owner in most tests)
- A fresh record per test
- Settings pointed at a per-test state file
- FastAPI TestClient bound to an app serving the fresh record
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Iterator

import pytest
import structlog

from gated_counter.config import Settings
from gated_counter.contract import AccessGatedCounter
from gated_counter.identity import derive_identity, to_hex

# Keep dict/set hash-iteration stable.
os.environ.setdefault("PYTHONHASHSEED", "0")
os.environ.setdefault("TZ", "UTC")


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """setup_logging() mutates global state; undo it after every test."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)


@pytest.fixture(scope="session")
def accounts() -> Dict[str, bytes]:
    return {name: derive_identity(f"tests/{name}") for name in ("alice", "bob", "carol", "dave")}


@pytest.fixture
def owner(accounts: Dict[str, bytes]) -> bytes:
    return accounts["alice"]


@pytest.fixture
def record(owner: bytes) -> AccessGatedCounter:
    return AccessGatedCounter(owner)


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "counter.json"


@pytest.fixture
def settings(owner: bytes, state_path: Path) -> Settings:
    return Settings(owner=to_hex(owner), state_path=state_path, persist=False)


@pytest.fixture
def client(settings: Settings, record: AccessGatedCounter):
    from fastapi.testclient import TestClient

    from gated_counter.app import create_app

    app = create_app(settings=settings, record=record)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def caller_headers():
    """Build the caller header for a given identity."""

    def _make(identity: bytes) -> Dict[str, str]:
        return {"X-Caller": to_hex(identity)}

    return _make
