"""
Filesystem persistence for record snapshots.

- One JSON document per record (see AccessGatedCounter.snapshot()).
- Atomic writes via temp file + os.replace; a crash mid-write leaves the
  previous snapshot intact.
- A missing file loads as None so callers can tell "never deployed" apart
  from a broken file (which raises).
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from .contract import AccessGatedCounter
from .errors import CounterError
from .logging import get_logger

log = get_logger(__name__)

PathLike = Union[str, Path]


class StateFileError(Exception):
    """Snapshot file exists but cannot be parsed into a record."""


def load_state(path: PathLike) -> Optional[AccessGatedCounter]:
    p = Path(path).expanduser()
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise StateFileError(f"cannot read snapshot {p}: {e}") from e
    if not isinstance(data, dict):
        raise StateFileError(f"snapshot {p} is not a JSON object")
    try:
        return AccessGatedCounter.from_snapshot(data)
    except (KeyError, TypeError, ValueError, CounterError) as e:
        raise StateFileError(f"invalid snapshot {p}: {e}") from e


def save_state(path: PathLike, record: AccessGatedCounter) -> Path:
    p = Path(path).expanduser()
    p.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(record.snapshot(), indent=2, sort_keys=True)

    fd, tmp_name = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, p)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    log.debug("state_saved", path=str(p))
    return p


__all__ = ["StateFileError", "load_state", "save_state"]
