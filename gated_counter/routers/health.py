from __future__ import annotations

import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request

from .. import version as svc_version

router = APIRouter(tags=["health"])

_PROCESS_START = time.time()


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _version_blob() -> Dict[str, Any]:
    return {
        "service": "gated-counter",
        "version": svc_version.__version__,
        "python": {
            "version": "{}.{}.{}".format(*sys.version_info[:3]),
            "impl": sys.implementation.name,
        },
        "started_at": datetime.fromtimestamp(_PROCESS_START, tz=timezone.utc).isoformat(),
        "now": _utcnow_iso(),
        "uptime_seconds": round(max(0.0, time.time() - _PROCESS_START), 3),
    }


@router.get("/healthz", summary="Liveness probe", response_model=None)
def healthz() -> Dict[str, Any]:
    """Always 200 while the process is serving requests."""
    return {"status": "ok", **_version_blob()}


@router.get("/version", summary="Service version", response_model=None)
def version(request: Request) -> Dict[str, Any]:
    meta = _version_blob()
    meta["git"] = svc_version.git_describe()
    meta["persist"] = bool(request.app.state.settings.persist)
    return meta
