from __future__ import annotations

import threading
from typing import Optional

from fastapi import FastAPI

from .config import Settings, get_settings
from .contract import AccessGatedCounter
from .identity import to_hex
from .logging import get_logger
from .middleware.errors import install_error_handlers
from .middleware.request_id import RequestIdMiddleware
from .routers.counter import router as counter_router
from .routers.health import router as health_router
from .state_file import load_state
from .version import __version__

log = get_logger(__name__)


def _initial_record(settings: Settings) -> AccessGatedCounter:
    """
    With persistence on, resume from the snapshot file when it exists;
    otherwise deploy a fresh record owned by the configured owner.
    """
    if settings.persist:
        record = load_state(settings.state_path)
        if record is not None:
            log.info("record_loaded", path=str(settings.state_path), owner=to_hex(record.owner))
            return record
    return AccessGatedCounter(settings.owner_identity())


def create_app(
    settings: Optional[Settings] = None,
    record: Optional[AccessGatedCounter] = None,
) -> FastAPI:
    """
    FastAPI factory. Serves exactly one record: the one passed in, or one
    built from settings.
    """
    cfg = settings or get_settings()

    app = FastAPI(title="Gated Counter", version=__version__)
    app.state.settings = cfg
    app.state.record = record if record is not None else _initial_record(cfg)
    app.state.write_lock = threading.Lock()

    app.add_middleware(RequestIdMiddleware)
    install_error_handlers(app)

    app.include_router(health_router)
    app.include_router(counter_router)
    return app
