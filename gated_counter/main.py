"""
Uvicorn launcher for the gated counter service.

Usage:
  python -m gated_counter.main [--host 127.0.0.1] [--port 8080] [--reload]
                               [--log-level info]

Defaults come from settings (GATED_COUNTER_HOST, GATED_COUNTER_PORT, ...).
"""

from __future__ import annotations

import argparse
from typing import Optional

import uvicorn

from .config import get_settings
from .logging import setup_logging


def run(host: str, port: int, *, reload: bool = False, log_level: Optional[str] = None) -> None:
    settings = get_settings()
    setup_logging(level=log_level or settings.log_level)
    # One worker only: the record lives in process memory.
    uvicorn.run(
        "gated_counter.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=(log_level or settings.log_level).lower(),
        log_config=None,
    )


def main(argv: Optional[list[str]] = None) -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Run the gated counter service (uvicorn)")
    parser.add_argument("--host", default=settings.host, help="Bind address (default: %(default)s)")
    parser.add_argument("--port", type=int, default=settings.port, help="Port (default: %(default)s)")
    parser.add_argument("--reload", action="store_true", help="Enable autoreload (dev only)")
    parser.add_argument("--log-level", default=settings.log_level, help="Log level (default: %(default)s)")
    args = parser.parse_args(argv)

    run(args.host, args.port, reload=args.reload, log_level=args.log_level)


if __name__ == "__main__":
    main()
