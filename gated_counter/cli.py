"""
gated-counter: command line for a record kept in a snapshot file.

Every command loads the snapshot, performs one call, and (for mutations)
saves it back. Identities are hex, with or without 0x.

Examples:
  gated-counter deploy --owner 0xaa..
  gated-counter grant 0xbb.. --caller 0xaa..
  gated-counter inc --caller 0xbb..
  gated-counter show --json
  gated-counter events --since 2
  gated-counter serve --port 8080

Exit codes:
  0  success
  1  the call was rejected (unauthorized, forbidden, underflow, overflow, bad identity)
  2  no record at the state path, or the file is unreadable
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import typer

from .config import get_settings
from .contract import AccessGatedCounter
from .errors import CounterError
from .events import Event
from .identity import to_hex
from .logging import setup_logging
from .state_file import StateFileError, load_state, save_state

app = typer.Typer(
    name="gated-counter",
    help="Owner-administered, operator-gated shared counter",
    no_args_is_help=True,
    add_completion=False,
)


class GlobalContext:
    def __init__(self) -> None:
        self.state_path: Path = get_settings().state_path
        self.json_output: bool = False


_ctx = GlobalContext()


@app.callback()
def main_callback(
    state: Optional[Path] = typer.Option(
        None,
        "--state",
        help="Snapshot file (default: GATED_COUNTER_STATE_PATH)",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output JSON instead of text"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG"),
) -> None:
    settings = get_settings()
    _ctx.state_path = state or settings.state_path
    _ctx.json_output = json_output
    setup_logging(level="DEBUG" if verbose else "WARNING", log_format=settings.log_format)


# ---- helpers ----------------------------------------------------------------


def _emit(payload: Dict[str, Any], text: str) -> None:
    typer.echo(json.dumps(payload, indent=2) if _ctx.json_output else text)


def _load() -> AccessGatedCounter:
    try:
        record = load_state(_ctx.state_path)
    except StateFileError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    if record is None:
        typer.echo(f"Error: no record at {_ctx.state_path}; run `gated-counter deploy` first", err=True)
        raise typer.Exit(2)
    return record


def _fail(err: CounterError) -> NoReturn:
    typer.echo(f"{err.code}: {err.message}", err=True)
    raise typer.Exit(1)


def _event_payload(ev: Event) -> Dict[str, Any]:
    args = {k: (to_hex(v) if isinstance(v, bytes) else v) for k, v in ev.args.items()}
    return {"index": ev.index, "name": ev.name, "args": args}


def _event_text(ev: Event) -> str:
    parts = [f"{k}={to_hex(v) if isinstance(v, bytes) else v}" for k, v in ev.args.items()]
    return f"#{ev.index} {ev.name} " + " ".join(parts)


def _mutate(call) -> None:
    record = _load()
    try:
        ev = call(record)
    except CounterError as e:
        _fail(e)
    save_state(_ctx.state_path, record)
    _emit(_event_payload(ev), _event_text(ev))


# ---- commands ---------------------------------------------------------------


@app.command()
def deploy(
    owner: str = typer.Option(..., "--owner", help="Creator identity; becomes owner and first operator"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing record"),
) -> None:
    """Create a fresh record at the state path."""
    if _ctx.state_path.exists() and not force:
        typer.echo(f"Error: {_ctx.state_path} already holds a record (use --force)", err=True)
        raise typer.Exit(2)
    try:
        record = AccessGatedCounter(owner)
    except CounterError as e:
        _fail(e)
    path = save_state(_ctx.state_path, record)
    _emit(
        {"owner": to_hex(record.owner), "state": str(path)},
        f"deployed: owner={to_hex(record.owner)} state={path}",
    )


@app.command()
def show() -> None:
    """Print owner, counter and current operators."""
    record = _load()
    snap = record.snapshot()
    lines = [f"owner:     {snap['owner']}", f"counter:   {snap['counter']}", "operators:"]
    lines += [f"  {op}" for op in snap["operators"]] or ["  (none)"]
    _emit({k: snap[k] for k in ("owner", "counter", "operators")}, "\n".join(lines))


@app.command("is-operator")
def is_operator(identity: str = typer.Argument(..., help="Identity to check")) -> None:
    record = _load()
    try:
        flag = record.is_operator(identity)
    except CounterError as e:
        _fail(e)
    _emit({"identity": identity, "isOperator": flag}, "yes" if flag else "no")


@app.command()
def grant(
    target: str = typer.Argument(..., help="Identity to flag as operator"),
    caller: str = typer.Option(..., "--caller", help="Calling identity (must be owner)"),
) -> None:
    """Owner only: grant operator status."""
    _mutate(lambda r: r.grant_operator(caller, target))


@app.command()
def revoke(
    target: str = typer.Argument(..., help="Identity to unflag"),
    caller: str = typer.Option(..., "--caller", help="Calling identity (must be owner)"),
) -> None:
    """Owner only: revoke operator status."""
    _mutate(lambda r: r.revoke_operator(caller, target))


@app.command()
def inc(caller: str = typer.Option(..., "--caller", help="Calling identity (must be operator)")) -> None:
    """Operators only: add one to the counter."""
    _mutate(lambda r: r.increment(caller))


@app.command()
def dec(caller: str = typer.Option(..., "--caller", help="Calling identity (must be operator)")) -> None:
    """Operators only: subtract one from the counter."""
    _mutate(lambda r: r.decrement(caller))


@app.command()
def events(since: int = typer.Option(0, "--since", min=0, help="First event index to print")) -> None:
    """Print the audit log."""
    record = _load()
    evs = record.events.since(since)
    _emit({"events": [_event_payload(ev) for ev in evs]}, "\n".join(_event_text(ev) for ev in evs))


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
) -> None:
    """Run the HTTP service."""
    from .main import run

    settings = get_settings()
    run(host or settings.host, port or settings.port)


def main() -> None:  # pragma: no cover - console entrypoint
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
