from __future__ import annotations

"""
Exception -> RFC7807 "problem+json" mappers for FastAPI.

- CounterError subclasses keep their own status and code.
- Starlette/FastAPI HTTPException and request validation errors are wrapped
  in the same shape.
- Unhandled exceptions become a 500 without leaking the stack trace; the
  trace is logged instead.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import CounterError
from ..logging import get_logger

PROBLEM_CT = "application/problem+json"

log = get_logger(__name__)

_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


def _base_problem(
    request: Request,
    *,
    status: int,
    title: str,
    detail: str = "",
    code: Optional[str] = None,
    extras: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    prob: Dict[str, Any] = {
        "type": "about:blank",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": str(request.url.path),
        "request_id": getattr(request.state, "request_id", "") or "",
    }
    if code:
        prob["code"] = code
    for k, v in (extras or {}).items():
        # avoid clobbering base fields
        prob.setdefault(k, v)
    return prob


async def _handle_counter_error(request: Request, exc: CounterError) -> JSONResponse:
    body = exc.to_problem()
    body["instance"] = str(request.url.path)
    body["request_id"] = getattr(request.state, "request_id", "") or ""
    log.info("counter_error", code=exc.code, status=exc.status_code, path=body["instance"])
    return JSONResponse(status_code=exc.status_code, content=body, media_type=PROBLEM_CT)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status = int(exc.status_code)
    detail = str(exc.detail) if getattr(exc, "detail", None) else ""
    body = _base_problem(request, status=status, title=_TITLES.get(status, "Error"), detail=detail)
    (log.warning if 400 <= status < 500 else log.error)("http_exception", status=status, path=body["instance"])
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_CT)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = _base_problem(
        request,
        status=422,
        title=_TITLES[422],
        detail="Request validation failed.",
        extras={"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]},
    )
    log.warning("validation_error", path=body["instance"])
    return JSONResponse(status_code=422, content=body, media_type=PROBLEM_CT)


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    body = _base_problem(
        request,
        status=500,
        title=_TITLES[500],
        detail="An unexpected error occurred.",
    )
    log.exception("unhandled_exception", path=body["instance"], request_id=body["request_id"])
    return JSONResponse(status_code=500, content=body, media_type=PROBLEM_CT)


def install_error_handlers(app: FastAPI) -> None:
    """Register exception handlers on the given FastAPI app."""
    app.add_exception_handler(CounterError, _handle_counter_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _handle_unexpected_error)


__all__ = ["install_error_handlers", "PROBLEM_CT"]
