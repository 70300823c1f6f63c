from __future__ import annotations

"""
Request ID middleware.

- Propagates an inbound **X-Request-Id** or generates a fresh one.
- Exposes it as ``request.state.request_id`` and echoes it on the response.
- Binds it into the structlog contextvars for the duration of the request, so
  every log line emitted while serving (including the record's own
  ``counter_updated`` / ``call_rejected`` lines) carries it.
"""

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..logging import bind_request_context, clear_request_context

REQUEST_ID_HEADER = "X-Request-Id"


class RequestIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header: str = REQUEST_ID_HEADER):
        super().__init__(app)
        self.header = header

    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get(self.header.lower()) or uuid.uuid4().hex
        request.state.request_id = req_id
        bind_request_context(request_id=req_id)
        try:
            response: Response = await call_next(request)
        finally:
            # always unbind
            clear_request_context("request_id")
        response.headers[self.header] = req_id
        return response


__all__ = ["REQUEST_ID_HEADER", "RequestIdMiddleware"]
