from __future__ import annotations

import logging
import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.core.context import get_request_context
from app.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("app.request")


def _request_fields(request: Request, status_code: int, started: float) -> dict[str, Any]:
    context = get_request_context(request)
    return {
        "method": request.method,
        # Route is only resolved once the router has run.
        "path": resolve_http_path_label(request),
        "status_code": status_code,
        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        "user_id": context.user_id if context else None,
        "role": context.role if context else None,
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            fields = _request_fields(request, 500, started)
            observe_http_request(request.method, fields["path"], 500, fields["duration_ms"] / 1000)
            logger.error("http.error", exc_info=True, extra=fields)
            raise

        fields = _request_fields(request, response.status_code, started)
        observe_http_request(request.method, fields["path"], response.status_code, fields["duration_ms"] / 1000)
        logger.info("http.request", extra=fields)
        return response
