from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.context import get_correlation_id
from app.core.errors import FieldError, ServiceError, ValidationFailed


logger = logging.getLogger("app.errors")

STATUS_BY_CODE: dict[str, int] = {
    "missing_credential": status.HTTP_401_UNAUTHORIZED,
    "token_expired": status.HTTP_401_UNAUTHORIZED,
    "token_invalid": status.HTTP_401_UNAUTHORIZED,
    "principal_not_found": status.HTTP_401_UNAUTHORIZED,
    "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "validation_failed": status.HTTP_400_BAD_REQUEST,
    "conflict": status.HTTP_409_CONFLICT,
    "cascade_failure": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "internal_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass
class ErrorEnvelope:
    message: str
    code: str
    errors: list[dict[str, str]] = field(default_factory=list)
    correlation_id: str | None = None
    success: bool = False


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    errors: list[dict[str, str]] | None = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    payload = ErrorEnvelope(
        message=message,
        code=code,
        errors=errors or [],
        correlation_id=correlation_id,
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=status_code, content=payload.__dict__, headers=headers)


def _field_path(loc: tuple[Any, ...]) -> str:
    parts = [str(item) for item in loc if item not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return error_response(
        request,
        status_code=STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        code=exc.code,
        message=exc.message,
        errors=exc.error_dicts(),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    failure = ValidationFailed(
        errors=[
            FieldError(_field_path(tuple(item.get("loc", ()))), str(item.get("msg", "Invalid value")))
            for item in exc.errors()
        ]
    )
    return await service_error_handler(request, failure)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(
        request,
        status_code=exc.status_code,
        code="http_error",
        message=message,
        errors=[{"field": "general", "message": message}],
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("request.failed", exc_info=exc, extra={"error": str(exc)})
    return error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="internal_error",
        message="Request failed",
        errors=[{"field": "general", "message": "An unexpected error occurred"}],
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
