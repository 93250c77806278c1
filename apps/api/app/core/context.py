from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.platform.security.context import Principal


@dataclass
class RequestContext:
    correlation_id: str | None
    user_id: str | None = None
    role: str | None = None


def get_request_context(request: Request) -> RequestContext | None:
    return getattr(request.state, "context", None)


def bind_principal(request: Request, principal: Principal) -> None:
    """Attach the authenticated principal to the request for downstream logging."""

    context = get_request_context(request)
    if context is not None:
        context.user_id = principal.user_id
        context.role = principal.role


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        request.state.context = RequestContext(correlation_id=getattr(request.state, "correlation_id", None))
        return await call_next(request)
