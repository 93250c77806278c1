from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from app.api.errors import register_error_handlers
from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.context import RequestContextMiddleware
from app.logging import configure_logging
from app.middleware.correlation_id import CorrelationIdMiddleware
from app.middleware.request_logging import RequestLoggingMiddleware
from app.otel import server_request_hook, setup_otel


settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("app.lifecycle")


@asynccontextmanager
async def lifespan(app: FastAPI):
    current = get_settings()
    if current.is_production and current.jwt_secret == "replace-me":
        logger.error("startup.insecure_jwt_secret", extra={"reason": "default_secret"})
        raise RuntimeError("JWT_SECRET must be set in production")
    logger.info("system.started")
    yield


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
# Added last runs first: correlation id, then request logging, then request context.
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)
register_error_handlers(app)

setup_otel(settings)
if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=server_request_hook)
