from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.auth.api import router as auth_router
from app.core.config import get_settings
from app.core.errors import NotFoundOrForbidden
from app.crm.api import leads_router, reports_router, router as crm_customers_router
from app.libs.auth import Principal, require_admin
from app.metrics import generate_metrics_payload, metrics_content_type

router = APIRouter()
router.include_router(auth_router)
router.include_router(crm_customers_router)
router.include_router(leads_router)
router.include_router(reports_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics(principal: Principal = Depends(require_admin)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise NotFoundOrForbidden(field="path", detail="not found")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
