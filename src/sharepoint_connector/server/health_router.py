import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from sharepoint_connector.main.config import get_settings
from sharepoint_connector.metrics.metrics_service import MetricsService

router = APIRouter()


def _metrics(request: Request) -> MetricsService:
    return request.app.state.container.metrics()


@router.get("/health")
async def health(request: Request):
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return {
        "status": "ok" if _metrics(request).is_healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - started_at, 3),
        "version": get_settings().app_version,
    }


@router.get("/health/ready")
async def ready(request: Request):
    if not _metrics(request).is_healthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not ready"},
        )
    return {"status": "ready"}


@router.get("/health/live")
async def live():
    return {"status": "alive"}


@router.get("/metrics")
async def metrics(request: Request):
    metrics_service = _metrics(request)
    return Response(
        content=metrics_service.generate_latest(),
        media_type=metrics_service.content_type(),
    )
