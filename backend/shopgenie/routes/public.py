# /shopgenie/routes/public.py

from datetime import datetime, timezone

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.exceptions import RedisError

from shopgenie.config.settings import settings
from shopgenie.services.cache_service import cache_service
from shopgenie.services.db_service import db_service

# Unauthenticated endpoints: service banner, health check and Prometheus metrics.

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "ShopGenie WhatsApp Grocery Assistant",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment
    }


@router.get("/health", summary="Health Check")
async def health_check():
    """Reports MongoDB and Redis connectivity. Degraded dependencies answer 503."""
    services = {"database": "connected" if await db_service.health_check() else "error"}

    if cache_service.redis is None:
        services["cache"] = "disabled"
    else:
        try:
            await cache_service.redis.ping()
            services["cache"] = "connected"
        except (RedisError, OSError):
            services["cache"] = "error"

    healthy = "error" not in services.values()
    return JSONResponse(
        {
            "status": "healthy" if healthy else "degraded",
            "services": services,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        status_code=200 if healthy else 503,
    )


@router.get("/metrics", tags=["Monitoring"])
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
