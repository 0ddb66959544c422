"""
Health Check Endpoints

Endpoints:
- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (document store reachable)
"""

from fastapi import APIRouter, HTTPException, Request, status
from typing import Dict, Any
import asyncio
import time

from app.core.config import settings
from app.core.logging_config import logger
from app.utils.timestamps import to_iso, utc_now


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_document_store(request: Request) -> Dict[str, Any]:
    """Round-trip a read against the document store"""
    start = time.time()
    try:
        store = request.app.state.store
        await store.get("health/probe")
        latency = (time.time() - start) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(latency, 2),
            "connection": "ok",
            "message": "Document store reachable"
        }
    except Exception as e:
        latency = (time.time() - start) * 1000
        logger.error(f"[HealthCheck] Document store check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round(latency, 2),
            "connection": "failed",
            "error": str(e),
            "message": "Document store unreachable - booklets cannot be generated"
        }


async def check_redis() -> Dict[str, Any]:
    """Check Redis connectivity (used by rate limiting when configured)"""
    if not settings.REDIS_URL:
        return {"status": "disabled", "message": "REDIS_URL not set - rate limits are per process"}

    start = time.time()
    try:
        import redis.asyncio as redis

        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        await client.ping()
        await client.aclose()

        latency = (time.time() - start) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(latency, 2),
            "connection": "ok",
            "message": "Redis connection successful"
        }
    except Exception as e:
        latency = (time.time() - start) * 1000
        logger.warning(f"[HealthCheck] Redis check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round(latency, 2),
            "connection": "failed",
            "error": str(e),
            "message": "Redis connection failed - rate limiting may not work"
        }


def check_storage(request: Request) -> Dict[str, Any]:
    """Report the configured asset store"""
    assets = getattr(request.app.state, "assets", None)
    return {
        "status": "healthy" if assets is not None else "unhealthy",
        "provider": settings.STORAGE_MODE,
        "public_base_url": getattr(assets, "public_base_url", None),
    }


@router.get("/live")
async def liveness_check():
    """
    Liveness probe - indicates the application is running.
    """
    return {
        "status": "alive",
        "timestamp": to_iso(utc_now()),
        "app": settings.APP_NAME,
        "version": "1.0.0"
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness probe - 200 only if the document store answers.
    """
    store_check, redis_check = await asyncio.gather(
        check_document_store(request),
        check_redis(),
        return_exceptions=True
    )
    if isinstance(store_check, Exception):
        store_check = {"status": "unhealthy", "error": str(store_check)}
    if isinstance(redis_check, Exception):
        redis_check = {"status": "unhealthy", "error": str(redis_check)}

    is_ready = store_check.get("status") == "healthy"
    response = {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": to_iso(utc_now()),
        "checks": {
            "document_store": store_check,
            "redis": redis_check,
            "storage": check_storage(request),
        }
    }

    if not is_ready:
        logger.warning(f"[HealthCheck] Readiness check failed: {response}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=response
        )

    return response
