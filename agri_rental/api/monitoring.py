import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import Response

from agri_rental.core.config import settings
from agri_rental.core.metrics import db_connected, redis_connected, get_metrics_text
from agri_rental.core.redis import ping_redis
from agri_rental.db.session import engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["monitoring"])


async def check_database() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {e}")
        db_connected.set(0)
        return False
    db_connected.set(1)
    return True


async def dependency_status() -> dict:
    redis_ok = await ping_redis()
    redis_connected.set(1 if redis_ok else 0)
    return {"database": await check_database(), "redis": redis_ok}


@router.get("/metrics")
async def metrics():
    return Response(content=get_metrics_text(), media_type="text/plain; version=0.0.4; charset=utf-8")


@router.get("/health")
async def health_check():
    deps = await dependency_status()
    return {
        "status": "healthy" if deps["database"] else "degraded",
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "dependencies": {name: "connected" if ok else "disconnected" for name, ok in deps.items()},
    }


@router.get("/readiness")
async def readiness_check():
    """Ready only when both the database and Redis answer"""
    failing = sorted(name for name, ok in (await dependency_status()).items() if not ok)
    if failing:
        return JSONResponse(status_code=503, content={"ready": False, "failing": failing})
    return {"ready": True, "service": settings.API_TITLE}


@router.get("/", tags=["root"])
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics",
    }
