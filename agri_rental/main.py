import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from agri_rental.api import auth, devices, leases, monitoring, orders, pricing
from agri_rental.core.config import settings
from agri_rental.core.exceptions import setup_exception_handlers
from agri_rental.core.metrics import request_count, request_duration, redis_connected
from agri_rental.core.redis import init_redis, close_redis
from agri_rental.db.session import engine

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Counts requests per route template so order and lease ids do not explode label cardinality"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path)
            request_count.labels(method=request.method, endpoint=endpoint, status=status).inc()
            request_duration.labels(method=request.method, endpoint=endpoint).observe(time.time() - start_time)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.API_TITLE} {settings.API_VERSION}")
    try:
        await init_redis()
        redis_connected.set(1)
    except (RedisError, OSError):
        # rate limiting and idempotency are skipped until Redis comes back
        redis_connected.set(0)

    if not await monitoring.check_database():
        logger.warning("Database not reachable at startup")

    yield

    await close_redis()
    redis_connected.set(0)
    await engine.dispose()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.API_TITLE,
        description=settings.API_DESCRIPTION,
        version=settings.API_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    application.add_middleware(MetricsMiddleware)
    setup_exception_handlers(application)

    for module in (auth, devices, orders, leases, pricing, monitoring):
        application.include_router(module.router)
    return application


app = create_app()
