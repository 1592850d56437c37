"""
Entry Point
"""

from contextlib import asynccontextmanager
from time import perf_counter

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request
from ulid import ULID

from hostcare.api.sessions import router as sessions_router
from hostcare.core.config import settings
from hostcare.core.init_guard import ensure_initialized
from hostcare.core.log import logger
from hostcare.schema.status import HealthCheckResponse, IndexResponse

start_time = perf_counter()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Resolve storage paths before serving."""
    paths = ensure_initialized()
    logger.info(f"Starting up {settings.PROJECT_NAME} v{settings.PROJECT_VERSION}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Listening on: {settings.APP_HOST}:{settings.APP_PORT} - Workers: {settings.APP_WORKERS}")
    logger.info(f"Storage: {paths.root} - Exec ID: {paths.exec_id}")
    if not settings.APP_AUTH_KEY:
        logger.warning("APP_AUTH_KEY is not set, every /v1 request will be rejected")

    try:
        yield
    finally:
        logger.info(f"Shutting down {settings.PROJECT_NAME}...")


app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    docs_url="/docs",
    redoc_url=None,
)

app.add_middleware(
    CorrelationIdMiddleware,
    generator=lambda: str(ULID()),
    validator=None,
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log method, path, status, and duration for every HTTP request."""
    t0 = perf_counter()
    response = await call_next(request)
    duration_ms = (perf_counter() - t0) * 1000
    if request.url.path != "/health":
        logger.info(
            f"{request.method} {request.url.path} "
            f"status={response.status_code} "
            f"duration={duration_ms:.1f}ms"
        )
    return response


app.include_router(sessions_router)


@app.get(
    "/health",
    include_in_schema=False,
)
async def health() -> HealthCheckResponse:
    """Health check endpoint"""
    paths = ensure_initialized()
    return HealthCheckResponse(
        status="ok",
        version=settings.PROJECT_VERSION,
        uptime=perf_counter() - start_time,
        exec_id=paths.exec_id,
        hostname=paths.hostname,
    )


@app.get(
    "/",
    include_in_schema=False,
)
async def index() -> IndexResponse:
    return IndexResponse()
