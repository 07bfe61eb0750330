"""Tourgate API: FastAPI application over the tourism API gateway.

Run:
    uvicorn tourgate.api.main:app --reload
    # or
    tourgate-api
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware

from tourgate.api.bookmarks import router as bookmarks_router
from tourgate.api.bookmarks import users_router
from tourgate.api.routes import router
from tourgate.config import settings
from tourgate.core.errors import (
    AuthenticationRequiredError,
    BookmarkError,
    ErrorKind,
    TourApiError,
    UserNotFoundError,
)
from tourgate.observability.logging import correlation_id, redact, setup_logging
from tourgate.observability.metrics import ApiMetricsCollector
from tourgate.observability.tracing import configure_tracing
from tourgate.pipeline.stats import StatsAggregator
from tourgate.retrieval.tour_api import TourApiGateway
from tourgate.storage.db import dispose_engine, get_session_factory, init_db

logger = logging.getLogger(__name__)

# Everything not listed is an upstream failure -> 502
STATUS_FOR_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.CONTENT_NOT_FOUND: 404,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.QUOTA_EXCEEDED: 429,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.AGGREGATE_FAILURE: 503,
}


def status_for_kind(kind: ErrorKind) -> int:
    return STATUS_FOR_KIND.get(kind, 502)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build shared clients on startup, close them on shutdown."""
    setup_logging(json_format=settings.log_json, level=settings.log_level)

    try:
        configure_tracing(settings.mlflow_tracking_uri, settings.mlflow_experiment_name)
    except Exception as e:
        logger.warning("MLflow tracing setup failed: %s; continuing without a tracking store", e)

    if not settings.tour_api_key:
        logger.warning("TOUR_API_KEY is not set; every upstream call will be rejected")

    metrics = ApiMetricsCollector(
        capacity=settings.metrics_capacity,
        slow_call_threshold=settings.slow_call_threshold,
    )
    gateway = TourApiGateway.from_settings(settings, metrics=metrics)
    app.state.metrics = metrics
    app.state.gateway = gateway
    app.state.aggregator = StatsAggregator(
        gateway,
        cache_ttl=settings.stats_cache_ttl,
        top_n=settings.stats_top_n,
    )

    try:
        await asyncio.wait_for(init_db(), timeout=15)
    except asyncio.TimeoutError:
        logger.error("Database initialization timed out after 15s; bookmarks are unavailable")
    except Exception as e:
        logger.error("Database initialization failed: %s; bookmarks are unavailable", e)

    logger.info("Tourgate API ready")
    yield
    logger.info("Shutting down")
    metrics.log_summary()
    await gateway.aclose()
    await dispose_engine()


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Set correlation ID from X-Request-ID header or generate a new one."""

    async def dispatch(self, request: Request, call_next):
        cid = request.headers.get("x-request-id", str(uuid.uuid4()))
        token = correlation_id.set(cid)
        try:
            response = await call_next(request)
            response.headers["x-request-id"] = cid
            return response
        finally:
            correlation_id.reset(token)


app = FastAPI(
    title="Tourgate",
    description="Korean tourism listings, statistics and bookmarks over the "
    "Korea Tourism Organization open API.",
    version="0.3.0",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(bookmarks_router)
app.include_router(users_router)


@app.exception_handler(TourApiError)
async def tour_api_error_handler(request: Request, exc: TourApiError):
    status_code = status_for_kind(exc.kind)
    if status_code >= 500:
        logger.error("%s %s failed: %r", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"kind": exc.kind.value, "detail": redact(str(exc)), "retryable": exc.retryable},
    )


@app.exception_handler(BookmarkError)
async def bookmark_error_handler(request: Request, exc: BookmarkError):
    if isinstance(exc, AuthenticationRequiredError):
        status_code, kind = 401, "authentication_required"
    elif isinstance(exc, UserNotFoundError):
        status_code, kind = 404, "user_not_found"
    else:
        status_code, kind = 500, "bookmark_error"
    return JSONResponse(status_code=status_code, content={"kind": kind, "detail": str(exc), "retryable": False})


@app.get("/health")
async def health():
    """Health check: verifies DB connectivity and that a service key is configured."""
    checks = {}

    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    checks["tour_api_key"] = "configured" if settings.tour_api_key else "missing"

    healthy = checks["database"] == "ok" and settings.tour_api_key
    return {"status": "healthy" if healthy else "degraded", "checks": checks}


def run():
    """Entry point for tourgate-api console script."""
    uvicorn.run("tourgate.api.main:app", host="0.0.0.0", port=8000, reload=True)
