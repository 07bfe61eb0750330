"""FastAPI dependencies.

The lifespan hook builds the shared gateway, aggregator and metrics
collector on ``app.state``; these accessors fall back to building them
lazily so the app also works when lifespan has not run. Tests replace
them through ``app.dependency_overrides``.
"""

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tourgate.config import settings
from tourgate.observability.metrics import ApiMetricsCollector
from tourgate.pipeline.stats import StatsAggregator
from tourgate.retrieval.tour_api import TourApiGateway
from tourgate.storage.bookmarks import BookmarkService
from tourgate.storage.db import get_session_factory


def get_metrics(request: Request) -> ApiMetricsCollector:
    metrics = getattr(request.app.state, "metrics", None)
    if metrics is None:
        metrics = ApiMetricsCollector(
            capacity=settings.metrics_capacity,
            slow_call_threshold=settings.slow_call_threshold,
        )
        request.app.state.metrics = metrics
    return metrics


def get_gateway(request: Request) -> TourApiGateway:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        gateway = TourApiGateway.from_settings(settings, metrics=get_metrics(request))
        request.app.state.gateway = gateway
    return gateway


def get_aggregator(request: Request) -> StatsAggregator:
    aggregator = getattr(request.app.state, "aggregator", None)
    if aggregator is None:
        aggregator = StatsAggregator(
            get_gateway(request),
            cache_ttl=settings.stats_cache_ttl,
            top_n=settings.stats_top_n,
        )
        request.app.state.aggregator = aggregator
    return aggregator


def get_db_sessions() -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


def get_page_size() -> int:
    return settings.page_size


def get_bookmarks(
    x_user_id: str | None = Header(default=None),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_db_sessions),
) -> BookmarkService:
    """Bookmark facade for the caller identified by the auth proxy's X-User-Id header."""
    return BookmarkService(sessions, x_user_id)
