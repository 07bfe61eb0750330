"""MLflow tracing for upstream calls.

Gateway operations are wrapped with ``trace`` and the HTTP client opens a
``start_span`` per logical call, so each request shows up as one trace
with its retries and fan-out probes nested inside.

Usage:

    from tourgate.observability.tracing import SpanType, start_span, trace

    @trace(name="list_by_area", span_type=SpanType.TOOL)
    async def list_by_area(...): ...

    with start_span(name="tour_api_call", span_type=SpanType.TOOL) as span:
        span.set_inputs({...})
"""

import logging

import mlflow
from mlflow.entities import SpanType

logger = logging.getLogger(__name__)

trace = mlflow.trace
start_span = mlflow.start_span

__all__ = ["SpanType", "configure_tracing", "start_span", "trace"]


def configure_tracing(tracking_uri: str, experiment_name: str) -> None:
    """Point MLflow at the tracking store and enable background span export."""
    mlflow.set_tracking_uri(tracking_uri)
    mlflow.set_experiment(experiment_name)
    mlflow.config.enable_async_logging()
    logger.info("MLflow tracing enabled: %s (%s)", tracking_uri, experiment_name)
