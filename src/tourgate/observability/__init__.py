"""Observability: structured logging, API call metrics and MLflow tracing helpers."""

from tourgate.observability.logging import get_correlation_id, setup_logging
from tourgate.observability.metrics import ApiMetric, ApiMetricsCollector

__all__ = ["ApiMetric", "ApiMetricsCollector", "get_correlation_id", "setup_logging"]
