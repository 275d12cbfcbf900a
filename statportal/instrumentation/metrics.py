"""Prometheus metrics instrumentation for the statistics portal."""

import logging
import os
from typing import Optional

from fastapi import FastAPI
from prometheus_client import Counter, Histogram, Info
from prometheus_fastapi_instrumentator import Instrumentator, metrics

logger = logging.getLogger(__name__)

# Business metrics
DATA_MUTATIONS = Counter(
    'indicator_data_mutations_total',
    'Indicator data mutations',
    ['action', 'category']
)

BULK_IMPORT_ROWS = Counter(
    'bulk_import_rows_total',
    'Bulk import rows by outcome',
    ['outcome']
)

BULK_IMPORT_DURATION = Histogram(
    'bulk_import_duration_seconds',
    'Time taken to run a bulk import batch',
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)
)

SYSTEM_INFO = Info(
    'statportal_system_info',
    'System information and version'
)


def record_mutation(action: str, category: str) -> None:
    DATA_MUTATIONS.labels(action=action, category=category or "unknown").inc()


def record_import_rows(outcome: str, count: int) -> None:
    if count:
        BULK_IMPORT_ROWS.labels(outcome=outcome).inc(count)


def setup_metrics(app: FastAPI) -> Optional[Instrumentator]:
    """Setup Prometheus metrics for the FastAPI app when ENABLE_METRICS=true."""
    if os.getenv("ENABLE_METRICS", "").lower() != "true":
        logger.info("Prometheus metrics disabled (set ENABLE_METRICS=true to expose /metrics)")
        return None

    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        excluded_handlers=["/metrics", "/health"],
        inprogress_name="statportal_requests_inprogress",
        inprogress_labels=True,
        should_instrument_requests_inprogress=True,
    )

    instrumentator.add(
        metrics.latency(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
            metric_namespace="statportal",
            metric_subsystem="requests",
        )
    ).add(
        metrics.requests(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
            metric_namespace="statportal",
            metric_subsystem="requests",
        )
    )

    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint="/metrics")

    logger.info("Prometheus metrics configured and exposed at /metrics")
    return instrumentator
