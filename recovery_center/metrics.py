"""Business metrics for the recovery center."""

from opentelemetry import metrics

from .logging_config import get_logger

logger = get_logger(__name__)

# Get meter for creating instruments
meter = metrics.get_meter(__name__)

# HTTP Request Metrics
http_request_duration = meter.create_histogram(
    name="http_request_duration_seconds",
    description="Duration of HTTP requests in seconds",
    unit="s",
)

http_requests_total = meter.create_counter(
    name="http_requests_total",
    description="Total number of HTTP requests",
)

http_request_errors = meter.create_counter(
    name="http_request_errors_total",
    description="Total number of HTTP request errors",
)

# Recovery Metrics
recovery_list_requests_total = meter.create_counter(
    name="recovery_list_requests_total",
    description="Total number of recovery list queries",
)

recovery_previews_total = meter.create_counter(
    name="recovery_previews_total",
    description="Total number of restore previews",
)

recovery_restores_total = meter.create_counter(
    name="recovery_restores_total",
    description="Total number of committed restore batches",
)

recovery_records_restored_total = meter.create_counter(
    name="recovery_records_restored_total",
    description="Total number of rows brought back to live",
)

recovery_restore_rejections_total = meter.create_counter(
    name="recovery_restore_rejections_total",
    description="Total number of restore batches rejected before mutation",
)


def record_http_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record HTTP request metrics."""
    labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}

    http_request_duration.record(duration, labels)
    http_requests_total.add(1, labels)

    if status_code >= 400:
        http_request_errors.add(1, labels)


def record_list_request(entity: str):
    recovery_list_requests_total.add(1, {"entity": entity})


def record_preview(entity: str, blocked: int, missing: int):
    """Record a preview with the size of each partition."""
    recovery_previews_total.add(
        1,
        {
            "entity": entity,
            "has_blocked": str(blocked > 0).lower(),
            "has_missing": str(missing > 0).lower(),
        },
    )


def record_restore(entity: str, restored_count: int):
    """Record a committed restore batch."""
    recovery_restores_total.add(1, {"entity": entity})
    recovery_records_restored_total.add(restored_count, {"entity": entity})


def record_restore_rejection(entity: str, reason: str):
    recovery_restore_rejections_total.add(1, {"entity": entity, "reason": reason})


logger.debug("Recovery metrics instruments created")
