"""Observability infrastructure for Capstone Approvals.

Provides structured logging and Prometheus metrics for monitoring and
debugging production deployments.
"""

from capstone_approvals.infra.observability.logging import (
    CorrelationIDFilter,
    JSONFormatter,
    correlation_id_var,
    get_correlation_id,
    set_correlation_id,
    setup_logging,
)
from capstone_approvals.infra.observability.metrics import (
    get_metrics_text,
    get_registry,
    record_action_run,
    record_request_created,
    record_resolution,
    record_vote,
    record_vote_retry,
)

__all__ = [
    # Logging
    "correlation_id_var",
    "get_correlation_id",
    "set_correlation_id",
    "CorrelationIDFilter",
    "JSONFormatter",
    "setup_logging",
    # Metrics
    "get_registry",
    "get_metrics_text",
    "record_request_created",
    "record_vote",
    "record_resolution",
    "record_vote_retry",
    "record_action_run",
]
