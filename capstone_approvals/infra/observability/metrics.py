"""Prometheus metrics for observability.

Provides metrics collection for approval request submission, voting,
resolution and the post-resolution action handlers.
"""

import logging

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global registry for metrics
_registry = CollectorRegistry()


requests_created_total = Counter(
    "capstone_approvals_requests_created_total",
    "Total number of approval requests submitted",
    ["action_key"],
    registry=_registry,
)

votes_total = Counter(
    "capstone_approvals_votes_total",
    "Total number of vote attempts by outcome",
    ["decision", "outcome"],
    registry=_registry,
)

resolutions_total = Counter(
    "capstone_approvals_resolutions_total",
    "Total number of approval requests resolved",
    ["decision"],
    registry=_registry,
)

vote_retries_total = Counter(
    "capstone_approvals_vote_retries_total",
    "Total number of vote transactions retried after a storage conflict",
    registry=_registry,
)

vote_duration_seconds = Histogram(
    "capstone_approvals_vote_duration_seconds",
    "Duration of vote operations in seconds, retries included",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=_registry,
)

action_runs_total = Counter(
    "capstone_approvals_action_runs_total",
    "Total number of resolution action handler runs",
    ["action_key", "status"],
    registry=_registry,
)


def get_registry() -> CollectorRegistry:
    """Get the metrics registry.

    Returns:
        Prometheus collector registry
    """
    return _registry


def get_metrics_text() -> str:
    """Get metrics in Prometheus text format.

    Returns:
        Metrics in Prometheus exposition format
    """
    return generate_latest(_registry).decode("utf-8")


def record_request_created(action_key: str) -> None:
    """Record a submitted approval request."""
    requests_created_total.labels(action_key=action_key).inc()


def record_vote(decision: str, outcome: str, duration: float | None = None) -> None:
    """Record metrics for a vote attempt.

    Args:
        decision: Decision cast (approved/rejected)
        outcome: recorded/resolved/conflict/forbidden/not_found/failed
        duration: Execution duration in seconds
    """
    votes_total.labels(decision=decision, outcome=outcome).inc()
    if duration is not None:
        vote_duration_seconds.observe(duration)


def record_resolution(decision: str) -> None:
    """Record a request reaching a terminal status."""
    resolutions_total.labels(decision=decision).inc()


def record_vote_retry() -> None:
    """Record one retried vote transaction."""
    vote_retries_total.inc()


def record_action_run(action_key: str, success: bool | None) -> None:
    """Record a resolution action handler run.

    Args:
        action_key: Action key of the resolved request
        success: True/False for handler outcome, None when no handler was available
    """
    if success is None:
        status = "skipped"
    else:
        status = "success" if success else "error"
    action_runs_total.labels(action_key=action_key, status=status).inc()


__all__ = [
    "get_registry",
    "get_metrics_text",
    "record_request_created",
    "record_vote",
    "record_resolution",
    "record_vote_retry",
    "record_action_run",
]
