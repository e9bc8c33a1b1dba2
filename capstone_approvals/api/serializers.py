"""Projections of persisted approval requests into API views."""

from typing import Any

from capstone_approvals.domain.models import (
    ApprovalRequestSummary,
    ApprovalRequestView,
    RecipientDecisionView,
)
from capstone_approvals.domain.roster import Roster


def pending_decision_for(request: Any, viewer_id: int | None) -> bool | None:
    """Whether ``viewer_id`` still owes a decision on ``request``.

    None when the viewer is anonymous or not on the roster.
    """
    if viewer_id is None:
        return None
    for recipient in request.recipients:
        if recipient.user_id == viewer_id:
            return recipient.decision is None
    return None


def to_view(request: Any, viewer_id: int | None = None) -> ApprovalRequestView:
    """Full resource view, optionally relative to a viewer."""
    return ApprovalRequestView(
        id=request.id,
        title=request.title,
        description=request.description,
        status=request.status,
        resolved_decision=request.resolved_decision,
        resolved_at=request.resolved_at,
        action_key=request.action_key,
        action_payload=request.action_payload,
        requested_by=request.requested_by,
        recipients=[
            RecipientDecisionView(
                user_id=recipient.user_id,
                decision=recipient.decision,
                comment=recipient.comment,
                decision_at=recipient.decision_at,
            )
            for recipient in request.recipients
        ],
        pending_decision=pending_decision_for(request, viewer_id),
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


def to_summary(request: Any, *, include_description: bool = False) -> ApprovalRequestSummary:
    """Compact view used by the sent/received listings."""
    roster = Roster(tuple(recipient.user_id for recipient in request.recipients))
    return ApprovalRequestSummary(
        id=request.id,
        title=request.title,
        status=request.status,
        recipients=roster.label(),
        description=request.description if include_description else None,
    )


__all__ = ["pending_decision_for", "to_view", "to_summary"]
