"""Approval request API routes.

Provides HTTP endpoints to submit approval requests, cast decisions and
browse requests by requester or recipient. The caller's user id is
resolved by the upstream identity provider (see ``api.identity``).
"""

import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from capstone_approvals.api.identity import (
    get_current_user_id,
    get_optional_user_id,
    get_settings_dep,
)
from capstone_approvals.api.serializers import to_summary, to_view
from capstone_approvals.config import Settings
from capstone_approvals.domain.exceptions import (
    ApprovalConflictError,
    ApprovalRequestNotFoundError,
    ApprovalValidationError,
    DomainError,
    NotARecipientError,
    VoteRetryExhaustedError,
)
from capstone_approvals.domain.models import (
    ApprovalRequestCreate,
    ApprovalRequestSummary,
    ApprovalRequestView,
    Decision,
    DecisionComment,
    VoteSubmit,
)
from capstone_approvals.domain.services.actions import ActionRunner
from capstone_approvals.domain.services.approval import ApprovalService

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/approval-requests", tags=["approval-requests"])


async def get_session_dep():
    """Get database session dependency - import here to avoid namespace pollution."""
    from capstone_approvals.infra.db.session import get_session

    async for session in get_session():
        yield session


def get_action_runner(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
) -> ActionRunner:
    """Action runner shared by the application, or one built from settings."""
    runner = getattr(request.app.state, "action_runner", None)
    if runner is None:
        runner = ActionRunner(settings.approval_actions)
    return runner


async def get_approval_service(
    session: AsyncSession = Depends(get_session_dep),
    settings: Settings = Depends(get_settings_dep),
    action_runner: ActionRunner = Depends(get_action_runner),
) -> ApprovalService:
    """Dependency to get ApprovalService."""
    return ApprovalService(session, settings, action_runner)


def _to_http_error(error: DomainError) -> HTTPException:
    """Translate a domain error into the matching HTTP error."""
    if isinstance(error, ApprovalRequestNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)
    if isinstance(error, NotARecipientError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=error.message)
    if isinstance(error, ApprovalConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.message)
    if isinstance(error, ApprovalValidationError):
        return HTTPException(
            status_code=422,
            detail={"message": error.message, "errors": error.errors},
        )
    if isinstance(error, VoteRetryExhaustedError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=error.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)


async def _cast(
    service: ApprovalService,
    request_id: int,
    user_id: int,
    decision: Decision,
    comment: str | None,
) -> ApprovalRequestView:
    try:
        request = await service.vote(request_id, user_id, decision, comment)
    except DomainError as e:
        raise _to_http_error(e) from e
    return to_view(request, user_id)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApprovalRequestView)
async def create_approval_request(
    payload: ApprovalRequestCreate,
    user_id: int = Depends(get_current_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> ApprovalRequestView:
    """Submit a new approval request on behalf of the caller.

    Returns:
        The created request with every recipient undecided
    """
    try:
        request = await service.submit_payload(payload, requested_by=user_id)
    except DomainError as e:
        raise _to_http_error(e) from e
    return to_view(request)


@router.get("", response_model=list[ApprovalRequestView])
async def list_approval_requests(
    viewer_id: int | None = Depends(get_optional_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> list[ApprovalRequestView]:
    """List every approval request, newest first."""
    requests = await service.list_requests()
    return [to_view(request, viewer_id) for request in requests]


@router.get("/relevant", response_model=list[ApprovalRequestView])
async def list_relevant_approval_requests(
    user_id: int = Depends(get_current_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> list[ApprovalRequestView]:
    """List requests the caller created or must decide on.

    Each entry carries ``pending_decision`` relative to the caller.
    """
    requests = await service.list_relevant_to(user_id)
    return [to_view(request, user_id) for request in requests]


@router.get("/sent", response_model=list[ApprovalRequestSummary])
async def list_sent_approval_requests(
    user_id: int = Depends(get_current_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> list[ApprovalRequestSummary]:
    """List requests created by the caller."""
    requests = await service.list_sent(user_id)
    return [to_summary(request) for request in requests]


@router.get("/sent/{request_id}", response_model=ApprovalRequestSummary)
async def get_sent_approval_request(
    request_id: int,
    user_id: int = Depends(get_current_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> ApprovalRequestSummary:
    """Show one request created by the caller."""
    try:
        request = await service.get_sent(request_id, user_id)
    except DomainError as e:
        raise _to_http_error(e) from e
    return to_summary(request, include_description=True)


@router.get("/received", response_model=list[ApprovalRequestSummary])
async def list_received_approval_requests(
    user_id: int = Depends(get_current_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> list[ApprovalRequestSummary]:
    """List requests addressed to the caller."""
    requests = await service.list_received(user_id)
    return [to_summary(request) for request in requests]


@router.get("/received/{request_id}", response_model=ApprovalRequestSummary)
async def get_received_approval_request(
    request_id: int,
    user_id: int = Depends(get_current_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> ApprovalRequestSummary:
    """Show one request addressed to the caller."""
    try:
        request = await service.get_received(request_id, user_id)
    except DomainError as e:
        raise _to_http_error(e) from e
    return to_summary(request, include_description=True)


@router.post("/received/{request_id}/approve", response_model=ApprovalRequestView)
async def approve_approval_request(
    request_id: int,
    body: DecisionComment | None = Body(default=None),
    user_id: int = Depends(get_current_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> ApprovalRequestView:
    """Approve a request addressed to the caller."""
    comment = body.comment if body else None
    return await _cast(service, request_id, user_id, Decision.APPROVED, comment)


@router.post("/received/{request_id}/reject", response_model=ApprovalRequestView)
async def reject_approval_request(
    request_id: int,
    body: DecisionComment | None = Body(default=None),
    user_id: int = Depends(get_current_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> ApprovalRequestView:
    """Reject a request addressed to the caller."""
    comment = body.comment if body else None
    return await _cast(service, request_id, user_id, Decision.REJECTED, comment)


@router.post("/{request_id}/decision", response_model=ApprovalRequestView)
async def submit_decision(
    request_id: int,
    payload: VoteSubmit,
    user_id: int = Depends(get_current_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> ApprovalRequestView:
    """Cast the caller's decision on a request.

    Returns:
        The request as it now stands, terminal if this vote resolved it
    """
    return await _cast(service, request_id, user_id, payload.decision, payload.comment)


@router.get("/{request_id}", response_model=ApprovalRequestView)
async def get_approval_request(
    request_id: int,
    viewer_id: int | None = Depends(get_optional_user_id),
    service: ApprovalService = Depends(get_approval_service),
) -> ApprovalRequestView:
    """Show one request, with ``pending_decision`` for a recipient viewer."""
    try:
        request = await service.get_request(request_id)
    except DomainError as e:
        raise _to_http_error(e) from e
    return to_view(request, viewer_id)


__all__ = ["router", "get_approval_service", "get_session_dep", "get_action_runner"]
