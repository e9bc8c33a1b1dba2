"""Approval service for multi-approver decision workflows.

This service implements the approval request lifecycle:
- Submission with a frozen roster of recipients
- Voting, at most once per recipient, while the request is pending
- Autonomous resolution once one decision holds a strict majority of the roster
- Read views (all, relevant, sent, received)

Every vote runs as one transaction: precondition checks, the decision
write, the ledger re-read and the status transition commit together or not
at all. Concurrent votes are serialized by a row lock where the database
supports it and by the optimistic ``version_id`` counter on the request row
everywhere; a vote that loses that race is rolled back and re-run from the
start, up to ``Settings.vote_max_attempts`` times.
"""

import asyncio
import logging
import random
import time
from collections.abc import Iterable
from typing import Any

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from capstone_approvals.config import Settings, get_settings
from capstone_approvals.domain.exceptions import (
    ApprovalConflictError,
    ApprovalRequestNotFoundError,
    ApprovalValidationError,
    DecisionAlreadyRecordedError,
    DomainError,
    NotARecipientError,
    RequestAlreadyResolvedError,
    VoteRetryExhaustedError,
)
from capstone_approvals.domain.ledger import Ledger
from capstone_approvals.domain.models import ApprovalRequestCreate, ApprovalStatus, Decision
from capstone_approvals.domain.resolution import resolve
from capstone_approvals.domain.roster import Roster
from capstone_approvals.domain.services.actions import ActionRunner
from capstone_approvals.infra.db.models import ApprovalRequest as ApprovalRequestModel
from capstone_approvals.infra.db.models import ApprovalRequestRecipient, utcnow
from capstone_approvals.infra.db.repository import ApprovalRequestRepository
from capstone_approvals.infra.observability.metrics import (
    record_request_created,
    record_resolution,
    record_vote,
    record_vote_retry,
)

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255

# Driver messages of transient lock/serialization failures
_CONFLICT_MARKERS = (
    "database is locked",
    "could not serialize access",
    "deadlock detected",
)


def is_storage_conflict(exc: BaseException) -> bool:
    """Whether ``exc`` is a concurrent-transaction conflict worth retrying."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in message for marker in _CONFLICT_MARKERS)
    return False


class ApprovalService:
    """Service for managing approval requests.

    Provides:
    - submit: create a request and its roster atomically
    - vote: record one recipient decision and resolve on majority
    - read views over persisted requests
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        action_runner: ActionRunner | None = None,
    ) -> None:
        """Initialize approval service.

        Args:
            session: Database session
            settings: Application settings (defaults to the global settings)
            action_runner: Runner for resolution actions (built from settings if omitted)
        """
        self.session = session
        self.settings = settings or get_settings()
        self.repository = ApprovalRequestRepository(session)
        self.action_runner = action_runner or ActionRunner(self.settings.approval_actions)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def submit(
        self,
        *,
        title: str,
        requested_by: int,
        recipient_ids: Iterable[int],
        action_key: str,
        description: str | None = None,
        action_payload: dict[str, Any] | None = None,
    ) -> ApprovalRequestModel:
        """Create a pending approval request with its roster.

        The request row and every recipient row are written in one
        transaction: either all of them exist afterwards or none do.

        Args:
            title: Request title
            requested_by: User id of the requester
            recipient_ids: User ids entitled to vote (deduplicated)
            action_key: Registered action executed on resolution
            description: Optional long description
            action_payload: Opaque payload handed to the action handler

        Returns:
            Created approval request with its recipients

        Raises:
            ApprovalValidationError: If any field is invalid
        """
        errors: dict[str, list[str]] = {}

        title = (title or "").strip()
        if not title:
            errors["title"] = ["The title field is required."]
        elif len(title) > TITLE_MAX_LENGTH:
            errors["title"] = [f"The title may not be greater than {TITLE_MAX_LENGTH} characters."]

        if not self.action_runner.is_registered(action_key):
            errors["action_key"] = [f"The selected action key is invalid: {action_key!r}."]

        roster: Roster | None = None
        try:
            roster = Roster.from_ids(recipient_ids)
        except ApprovalValidationError as e:
            errors.update(e.errors)

        if errors or roster is None:
            raise ApprovalValidationError("The given data was invalid.", errors=errors)

        request = ApprovalRequestModel(
            title=title,
            description=description,
            requested_by=requested_by,
            action_key=action_key,
            action_payload=action_payload if action_payload is not None else {},
            status=ApprovalStatus.PENDING.value,
        )
        decisions = [ApprovalRequestRecipient(user_id=user_id) for user_id in roster.user_ids]

        try:
            await self.repository.add_request_with_decisions(request, decisions)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        record_request_created(action_key)
        logger.info(
            "Approval request submitted",
            extra={
                "approval_request_id": request.id,
                "requested_by": requested_by,
                "action_key": action_key,
                "recipient_count": len(roster),
            },
        )

        return request

    async def submit_payload(
        self, payload: ApprovalRequestCreate, requested_by: int
    ) -> ApprovalRequestModel:
        """Create a request from a validated creation payload."""
        return await self.submit(
            title=payload.title,
            description=payload.description,
            action_key=payload.action_key,
            action_payload=payload.action_payload,
            requested_by=requested_by,
            recipient_ids=payload.recipient_ids,
        )

    async def vote(
        self,
        request_id: int,
        voter_id: int,
        decision: Decision | str,
        comment: str | None = None,
    ) -> ApprovalRequestModel:
        """Record ``voter_id``'s decision and resolve the request on majority.

        Preconditions are checked in order: the request exists, it is still
        pending, the voter is on the roster, and the voter has not voted yet.

        Args:
            request_id: Approval request id
            voter_id: User id of the voter
            decision: approved or rejected
            comment: Optional note stored with the decision

        Returns:
            The request as it now stands; terminal if this vote resolved it

        Raises:
            ApprovalValidationError: If the decision value is invalid
            ApprovalRequestNotFoundError: If the request does not exist
            RequestAlreadyResolvedError: If voting is closed
            NotARecipientError: If the voter is not on the roster
            DecisionAlreadyRecordedError: If the voter already voted
            VoteRetryExhaustedError: If storage conflicts persisted across all attempts
        """
        try:
            decision = Decision(decision.lower() if isinstance(decision, str) else decision)
        except ValueError:
            raise ApprovalValidationError(
                "The given data was invalid.",
                errors={"decision": ["The selected decision is invalid."]},
            ) from None

        started = time.perf_counter()
        max_attempts = self.settings.vote_max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                request, outcome = await self._vote_once(request_id, voter_id, decision, comment)
                await self.session.commit()
            except DomainError as e:
                await self.session.rollback()
                record_vote(decision.value, _outcome_label(e), time.perf_counter() - started)
                logger.info(
                    f"Vote refused: {e.message}",
                    extra={
                        "approval_request_id": request_id,
                        "user_id": voter_id,
                        "decision": decision.value,
                    },
                )
                raise
            except Exception as e:
                await self.session.rollback()
                if not is_storage_conflict(e):
                    raise

                if attempt == max_attempts:
                    record_vote(decision.value, "failed", time.perf_counter() - started)
                    logger.error(
                        "Vote transaction kept conflicting, giving up",
                        extra={
                            "approval_request_id": request_id,
                            "user_id": voter_id,
                            "attempt": attempt,
                            "max_attempts": max_attempts,
                        },
                        exc_info=True,
                    )
                    raise VoteRetryExhaustedError(request_id, max_attempts) from e

                record_vote_retry()
                delay = self._retry_delay(attempt)
                logger.warning(
                    f"Storage conflict on vote attempt {attempt}/{max_attempts}, "
                    f"retrying in {delay:.3f}s",
                    extra={
                        "approval_request_id": request_id,
                        "user_id": voter_id,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                    },
                )
                await asyncio.sleep(delay)
                continue

            duration = time.perf_counter() - started
            logger.info(
                "Decision recorded",
                extra={
                    "approval_request_id": request_id,
                    "user_id": voter_id,
                    "decision": decision.value,
                    "attempt": attempt,
                },
            )

            if outcome is None:
                record_vote(decision.value, "recorded", duration)
                return request

            record_vote(decision.value, "resolved", duration)
            record_resolution(outcome.value)
            logger.info(
                "Approval request resolved",
                extra={
                    "approval_request_id": request_id,
                    "decision": outcome.value,
                    "action_key": request.action_key,
                },
            )
            await self.action_runner.run(request, outcome)
            return request

        # range() above always returns or raises
        raise RuntimeError("Vote retry loop exited unexpectedly")

    async def _vote_once(
        self,
        request_id: int,
        voter_id: int,
        decision: Decision,
        comment: str | None,
    ) -> tuple[ApprovalRequestModel, Decision | None]:
        """One attempt of the vote transaction. The caller commits or rolls back."""
        request = await self.repository.load_request_with_decisions(request_id, for_update=True)
        if request is None:
            raise ApprovalRequestNotFoundError(request_id)

        if request.status != ApprovalStatus.PENDING.value:
            raise RequestAlreadyResolvedError(request_id, request.status)

        decisions = await self.repository.load_decisions(request_id, for_update=True)
        recipient = next((row for row in decisions if row.user_id == voter_id), None)

        if recipient is None:
            raise NotARecipientError(request_id, voter_id)

        if recipient.decision is not None:
            raise DecisionAlreadyRecordedError(request_id, voter_id)

        now = utcnow()
        recipient.decision = decision.value
        recipient.decision_at = now
        recipient.comment = comment
        # Touching the request row bumps version_id, so a concurrent vote
        # computed from the same snapshot fails its flush.
        request.updated_at = now
        await self.repository.save_request_with_decisions(request, [recipient])

        ledger = Ledger.from_rows(await self.repository.load_decisions(request_id))
        outcome = resolve(ledger)

        if outcome is not None:
            request.status = outcome.terminal_status.value
            request.resolved_decision = outcome.value
            request.resolved_at = now
            await self.repository.save_request_with_decisions(request, [])

        return request, outcome

    def _retry_delay(self, attempt: int) -> float:
        base = self.settings.vote_retry_backoff_seconds
        return base * (2 ** (attempt - 1)) + random.uniform(0, base)

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    async def get_request(self, request_id: int) -> ApprovalRequestModel:
        """Get a single approval request by ID.

        Raises:
            ApprovalRequestNotFoundError: If the request does not exist
        """
        request = await self.repository.load_request_with_decisions(request_id)
        if request is None:
            raise ApprovalRequestNotFoundError(request_id)
        return request

    async def list_requests(self) -> list[ApprovalRequestModel]:
        """List every approval request, newest first."""
        return await self.repository.list_requests()

    async def list_relevant_to(self, user_id: int) -> list[ApprovalRequestModel]:
        """List requests created by ``user_id`` or addressed to them, newest first."""
        return await self.repository.list_relevant_to(user_id)

    async def list_sent(self, user_id: int) -> list[ApprovalRequestModel]:
        """List requests created by ``user_id``, newest first."""
        return await self.repository.list_requested_by(user_id)

    async def list_received(self, user_id: int) -> list[ApprovalRequestModel]:
        """List requests where ``user_id`` is a recipient, newest first."""
        return await self.repository.list_received_by(user_id)

    async def get_sent(self, request_id: int, user_id: int) -> ApprovalRequestModel:
        """Get a request created by ``user_id``; other callers get not-found."""
        request = await self.get_request(request_id)
        if request.requested_by != user_id:
            raise ApprovalRequestNotFoundError(request_id)
        return request

    async def get_received(self, request_id: int, user_id: int) -> ApprovalRequestModel:
        """Get a request addressed to ``user_id``; other callers get not-found."""
        request = await self.get_request(request_id)
        if all(recipient.user_id != user_id for recipient in request.recipients):
            raise ApprovalRequestNotFoundError(request_id)
        return request


def _outcome_label(error: DomainError) -> str:
    if isinstance(error, ApprovalConflictError):
        return "conflict"
    if isinstance(error, NotARecipientError):
        return "forbidden"
    if isinstance(error, ApprovalRequestNotFoundError):
        return "not_found"
    return "invalid"
