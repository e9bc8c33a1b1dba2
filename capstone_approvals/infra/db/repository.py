"""Repository for approval requests and their recipient decisions.

The request row and its recipient rows are always loaded and saved together,
so the vote transaction stays a property of the repository and its session
rather than of in-memory object graphs.
"""

from collections.abc import Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from capstone_approvals.infra.db.models import ApprovalRequest, ApprovalRequestRecipient


class ApprovalRequestRepository:
    """Async persistence operations for approval requests."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_request_with_decisions(
        self,
        request: ApprovalRequest,
        decisions: Sequence[ApprovalRequestRecipient],
    ) -> ApprovalRequest:
        """Stage a new request together with its full roster and flush both."""
        request.recipients = list(decisions)
        self.session.add(request)
        await self.session.flush()
        return request

    async def load_request_with_decisions(
        self,
        request_id: int,
        *,
        for_update: bool = False,
    ) -> ApprovalRequest | None:
        """Load a request and its recipients, bypassing stale identity-map state.

        Args:
            request_id: Approval request id
            for_update: Lock the request row (PostgreSQL; a no-op on SQLite)

        Returns:
            The request, or None if it does not exist
        """
        query = (
            select(ApprovalRequest)
            .where(ApprovalRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def load_decisions(
        self,
        request_id: int,
        *,
        for_update: bool = False,
    ) -> list[ApprovalRequestRecipient]:
        """Re-read the full ledger of a request from the database."""
        query = (
            select(ApprovalRequestRecipient)
            .where(ApprovalRequestRecipient.approval_request_id == request_id)
            .order_by(ApprovalRequestRecipient.id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save_request_with_decisions(
        self,
        request: ApprovalRequest,
        decisions: Sequence[ApprovalRequestRecipient],
    ) -> None:
        """Flush pending changes of a request and its recipients.

        Raises:
            sqlalchemy.orm.exc.StaleDataError: If another transaction updated the
                request since it was loaded
        """
        self.session.add(request)
        self.session.add_all(decisions)
        await self.session.flush()

    async def list_requests(self) -> list[ApprovalRequest]:
        """Every request, newest first."""
        query = select(ApprovalRequest).order_by(
            ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc()
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_requested_by(self, user_id: int) -> list[ApprovalRequest]:
        """Requests created by ``user_id``, newest first."""
        query = (
            select(ApprovalRequest)
            .where(ApprovalRequest.requested_by == user_id)
            .order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_received_by(self, user_id: int) -> list[ApprovalRequest]:
        """Requests where ``user_id`` is on the roster, newest first."""
        query = (
            select(ApprovalRequest)
            .where(ApprovalRequest.id.in_(self._requests_with_recipient(user_id)))
            .order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_relevant_to(self, user_id: int) -> list[ApprovalRequest]:
        """Requests created by ``user_id`` or listing them as a recipient, newest first."""
        query = (
            select(ApprovalRequest)
            .where(
                or_(
                    ApprovalRequest.requested_by == user_id,
                    ApprovalRequest.id.in_(self._requests_with_recipient(user_id)),
                )
            )
            .order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _requests_with_recipient(user_id: int):
        return select(ApprovalRequestRecipient.approval_request_id).where(
            ApprovalRequestRecipient.user_id == user_id
        )
