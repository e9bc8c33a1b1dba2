"""Concurrent voting against a shared file-backed database.

Every voter runs in its own session, so the votes race through real
transactions and the optimistic version check on the request row.
"""

import asyncio

import pytest

from capstone_approvals.config import Settings
from capstone_approvals.domain.exceptions import RequestAlreadyResolvedError
from capstone_approvals.domain.services.actions import ActionRunner, ApprovalAction
from capstone_approvals.domain.services.approval import ApprovalService
from capstone_approvals.infra.db.session import DatabaseSessionManager


class CountingAction(ApprovalAction):
    def __init__(self) -> None:
        self.calls: list[tuple[int, str]] = []

    async def handle_approval(self, request) -> None:
        self.calls.append((request.id, "approved"))

    async def handle_rejection(self, request) -> None:
        self.calls.append((request.id, "rejected"))


@pytest.fixture
def counter() -> CountingAction:
    return CountingAction()


@pytest.fixture
def runner(counter: CountingAction) -> ActionRunner:
    return ActionRunner({"count": counter})


async def create_request(
    manager: DatabaseSessionManager,
    settings: Settings,
    runner: ActionRunner,
    recipients: list[int],
) -> int:
    async with manager.session() as session:
        request = await ApprovalService(session, settings, runner).submit(
            title="Concurrent request",
            requested_by=1,
            recipient_ids=recipients,
            action_key="count",
        )
        return request.id


async def cast(
    manager: DatabaseSessionManager,
    settings: Settings,
    runner: ActionRunner,
    request_id: int,
    voter: int,
    decision: str,
) -> str:
    """Vote in a dedicated session; return the outcome observed by the voter."""
    try:
        async with manager.session() as session:
            request = await ApprovalService(session, settings, runner).vote(
                request_id, voter, decision
            )
            return request.status
    except RequestAlreadyResolvedError:
        return "conflict"


async def load(manager: DatabaseSessionManager, settings: Settings, request_id: int):
    async with manager.session() as session:
        request = await ApprovalService(session, settings).get_request(request_id)
        decisions = {r.user_id: r.decision for r in request.recipients}
        return request.status, request.resolved_decision, request.resolved_at, decisions


@pytest.mark.parametrize("roster_size", [2, 3, 5])
async def test_unanimous_concurrent_votes_resolve_exactly_once(
    session_manager: DatabaseSessionManager,
    file_settings: Settings,
    runner: ActionRunner,
    counter: CountingAction,
    roster_size: int,
) -> None:
    recipients = list(range(100, 100 + roster_size))
    request_id = await create_request(session_manager, file_settings, runner, recipients)

    outcomes = await asyncio.gather(
        *(
            cast(session_manager, file_settings, runner, request_id, voter, "approved")
            for voter in recipients
        )
    )

    threshold = roster_size // 2 + 1
    status, resolved_decision, resolved_at, decisions = await load(
        session_manager, file_settings, request_id
    )

    assert status == "approved"
    assert resolved_decision == "approved"
    assert resolved_at is not None
    assert counter.calls == [(request_id, "approved")]
    # Votes arriving after the resolving one are refused, never recorded
    assert outcomes.count("conflict") == roster_size - threshold
    assert sum(1 for d in decisions.values() if d == "approved") == threshold
    assert outcomes.count("approved") == 1
    assert outcomes.count("pending") == threshold - 1


async def test_mixed_concurrent_votes_resolve_to_majority(
    session_manager: DatabaseSessionManager,
    file_settings: Settings,
    runner: ActionRunner,
    counter: CountingAction,
) -> None:
    ballots = {201: "rejected", 202: "approved", 203: "rejected", 204: "rejected", 205: "approved"}
    request_id = await create_request(session_manager, file_settings, runner, list(ballots))

    await asyncio.gather(
        *(
            cast(session_manager, file_settings, runner, request_id, voter, decision)
            for voter, decision in ballots.items()
        )
    )

    status, resolved_decision, _, decisions = await load(
        session_manager, file_settings, request_id
    )

    assert status == "rejected"
    assert resolved_decision == "rejected"
    assert list(decisions.values()).count("rejected") == 3
    assert list(decisions.values()).count("approved") <= 2
    assert counter.calls == [(request_id, "rejected")]


async def test_concurrent_double_vote_records_once(
    session_manager: DatabaseSessionManager,
    file_settings: Settings,
    runner: ActionRunner,
) -> None:
    request_id = await create_request(session_manager, file_settings, runner, [301, 302, 303])

    async def vote_twice() -> list[str]:
        results = []
        for coro in asyncio.as_completed(
            [
                cast(session_manager, file_settings, runner, request_id, 301, "approved"),
                cast(session_manager, file_settings, runner, request_id, 301, "rejected"),
            ]
        ):
            try:
                results.append(await coro)
            except Exception as e:
                results.append(type(e).__name__)
        return results

    results = await vote_twice()
    status, _, _, decisions = await load(session_manager, file_settings, request_id)

    assert status == "pending"
    assert decisions[301] in ("approved", "rejected")
    assert results.count("DecisionAlreadyRecordedError") == 1
    assert results.count("pending") == 1
