"""Tests for resolution action handlers."""

import logging
from types import SimpleNamespace

from capstone_approvals.domain.models import Decision
from capstone_approvals.domain.services.actions import ActionRunner, ApprovalAction, NoOpAction


class RecordingAction(ApprovalAction):
    def __init__(self) -> None:
        self.seen: list[tuple[str, int]] = []

    async def handle_approval(self, request) -> None:
        self.seen.append(("approval", request.id))

    async def handle_rejection(self, request) -> None:
        self.seen.append(("rejection", request.id))


class FailingAction(ApprovalAction):
    async def handle_approval(self, request) -> None:
        raise RuntimeError("boom")

    async def handle_rejection(self, request) -> None:
        raise RuntimeError("boom")


class NotAnAction:
    pass


def resolved_request(action_key: str, request_id: int = 1) -> SimpleNamespace:
    return SimpleNamespace(id=request_id, action_key=action_key)


async def test_runs_approval_and_rejection_handlers() -> None:
    recorder = RecordingAction()
    runner = ActionRunner({"record": recorder})

    assert await runner.run(resolved_request("record", 3), Decision.APPROVED)
    assert await runner.run(resolved_request("record", 4), Decision.REJECTED)

    assert recorder.seen == [("approval", 3), ("rejection", 4)]


async def test_handler_is_imported_from_dotted_path() -> None:
    runner = ActionRunner({"noop": "capstone_approvals.domain.services.actions.NoOpAction"})

    handler = runner.resolve_handler("noop")

    assert isinstance(handler, NoOpAction)
    assert runner.resolve_handler("noop") is handler
    assert await runner.run(resolved_request("noop"), Decision.APPROVED)


async def test_unknown_key_is_skipped(caplog) -> None:
    runner = ActionRunner({"noop": NoOpAction()})

    with caplog.at_level(logging.WARNING):
        ran = await runner.run(resolved_request("missing"), Decision.APPROVED)

    assert ran is False
    assert "Unknown approval request action handler" in caplog.text


async def test_unimportable_and_invalid_handlers_are_skipped() -> None:
    runner = ActionRunner(
        {
            "broken": "capstone_approvals.nowhere.Handler",
            "bare": "NoDots",
            "wrong": f"{__name__}.NotAnAction",
        }
    )

    assert runner.resolve_handler("broken") is None
    assert runner.resolve_handler("bare") is None
    assert runner.resolve_handler("wrong") is None
    assert await runner.run(resolved_request("wrong"), Decision.REJECTED) is False


async def test_failing_handler_is_logged_not_raised(caplog) -> None:
    runner = ActionRunner({"fail": FailingAction()})

    with caplog.at_level(logging.ERROR):
        ran = await runner.run(resolved_request("fail", 8), Decision.APPROVED)

    assert ran is False
    assert "Approval request action handler failed" in caplog.text


def test_register_replaces_handler() -> None:
    runner = ActionRunner({"noop": NoOpAction()})
    first = runner.resolve_handler("noop")
    replacement = RecordingAction()

    runner.register("noop", replacement)
    runner.register("extra", NoOpAction())

    assert runner.resolve_handler("noop") is replacement
    assert runner.resolve_handler("noop") is not first
    assert runner.action_keys == ["extra", "noop"]
    assert runner.is_registered("extra")
