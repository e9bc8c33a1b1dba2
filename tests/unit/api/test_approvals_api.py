"""Tests for approval request API routes.

Runs the real service against a SQLite file inside the TestClient's event
loop; only the session and settings dependencies are overridden.
"""

import pytest
from fastapi.testclient import TestClient

from capstone_approvals.config import Settings
from capstone_approvals.domain.services.actions import ApprovalAction

PREFIX = "/api/pg/approval-requests"


class RecordingAction(ApprovalAction):
    def __init__(self) -> None:
        self.calls: list[tuple[int, str]] = []

    async def handle_approval(self, request) -> None:
        self.calls.append((request.id, "approved"))

    async def handle_rejection(self, request) -> None:
        self.calls.append((request.id, "rejected"))


def as_user(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


@pytest.fixture
def recorder() -> RecordingAction:
    return RecordingAction()


@pytest.fixture
def client(file_settings: Settings, recorder: RecordingAction, make_client):
    """Create test client bound to a fresh database."""
    with make_client(file_settings, actions={"record": recorder}) as test_client:
        yield test_client


def create(client: TestClient, requester: int, recipients: list[int], **fields) -> dict:
    body = {"title": "New laptop", "action_key": "record", "recipient_ids": recipients} | fields
    response = client.post(PREFIX, json=body, headers=as_user(requester))
    assert response.status_code == 201, response.text
    return response.json()


def vote(client: TestClient, request_id: int, voter: int, decision: str):
    return client.post(
        f"{PREFIX}/{request_id}/decision",
        json={"decision": decision},
        headers=as_user(voter),
    )


class TestCreate:
    """Tests for request submission."""

    def test_create_returns_pending_resource(self, client: TestClient) -> None:
        data = create(client, 1, [7, 9, 7], description="Dev team")

        assert data["status"] == "pending"
        assert data["resolved_decision"] is None
        assert data["resolved_at"] is None
        assert data["requested_by"] == 1
        assert data["description"] == "Dev team"
        assert data["action_payload"] == {}
        assert [r["user_id"] for r in data["recipients"]] == [7, 9]
        assert all(r["decision"] is None for r in data["recipients"])
        assert data["pending_decision"] is None

    def test_create_requires_identity(self, client: TestClient) -> None:
        response = client.post(
            PREFIX, json={"title": "t", "action_key": "record", "recipient_ids": [1]}
        )

        assert response.status_code == 401
        assert response.json() == {"message": "Unauthenticated."}

    def test_create_rejects_empty_roster(self, client: TestClient) -> None:
        response = client.post(
            PREFIX,
            json={"title": "t", "action_key": "record", "recipient_ids": []},
            headers=as_user(1),
        )

        assert response.status_code == 422
        assert "recipient_ids" in response.json()["errors"]

    def test_create_rejects_boolean_recipient_ids(self, client: TestClient) -> None:
        response = client.post(
            PREFIX,
            json={"title": "t", "action_key": "record", "recipient_ids": [True, 3]},
            headers=as_user(1),
        )

        assert response.status_code == 422
        assert "recipient_ids.0" in response.json()["errors"]
        assert client.get(PREFIX).json() == []

    def test_create_rejects_unknown_action_key(self, client: TestClient) -> None:
        response = client.post(
            PREFIX,
            json={"title": "t", "action_key": "launch-rockets", "recipient_ids": [2]},
            headers=as_user(1),
        )

        assert response.status_code == 422
        assert "action_key" in response.json()["errors"]


class TestVote:
    """Tests for casting decisions."""

    def test_majority_resolves_and_runs_action(
        self, client: TestClient, recorder: RecordingAction
    ) -> None:
        request_id = create(client, 1, [10, 11, 12])["id"]

        first = vote(client, request_id, 10, "approved")
        assert first.status_code == 200
        assert first.json()["status"] == "pending"
        assert first.json()["pending_decision"] is False

        second = vote(client, request_id, 11, "APPROVED")
        assert second.status_code == 200
        assert second.json()["status"] == "approved"
        assert second.json()["resolved_decision"] == "approved"
        assert second.json()["resolved_at"] is not None
        assert recorder.calls == [(request_id, "approved")]

        third = vote(client, request_id, 12, "rejected")
        assert third.status_code == 409
        assert third.json() == {"message": "Request is already resolved."}

    def test_non_recipient_is_forbidden(self, client: TestClient) -> None:
        request_id = create(client, 1, [10])["id"]

        response = vote(client, request_id, 99, "approved")

        assert response.status_code == 403
        assert response.json() == {"message": "You are not allowed to vote on this request."}

    def test_double_vote_conflicts(self, client: TestClient) -> None:
        request_id = create(client, 1, [10, 11, 12])["id"]
        vote(client, request_id, 10, "rejected")

        response = vote(client, request_id, 10, "approved")

        assert response.status_code == 409
        assert response.json() == {
            "message": "You already submitted your decision for this request."
        }

    def test_missing_request(self, client: TestClient) -> None:
        assert vote(client, 4040, 1, "approved").status_code == 404

    def test_invalid_decision(self, client: TestClient) -> None:
        request_id = create(client, 1, [10])["id"]

        response = vote(client, request_id, 10, "maybe")

        assert response.status_code == 422
        assert "decision" in response.json()["errors"]

    def test_approve_and_reject_shortcuts(self, client: TestClient) -> None:
        request_id = create(client, 1, [10, 11])["id"]

        approved = client.post(
            f"{PREFIX}/received/{request_id}/approve",
            json={"comment": "Go ahead"},
            headers=as_user(10),
        )
        rejected = client.post(f"{PREFIX}/received/{request_id}/reject", headers=as_user(11))

        assert approved.status_code == 200
        comments = {r["user_id"]: r["comment"] for r in approved.json()["recipients"]}
        assert comments[10] == "Go ahead"
        assert rejected.status_code == 200
        assert rejected.json()["status"] == "pending"


class TestViews:
    """Tests for read views."""

    def test_show_computes_pending_decision_for_viewer(self, client: TestClient) -> None:
        request_id = create(client, 1, [10, 11, 12])["id"]
        vote(client, request_id, 10, "approved")

        as_voter = client.get(f"{PREFIX}/{request_id}", headers=as_user(10)).json()
        as_pending = client.get(f"{PREFIX}/{request_id}", headers=as_user(11)).json()
        as_outsider = client.get(f"{PREFIX}/{request_id}", headers=as_user(50)).json()
        anonymous = client.get(f"{PREFIX}/{request_id}").json()

        assert as_voter["pending_decision"] is False
        assert as_pending["pending_decision"] is True
        assert as_outsider["pending_decision"] is None
        assert anonymous["pending_decision"] is None

    def test_show_missing(self, client: TestClient) -> None:
        response = client.get(f"{PREFIX}/777")

        assert response.status_code == 404
        assert response.json() == {"message": "Approval request not found: 777"}

    def test_relevant_lists_own_and_addressed(self, client: TestClient) -> None:
        own = create(client, 1, [20])["id"]
        addressed = create(client, 2, [1, 20])["id"]
        create(client, 3, [20])

        response = client.get(f"{PREFIX}/relevant", headers=as_user(1))

        assert response.status_code == 200
        data = response.json()
        assert [item["id"] for item in data] == [addressed, own]
        assert [item["pending_decision"] for item in data] == [True, None]

    def test_list_all(self, client: TestClient) -> None:
        first = create(client, 1, [2])["id"]
        second = create(client, 3, [4])["id"]

        data = client.get(PREFIX).json()

        assert [item["id"] for item in data] == [second, first]

    def test_sent_and_received_summaries(self, client: TestClient) -> None:
        request_id = create(client, 1, [7, 9], description="Budget")["id"]

        sent = client.get(f"{PREFIX}/sent", headers=as_user(1)).json()
        received = client.get(f"{PREFIX}/received", headers=as_user(9)).json()

        assert sent == [
            {
                "id": request_id,
                "title": "New laptop",
                "status": "pending",
                "recipients": "User #7, User #9",
                "description": None,
            }
        ]
        assert [item["id"] for item in received] == [request_id]

        detail = client.get(f"{PREFIX}/received/{request_id}", headers=as_user(7))
        assert detail.status_code == 200
        assert detail.json()["description"] == "Budget"

        assert client.get(f"{PREFIX}/sent/{request_id}", headers=as_user(7)).status_code == 404
        assert (
            client.get(f"{PREFIX}/received/{request_id}", headers=as_user(1)).status_code == 404
        )
