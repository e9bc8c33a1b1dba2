"""Tests for the HTTP application shell."""

import pytest
from fastapi.testclient import TestClient

from capstone_approvals.api.http import create_http_app
from capstone_approvals.config import Settings
from capstone_approvals.domain.services.actions import NoOpAction


@pytest.fixture
def client(settings: Settings) -> TestClient:
    return TestClient(create_http_app(settings))


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["environment"] == "dev"


def test_metrics_exposition(client: TestClient) -> None:
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "capstone_approvals_votes_total" in response.text


def test_correlation_id_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})

    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_correlation_id_is_generated(client: TestClient) -> None:
    response = client.get("/health")

    assert response.headers["X-Correlation-ID"]


@pytest.mark.parametrize("header", [None, "", "abc", "-3", "0"])
def test_invalid_identity_is_unauthenticated(client: TestClient, header) -> None:
    headers = {} if header is None else {"X-User-Id": header}

    response = client.get("/api/pg/approval-requests/relevant", headers=headers)

    assert response.status_code == 401
    assert response.json() == {"message": "Unauthenticated."}


def test_custom_prefix_and_identity_header(tmp_path, make_client) -> None:
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'prefixed.db'}",
        api_prefix="/v2",
        identity_header="X-Remote-User",
    )

    with make_client(settings) as client:
        accepted = client.get("/v2/approval-requests/relevant", headers={"X-Remote-User": "5"})
        default_header = client.get(
            "/v2/approval-requests/relevant", headers={"X-User-Id": "5"}
        )
        default_prefix = client.get(
            "/api/pg/approval-requests/relevant", headers={"X-Remote-User": "5"}
        )

    assert accepted.status_code == 200
    assert accepted.json() == []
    assert default_header.status_code == 401
    assert default_header.json() == {"message": "Unauthenticated."}
    assert default_prefix.status_code == 404


def test_extra_actions_are_registered(settings: Settings) -> None:
    handler = NoOpAction()
    app = create_http_app(settings, actions={"archive": handler})

    runner = app.state.action_runner
    assert runner.action_keys == ["archive", "noop"]
    assert runner.resolve_handler("archive") is handler


def test_unknown_route_uses_message_body(client: TestClient) -> None:
    response = client.get("/nope")

    assert response.status_code == 404
    assert "message" in response.json()
