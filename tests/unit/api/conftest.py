"""Fixtures for HTTP API tests."""

from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

from capstone_approvals.api.approvals import get_session_dep
from capstone_approvals.api.http import create_http_app
from capstone_approvals.api.identity import get_settings_dep
from capstone_approvals.config import Settings
from capstone_approvals.infra.db.session import DatabaseSessionManager


@pytest.fixture
def make_client():
    """Build a TestClient whose routes use a fresh database for ``settings``.

    The session manager is initialized lazily inside the client's event loop
    and closed before the client shuts down.
    """

    @contextmanager
    def _make_client(settings: Settings, **app_kwargs):
        manager = DatabaseSessionManager(settings)

        async def session_override():
            if not manager.is_initialized:
                await manager.init()
                await manager.create_all()
            async with manager.session() as session:
                yield session

        app = create_http_app(settings, **app_kwargs)
        app.dependency_overrides[get_session_dep] = session_override
        app.dependency_overrides[get_settings_dep] = lambda: settings

        with TestClient(app) as client:
            yield client
            client.portal.call(manager.close)

    return _make_client
