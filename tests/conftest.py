"""Shared test fixtures.

Provides:
- Settings with test credentials (no .env file)
- FakeHubSpot / FakeWebhooks instances (see tests/fakes.py)
- An ASGI client for the full app with settings and transports overridden
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.sketch_review.api.deps import get_crm_transport, get_webhook_transport
from src.sketch_review.config import Settings, get_settings
from tests.fakes import ALERT_URL, NOTIFY_URL, TEST_SECRET, FakeHubSpot, FakeWebhooks


# ── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    """Settings with every integration configured."""
    return Settings(
        _env_file=None,
        HUBSPOT_TOKEN="test-token",
        PO_QUOTE_SECRET=TEST_SECRET,
        ERROR_ALERT_WEBHOOK_URL=ALERT_URL,
        PO_NOTIFICATION_WEBHOOK_URL=NOTIFY_URL,
    )


@pytest.fixture
def hubspot() -> FakeHubSpot:
    return FakeHubSpot()


@pytest.fixture
def webhooks() -> FakeWebhooks:
    return FakeWebhooks()


@pytest.fixture
def app(settings, hubspot, webhooks):
    """Full application with settings and upstream transports overridden."""
    from src.sketch_review.main import create_app

    application = create_app()
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_crm_transport] = lambda: hubspot.transport
    application.dependency_overrides[get_webhook_transport] = lambda: webhooks.transport
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
