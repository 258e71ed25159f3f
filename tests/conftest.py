"""Pytest configuration and shared fixtures."""

import httpx
import pytest
from fastapi.testclient import TestClient

from fakes import COMMENTS_DB, EVENTS_DB, PEOPLE_DB, PRODUCTS_DB, REVENUE_DB, FakeStripe, FakeUpstream
from notion_events.config import Settings, get_settings
from notion_events.dependencies import get_http_client
from notion_events.main import app
from notion_events.notion_service import NotionClient
from notion_events.stripe_service import StripeClient


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def fake_stripe(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    fake.install(monkeypatch)
    return fake


@pytest.fixture
def settings() -> Settings:
    return Settings(
        notion_token="secret_notion_token_1234",
        events_database_id=EVENTS_DB,
        people_database_id=PEOPLE_DB,
        products_database_id=PRODUCTS_DB,
        comments_database_id=COMMENTS_DB,
        revenue_database_id=REVENUE_DB,
        stripe_secret_key="sk_test_key_9876",
    )


@pytest.fixture
def notion(upstream, settings) -> NotionClient:
    return NotionClient(upstream.client(), settings.notion_token)


@pytest.fixture
def stripe_client(fake_stripe, settings) -> StripeClient:
    return StripeClient(settings.stripe_secret_key)


@pytest.fixture
def client(upstream, fake_stripe, settings):
    async def http_client_override():
        async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
            yield http

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_http_client] = http_client_override
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
