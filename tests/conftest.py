"""Shared fixtures for Sigma LMS tests.

Route tests use a mocked Contentful client to avoid real API calls.
Cache tests use temporary SQLite databases for isolation.
"""

from typing import Optional
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from sigma.contentful import ContentfulClient, ContentfulConfig
from sigma.main import create_app
from sigma.models import Entry
from sigma.tracker import ApiCallTracker


class FakeClock:
    """Controllable time source for cache expiry tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_entry(
    entry_id: str,
    content_type: str,
    created_at: Optional[str] = "2024-01-01T00:00:00Z",
    **fields,
) -> Entry:
    """Build a validated entry the way the client returns them."""
    return Entry.model_validate({
        "sys": {
            "id": entry_id,
            "type": "Entry",
            "createdAt": created_at,
            "contentType": {"sys": {"type": "Link", "linkType": "ContentType", "id": content_type}},
        },
        "fields": fields,
    })


def fake_contentful(entries_by_type: dict) -> AsyncMock:
    """Mock client serving entries from a dict keyed by content type.

    The dict is read on every call, so tests can change CMS state between
    requests. ``fields.slug`` filters are honored.
    """
    client = AsyncMock(spec=ContentfulClient)

    def get_entries(content_type, query=None):
        items = list(entries_by_type.get(content_type, []))
        if query and "fields.slug" in query:
            items = [e for e in items if e.fields.get("slug") == query["fields.slug"]]
        if query and "limit" in query:
            items = items[: query["limit"]]
        return items

    client.get_entries.side_effect = get_entries
    return client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker():
    return ApiCallTracker()


@pytest.fixture
def test_config():
    """Fully configured Contentful settings."""
    return ContentfulConfig(space_id="space123", delivery_token="delivery-token")


@pytest.fixture
def make_client(tmp_path, clock, tracker, test_config):
    """Factory for a TestClient around an app using the given Contentful mock."""
    def _make(contentful, preview_contentful=None):
        app = create_app(
            test_config,
            tracker=tracker,
            contentful=contentful,
            preview_contentful=preview_contentful,
            database_path=str(tmp_path / "test_sigma.db"),
            clock=clock,
        )
        return TestClient(app)
    return _make
