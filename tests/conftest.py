"""Shared fixtures."""
from datetime import datetime, timezone

import pytest

from claude_receipts import create_app, db
from claude_receipts.receipt import ModelUsageRecord, ReceiptContent


@pytest.fixture
def app():
    """Flask app on an in-memory database."""
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sonnet_record():
    return ModelUsageRecord(
        model="claude-sonnet-4-5-20250929",
        input_tokens=12345,
        output_tokens=6789,
        cache_write_tokens=1000,
        cache_read_tokens=250000,
        cost=3.5,
    )


@pytest.fixture
def receipt(sonnet_record):
    """A receipt with two models, the second without cache usage."""
    return ReceiptContent(
        location="Brooklyn, NY",
        session="fuzzy-purple-otter",
        timestamp=datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc),
        records=(
            sonnet_record,
            ModelUsageRecord(model="claude-3-haiku-20240307", input_tokens=400,
                             output_tokens=120, cost=0.02),
        ),
        total_cost=3.52,
        timezone="UTC",
    )


@pytest.fixture
def receipt_payload():
    """A receipt as posted to the web service."""
    return {
        "sessionSlug": "fuzzy-purple-otter",
        "location": "Brooklyn, NY",
        "sessionDate": "2025-01-15T10:30:00Z",
        "timezone": "UTC",
        "totalCost": 1.23,
        "modelBreakdowns": [
            {
                "modelName": "claude-sonnet-4-5-20250101",
                "inputTokens": 100,
                "outputTokens": 50,
                "cacheCreationTokens": 0,
                "cacheReadTokens": 0,
                "cost": 1.23,
            }
        ],
    }
