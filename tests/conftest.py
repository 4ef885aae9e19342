"""
Pytest fixtures for alert and API testing.
"""

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Set test environment before importing app
os.environ["AIRTABLE_API_KEY"] = "test_key"
os.environ["AIRTABLE_BASE_ID"] = "test_base"
os.environ.pop("API_KEY", None)
os.environ.pop("RAILWAY_ENVIRONMENT", None)

# Import the app module after setting env vars
import api.main as api_main


@pytest.fixture
def purchase_records() -> list[dict]:
    """Stored purchases, as seen on 2024-12-01."""
    return [
        {
            "id": "recReturnSoon",
            "fields": {
                "merchant": "Best Buy",
                "date": "2024-11-03",
                "total": "499.99",
                "tax_amount": 40.0,
                "category": "Electronics",
                "return_by": "2024-12-03",
                "warranty_ends": "2024-12-20",
            },
            "createdTime": "2024-11-03T10:00:00.000Z",
        },
        {
            "id": "recWarranty",
            "fields": {
                "merchant": "IKEA",
                "date": "2023-12-20",
                "total": "120",
                "category": "Home",
                "return_by": "2024-01-19",
                "warranty_ends": "2024-12-20",
            },
            "createdTime": "2023-12-20T10:00:00.000Z",
        },
        {
            "id": "recNothing",
            "fields": {
                "merchant": "Zara",
                "date": "2024-06-01",
                "total": "59.90",
                "category": "Clothing",
                "return_by": "2024-07-01",
                "warranty_ends": "2025-06-01",
            },
            "createdTime": "2024-06-01T10:00:00.000Z",
        },
    ]


@pytest.fixture
def default_settings() -> dict:
    return {
        "theme": "light",
        "notify_return_deadline": True,
        "notify_warranty_expiry": True,
        "return_alert_days": "7",
        "warranty_alert_days": "30",
    }


@pytest.fixture
def mock_rule_record() -> dict:
    return {
        "id": "recRule1",
        "fields": {
            "merchant_name": "Best Buy",
            "normalized_merchant_name": "best buy",
            "return_policy_days": 15,
            "warranty_months": 24,
        },
    }


@pytest.fixture
def mock_airtable_service(purchase_records, default_settings, mock_rule_record):
    """Mock AirtableService."""
    mock = MagicMock()
    mock.list_purchases.return_value = purchase_records
    mock.get_purchase.return_value = purchase_records[0]
    mock.find_by_hash.return_value = None
    mock.get_settings.return_value = default_settings
    mock.update_settings.side_effect = lambda fields: {**default_settings, **fields}
    mock.list_merchant_rules.return_value = [mock_rule_record]
    mock.get_merchant_rule.return_value = None
    mock.create_merchant_rule.return_value = mock_rule_record
    mock.update_merchant_rule.return_value = mock_rule_record
    mock.delete_merchant_rule.return_value = True
    return mock


@pytest.fixture
def client(mock_airtable_service):
    """
    Test client with mocked dependencies.

    Mocks:
    - AirtableService (no real Airtable calls)
    """
    with patch.object(api_main, "get_airtable", return_value=mock_airtable_service):
        yield TestClient(api_main.app)
