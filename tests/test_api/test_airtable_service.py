"""
Tests for the Airtable store, with pyairtable tables mocked out.
"""

from unittest.mock import MagicMock, patch

import pytest

from alerts.evaluator import NotificationSettings
from api.services.airtable import (
    DEFAULT_SETTINGS,
    AirtableService,
    DuplicateMerchantRuleError,
    to_merchant_rule,
    to_notification_settings,
    to_purchase,
)


@pytest.fixture
def service():
    """AirtableService whose tables are MagicMocks."""
    with patch("api.services.airtable.Api") as mock_api:
        mock_api.return_value.table.side_effect = lambda base_id, name: MagicMock(name=name)
        yield AirtableService()


class TestInit:
    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("AIRTABLE_API_KEY", raising=False)
        with pytest.raises(ValueError, match="AIRTABLE_API_KEY"):
            AirtableService()

    def test_requires_base_id(self, monkeypatch):
        monkeypatch.delenv("AIRTABLE_BASE_ID", raising=False)
        with pytest.raises(ValueError, match="AIRTABLE_BASE_ID"):
            AirtableService()


class TestConverters:
    def test_to_purchase(self, purchase_records):
        purchase = to_purchase(purchase_records[0])
        assert purchase.id == "recReturnSoon"
        assert purchase.merchant == "Best Buy"
        assert purchase.return_by == "2024-12-03"
        assert purchase.warranty_ends == "2024-12-20"

    def test_to_notification_settings(self):
        assert to_notification_settings(DEFAULT_SETTINGS) == NotificationSettings()

    def test_to_merchant_rule(self, mock_rule_record):
        rule = to_merchant_rule(mock_rule_record)
        assert rule.id == "recRule1"
        assert rule.normalized_merchant_name == "best buy"
        assert rule.warranty_months == 24


class TestPurchases:
    def test_search_filters_and_sorts(self, service, purchase_records):
        service.purchases_table.all.return_value = purchase_records
        results = service.list_purchases(search="E")
        # Zara / Clothing has no "e"; results are newest first
        assert [r["id"] for r in results] == ["recReturnSoon", "recWarranty"]

    def test_search_by_total(self, service, purchase_records):
        service.purchases_table.all.return_value = purchase_records
        results = service.list_purchases(search="59.9")
        assert [r["id"] for r in results] == ["recNothing"]

    def test_category_uses_formula(self, service):
        service.purchases_table.all.return_value = []
        service.list_purchases(category="Home")
        formula = service.purchases_table.all.call_args.kwargs["formula"]
        assert "category" in str(formula)
        assert "Home" in str(formula)

    def test_limit(self, service, purchase_records):
        service.purchases_table.all.return_value = purchase_records
        assert len(service.list_purchases(limit=1)) == 1

    def test_no_limit_returns_everything(self, service):
        records = [
            {"id": f"rec{i}", "fields": {"merchant": "Acme"}, "createdTime": f"2024-11-01T00:00:{i % 60:02d}.000Z"}
            for i in range(1001)
        ]
        records.append({"id": "recOld", "fields": {"merchant": "Acme"}, "createdTime": "2023-12-03T10:00:00.000Z"})
        service.purchases_table.all.return_value = records

        results = service.list_purchases(limit=None)

        assert len(results) == 1002
        assert results[-1]["id"] == "recOld"

    def test_get_missing_returns_none(self, service):
        service.purchases_table.get.side_effect = Exception("404")
        assert service.get_purchase("nope") is None

    def test_create_drops_none_values(self, service):
        service.create_purchase({"merchant": "Acme", "notes": None})
        fields = service.purchases_table.create.call_args.args[0]
        assert fields["merchant"] == "Acme"
        assert "notes" not in fields
        assert "created_at" in fields


class TestSettings:
    def test_defaults_when_no_record(self, service):
        service.settings_table.first.return_value = None
        assert service.get_settings() == DEFAULT_SETTINGS

    def test_unchecked_boxes_read_as_false(self, service):
        service.settings_table.first.return_value = {
            "id": "recS",
            "fields": {"notify_warranty_expiry": True, "return_alert_days": "3"},
        }
        settings = service.get_settings()
        assert settings["notify_return_deadline"] is False
        assert settings["notify_warranty_expiry"] is True
        assert settings["return_alert_days"] == "3"
        assert settings["warranty_alert_days"] == "30"

    def test_update_creates_record(self, service):
        service.settings_table.first.return_value = None
        service.settings_table.create.side_effect = lambda fields: {"id": "recS", "fields": fields}
        settings = service.update_settings({"return_alert_days": "10"})
        assert settings["return_alert_days"] == "10"
        assert settings["notify_return_deadline"] is True

    def test_update_existing_record(self, service):
        service.settings_table.first.return_value = {"id": "recS", "fields": {}}
        service.settings_table.update.return_value = {
            "id": "recS",
            "fields": {"notify_return_deadline": True, "notify_warranty_expiry": True, "theme": "dark"},
        }
        settings = service.update_settings({"theme": "dark"})
        service.settings_table.update.assert_called_once_with("recS", {"theme": "dark"})
        assert settings["theme"] == "dark"


class TestMerchantRules:
    def test_create_duplicate_raises(self, service, mock_rule_record):
        service.rules_table.first.return_value = mock_rule_record
        with pytest.raises(DuplicateMerchantRuleError):
            service.create_merchant_rule("BEST BUY", 10, 12)
        service.rules_table.create.assert_not_called()

    def test_create_stores_normalized_name(self, service):
        service.rules_table.first.return_value = None
        service.create_merchant_rule("  Best Buy", 10, 12)
        fields = service.rules_table.create.call_args.args[0]
        assert fields["normalized_merchant_name"] == "best buy"
        assert fields["return_policy_days"] == 10

    def test_update_missing(self, service):
        service.rules_table.get.side_effect = Exception("404")
        assert service.update_merchant_rule("nope", {"warranty_months": 1}) is None

    def test_rename_clash(self, service, mock_rule_record):
        service.rules_table.get.return_value = {"id": "recOther", "fields": {}}
        service.rules_table.first.return_value = mock_rule_record
        with pytest.raises(DuplicateMerchantRuleError):
            service.update_merchant_rule("recOther", {"merchant_name": "Best Buy"})

    def test_rename_same_rule(self, service, mock_rule_record):
        service.rules_table.get.return_value = mock_rule_record
        service.rules_table.first.return_value = mock_rule_record
        service.update_merchant_rule("recRule1", {"merchant_name": "Best Buy "})
        fields = service.rules_table.update.call_args.args[1]
        assert fields["normalized_merchant_name"] == "best buy"
        assert "updated_at" in fields

    def test_delete(self, service, mock_rule_record):
        service.rules_table.get.return_value = mock_rule_record
        assert service.delete_merchant_rule("recRule1") is True
        service.rules_table.delete.assert_called_once_with("recRule1")

    def test_delete_missing(self, service):
        service.rules_table.get.side_effect = Exception("404")
        assert service.delete_merchant_rule("nope") is False
