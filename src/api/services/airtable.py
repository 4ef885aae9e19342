"""
Airtable service for purchases, notification settings and merchant rules.
"""

import os
from datetime import datetime, timezone
from typing import Any

from pyairtable import Api, Table
from pyairtable.formulas import match

from alerts.evaluator import (
    DEFAULT_RETURN_ALERT_DAYS,
    DEFAULT_WARRANTY_ALERT_DAYS,
    NotificationSettings,
    Purchase,
)
from alerts.rules import MerchantRule, normalize_merchant_name


DEFAULT_SETTINGS = {
    "theme": "light",
    "notify_return_deadline": True,
    "notify_warranty_expiry": True,
    "return_alert_days": str(DEFAULT_RETURN_ALERT_DAYS),
    "warranty_alert_days": str(DEFAULT_WARRANTY_ALERT_DAYS),
}


class DuplicateMerchantRuleError(ValueError):
    """Raised when a rule already exists for the same normalized merchant name."""

    def __init__(self, merchant_name: str):
        self.merchant_name = merchant_name
        super().__init__(f'A rule for merchant "{merchant_name}" already exists')


def to_purchase(record: dict) -> Purchase:
    """Convert an Airtable purchase record to the evaluator's input type."""
    fields = record.get("fields", {})
    return Purchase(
        id=record["id"],
        merchant=fields.get("merchant", ""),
        return_by=fields.get("return_by"),
        warranty_ends=fields.get("warranty_ends"),
    )


def to_notification_settings(fields: dict | None) -> NotificationSettings:
    """Convert stored settings fields to NotificationSettings."""
    return NotificationSettings.from_record(fields)


def to_merchant_rule(record: dict) -> MerchantRule:
    """Convert an Airtable merchant rule record to a MerchantRule."""
    fields = record.get("fields", {})
    return MerchantRule(
        id=record["id"],
        merchant_name=fields.get("merchant_name", ""),
        return_policy_days=int(fields.get("return_policy_days", 0)),
        warranty_months=int(fields.get("warranty_months", 0)),
    )


def _matches_search(fields: dict, query: str) -> bool:
    lower_query = query.lower()
    return (
        lower_query in str(fields.get("merchant", "")).lower()
        or lower_query in str(fields.get("category") or "Other").lower()
        or query in str(fields.get("total", ""))
        or query in str(fields.get("date", ""))
    )


def _merge_settings(stored: dict) -> dict:
    """Fill defaults into a stored settings record."""
    # Airtable omits unchecked checkbox fields from the record
    return {
        **DEFAULT_SETTINGS,
        "notify_return_deadline": False,
        "notify_warranty_expiry": False,
        **stored,
    }


def _newest_first(records: list[dict]) -> list[dict]:
    return sorted(records, key=lambda r: r.get("createdTime", ""), reverse=True)


class AirtableService:
    """Service for the Purchases, Settings and MerchantRules tables."""

    def __init__(self):
        api_key = os.environ.get("AIRTABLE_API_KEY")
        base_id = os.environ.get("AIRTABLE_BASE_ID")

        if not api_key:
            raise ValueError("AIRTABLE_API_KEY not set")
        if not base_id:
            raise ValueError("AIRTABLE_BASE_ID not set")

        self.api = Api(api_key)
        self.base_id = base_id
        self.purchases_table: Table = self.api.table(base_id, "Purchases")
        self.settings_table: Table = self.api.table(base_id, "Settings")
        self.rules_table: Table = self.api.table(base_id, "MerchantRules")

    # --- Purchases ---

    def list_purchases(
        self,
        category: str | None = None,
        search: str | None = None,
        limit: int | None = 100,
    ) -> list[dict]:
        """
        List purchases, newest first.

        Args:
            category: Only purchases in this category
            search: Case-insensitive match on merchant, category, total or date
            limit: Max records to return, or None for all of them

        Returns:
            List of purchase records
        """
        formula = match({"category": category}) if category else None
        records = self.purchases_table.all(formula=formula)

        # Airtable has no substring search across fields, filter here
        if search:
            records = [r for r in records if _matches_search(r.get("fields", {}), search)]

        records = _newest_first(records)
        return records if limit is None else records[:limit]

    def get_purchase(self, record_id: str) -> dict | None:
        """Get a purchase by its Airtable record ID."""
        try:
            return self.purchases_table.get(record_id)
        except Exception:
            return None

    def find_by_hash(self, purchase_hash: str) -> dict | None:
        """Find a purchase with the same receipt fingerprint."""
        return self.purchases_table.first(formula=match({"hash": purchase_hash}))

    def create_purchase(self, fields: dict) -> dict:
        """Create a purchase record."""
        fields = {**fields, "created_at": datetime.now(timezone.utc).isoformat()}
        return self.purchases_table.create({k: v for k, v in fields.items() if v is not None})

    def update_purchase(self, record_id: str, fields: dict) -> dict:
        """Update a purchase record."""
        return self.purchases_table.update(record_id, fields)

    # --- Settings ---

    def _settings_record(self) -> dict | None:
        return self.settings_table.first()

    def get_settings(self) -> dict:
        """Get notification settings, with defaults when nothing is stored yet."""
        record = self._settings_record()
        if not record:
            return dict(DEFAULT_SETTINGS)
        return _merge_settings(record.get("fields", {}))

    def update_settings(self, fields: dict) -> dict:
        """Create or update the settings record, returning the merged settings."""
        record = self._settings_record()
        if record:
            updated = self.settings_table.update(record["id"], fields)
        else:
            updated = self.settings_table.create({**DEFAULT_SETTINGS, **fields})
        return _merge_settings(updated.get("fields", {}))

    # --- Merchant rules ---

    def list_merchant_rules(self) -> list[dict]:
        """List all merchant rules."""
        return self.rules_table.all()

    def get_merchant_rule(self, merchant_name: str) -> dict | None:
        """Find the rule for a merchant by normalized name."""
        key = normalize_merchant_name(merchant_name)
        return self.rules_table.first(formula=match({"normalized_merchant_name": key}))

    def get_merchant_rule_by_id(self, record_id: str) -> dict | None:
        """Get a merchant rule by its Airtable record ID."""
        try:
            return self.rules_table.get(record_id)
        except Exception:
            return None

    def create_merchant_rule(
        self,
        merchant_name: str,
        return_policy_days: int,
        warranty_months: int,
    ) -> dict:
        """
        Create a merchant rule.

        Raises:
            DuplicateMerchantRuleError: if a rule exists for the same merchant
        """
        if self.get_merchant_rule(merchant_name):
            raise DuplicateMerchantRuleError(merchant_name)

        now = datetime.now(timezone.utc).isoformat()
        return self.rules_table.create({
            "merchant_name": merchant_name,
            "normalized_merchant_name": normalize_merchant_name(merchant_name),
            "return_policy_days": return_policy_days,
            "warranty_months": warranty_months,
            "created_at": now,
            "updated_at": now,
        })

    def update_merchant_rule(self, record_id: str, fields: dict[str, Any]) -> dict | None:
        """
        Update a merchant rule. Returns None if the rule does not exist.

        Raises:
            DuplicateMerchantRuleError: if renaming clashes with another rule
        """
        if not self.get_merchant_rule_by_id(record_id):
            return None

        updates = dict(fields)
        merchant_name = updates.get("merchant_name")
        if merchant_name:
            existing = self.get_merchant_rule(merchant_name)
            if existing and existing["id"] != record_id:
                raise DuplicateMerchantRuleError(merchant_name)
            updates["normalized_merchant_name"] = normalize_merchant_name(merchant_name)

        updates["updated_at"] = datetime.now(timezone.utc).isoformat()
        return self.rules_table.update(record_id, updates)

    def delete_merchant_rule(self, record_id: str) -> bool:
        """Delete a merchant rule. Returns False if it does not exist."""
        if not self.get_merchant_rule_by_id(record_id):
            return False
        self.rules_table.delete(record_id)
        return True
