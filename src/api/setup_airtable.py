"""
Setup script to create the SlipSafe tables in Airtable.

Run once after creating an empty Airtable base:
    PYTHONPATH=src python -m api.setup_airtable

Requires .env with:
    AIRTABLE_API_KEY=patXXXXXXXXXXXXXX
    AIRTABLE_BASE_ID=appXXXXXXXXXXXXXX
"""

import os
import sys

from dotenv import load_dotenv
from pyairtable import Api

from api.models import CATEGORIES

ISO_DATE = {"dateFormat": {"name": "iso"}}
UTC_DATETIME = {
    "dateFormat": {"name": "iso"},
    "timeFormat": {"name": "24hour"},
    "timeZone": "utc",
}


def purchase_fields() -> list[dict]:
    """Purchases table schema. Primary field (first) must be text type."""
    return [
        {"name": "merchant", "type": "singleLineText"},
        {"name": "date", "type": "date", "options": ISO_DATE},
        # Amounts stay text so the receipt fingerprint matches what was hashed
        {"name": "total", "type": "singleLineText"},
        {"name": "tax_amount", "type": "number", "options": {"precision": 2}},
        {"name": "vat_amount", "type": "number", "options": {"precision": 2}},
        {"name": "return_by", "type": "date", "options": ISO_DATE},
        {"name": "warranty_ends", "type": "date", "options": ISO_DATE},
        {
            "name": "category",
            "type": "singleSelect",
            "options": {"choices": [{"name": c} for c in CATEGORIES]},
        },
        {"name": "hash", "type": "singleLineText"},
        {"name": "notes", "type": "multilineText"},
        {"name": "created_at", "type": "dateTime", "options": UTC_DATETIME},
    ]


def settings_fields() -> list[dict]:
    """Settings table schema, one record per base."""
    return [
        {"name": "theme", "type": "singleLineText"},
        {"name": "notify_return_deadline", "type": "checkbox", "options": {"icon": "check", "color": "greenBright"}},
        {"name": "notify_warranty_expiry", "type": "checkbox", "options": {"icon": "check", "color": "greenBright"}},
        {"name": "return_alert_days", "type": "singleLineText"},
        {"name": "warranty_alert_days", "type": "singleLineText"},
    ]


def merchant_rule_fields() -> list[dict]:
    """MerchantRules table schema."""
    return [
        {"name": "merchant_name", "type": "singleLineText"},
        {"name": "normalized_merchant_name", "type": "singleLineText"},
        {"name": "return_policy_days", "type": "number", "options": {"precision": 0}},
        {"name": "warranty_months", "type": "number", "options": {"precision": 0}},
        {"name": "created_at", "type": "dateTime", "options": UTC_DATETIME},
        {"name": "updated_at", "type": "dateTime", "options": UTC_DATETIME},
    ]


TABLES = [
    ("Purchases", purchase_fields, "Receipts with return and warranty deadlines"),
    ("Settings", settings_fields, "Notification preferences for deadline alerts"),
    ("MerchantRules", merchant_rule_fields, "Merchant-specific return and warranty policies"),
]


def create_table(api: Api, base_id: str, name: str, fields: list[dict], description: str) -> None:
    """Create a table unless one with the same name already exists."""
    base = api.base(base_id)

    existing_tables = [t.name.lower() for t in base.schema().tables]
    if name.lower() in existing_tables:
        print(f"Table '{name}' already exists. Skipping creation.")
        return

    print(f"Creating '{name}' table with {len(fields)} fields...")
    table = base.create_table(name=name, fields=fields, description=description)
    print(f"Created table: {table.name} (ID: {table.id})")
    for field in fields:
        print(f"  - {field['name']} ({field['type']})")


def main():
    load_dotenv()

    api_key = os.getenv("AIRTABLE_API_KEY")
    base_id = os.getenv("AIRTABLE_BASE_ID")

    if not api_key:
        print("Error: AIRTABLE_API_KEY not found in .env")
        sys.exit(1)
    if not base_id:
        print("Error: AIRTABLE_BASE_ID not found in .env")
        sys.exit(1)

    print(f"Connecting to Airtable base: {base_id}")
    api = Api(api_key)

    try:
        schema = api.base(base_id).schema()
        print(f"Connected to base with {len(schema.tables)} existing table(s)")
    except Exception as e:
        print(f"Error connecting to Airtable: {e}")
        print("\nMake sure your API token has these scopes:")
        print("  - data.records:read")
        print("  - data.records:write")
        print("  - schema.bases:read")
        print("  - schema.bases:write")
        sys.exit(1)

    for name, fields, description in TABLES:
        create_table(api, base_id, name, fields(), description)

    print("\nSetup complete!")


if __name__ == "__main__":
    main()
