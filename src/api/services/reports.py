"""
Spending summary over stored purchases.
"""

from collections import defaultdict
from decimal import Decimal, InvalidOperation
from typing import Any


def _amount(value: Any) -> Decimal:
    """Parse a stored amount, treating missing or bad values as zero."""
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def _group_rows(groups: dict, key_name: str) -> list[dict]:
    return [
        {
            key_name: key,
            "count": totals["count"],
            "total": _money(totals["total"]),
            "tax": _money(totals["tax"]),
            "vat": _money(totals["vat"]),
        }
        for key, totals in groups.items()
    ]


def build_spending_summary(
    purchases: list[dict],
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    """
    Aggregate purchase records by category, merchant and month.

    Args:
        purchases: Purchase field dicts (merchant, date, total, category, tax_amount, vat_amount)
        start_date: Inclusive ISO date lower bound
        end_date: Inclusive ISO date upper bound

    Returns:
        Dict with summary totals and by_category, by_merchant, by_month rows
    """
    filtered = purchases
    if start_date:
        filtered = [p for p in filtered if str(p.get("date", "")) >= start_date]
    if end_date:
        filtered = [p for p in filtered if str(p.get("date", "")) <= end_date]

    def new_bucket() -> dict:
        return {"count": 0, "total": Decimal("0"), "tax": Decimal("0"), "vat": Decimal("0")}

    by_category: dict[str, dict] = defaultdict(new_bucket)
    by_merchant: dict[str, dict] = defaultdict(new_bucket)
    by_month: dict[str, dict] = defaultdict(new_bucket)
    grand = new_bucket()

    for purchase in filtered:
        total = _amount(purchase.get("total"))
        tax = _amount(purchase.get("tax_amount"))
        vat = _amount(purchase.get("vat_amount"))

        keys = (
            (by_category, purchase.get("category") or "Other"),
            (by_merchant, purchase.get("merchant", "")),
            (by_month, str(purchase.get("date", ""))[:7]),
        )
        for buckets, key in keys:
            bucket = buckets[key]
            bucket["count"] += 1
            bucket["total"] += total
            bucket["tax"] += tax
            bucket["vat"] += vat

        grand["total"] += total
        grand["tax"] += tax
        grand["vat"] += vat

    return {
        "summary": {
            "total_receipts": len(filtered),
            "total_spent": _money(grand["total"]),
            "total_tax": _money(grand["tax"]),
            "total_vat": _money(grand["vat"]),
        },
        "by_category": sorted(_group_rows(by_category, "name"), key=lambda r: -r["count"]),
        "by_merchant": sorted(_group_rows(by_merchant, "name"), key=lambda r: -r["count"]),
        "by_month": sorted(_group_rows(by_month, "month"), key=lambda r: r["month"]),
    }
