"""
Return window and warranty rules.

Computes deadline dates from a purchase date, using merchant-specific
policies when the user has configured one.
"""

import hashlib
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable

from dateutil import parser as dtparser
from dateutil.relativedelta import relativedelta

from alerts.evaluator import SECONDS_PER_DAY, to_utc


DEFAULT_RETURN_WINDOW_DAYS = 30
DEFAULT_WARRANTY_MONTHS = 12


@dataclass
class MerchantRule:
    """Return and warranty policy for one merchant."""

    merchant_name: str
    return_policy_days: int = DEFAULT_RETURN_WINDOW_DAYS
    warranty_months: int = DEFAULT_WARRANTY_MONTHS
    id: str | None = None

    @property
    def normalized_merchant_name(self) -> str:
        return normalize_merchant_name(self.merchant_name)


@dataclass
class Deadlines:
    """Computed deadlines as ISO date strings."""

    return_by: str
    warranty_ends: str


def normalize_merchant_name(name: str) -> str:
    """Lookup key for merchant rules."""
    return name.strip().lower()


def parse_purchase_date(value: Any) -> date:
    """Parse a purchase date, raising ValueError if it is not a valid date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValueError("Invalid purchase date")
    try:
        return dtparser.isoparse(str(value).strip()).date()
    except (ValueError, OverflowError):
        raise ValueError("Invalid purchase date")


def compute_deadlines(
    purchase_date: Any,
    return_days: int = DEFAULT_RETURN_WINDOW_DAYS,
    warranty_months: int = DEFAULT_WARRANTY_MONTHS,
) -> Deadlines:
    """
    Compute return and warranty deadlines.

    Month arithmetic clamps to the end of the month, so a January 31
    purchase with a one month warranty ends on the last day of February.
    """
    start = parse_purchase_date(purchase_date)
    return_by = start + timedelta(days=return_days)
    warranty_ends = start + relativedelta(months=warranty_months)
    return Deadlines(
        return_by=return_by.isoformat(),
        warranty_ends=warranty_ends.isoformat(),
    )


def resolve_merchant_rule(merchant: str, rules: Iterable[MerchantRule]) -> MerchantRule:
    """Find the rule for a merchant, falling back to the default policy."""
    key = normalize_merchant_name(merchant)
    for rule in rules:
        if rule.normalized_merchant_name == key:
            return rule
    return MerchantRule(merchant_name=merchant)


def _now(now: Any) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    now_dt = to_utc(now)
    if now_dt is None:
        raise ValueError(f"Invalid reference time: {now!r}")
    return now_dt


def is_return_window_valid(return_by: Any, now: Any = None) -> bool:
    """True while the return deadline is still in the future."""
    deadline = to_utc(return_by)
    return deadline is not None and _now(now) < deadline


def is_warranty_valid(warranty_ends: Any, now: Any = None) -> bool:
    """True while the warranty has not expired."""
    deadline = to_utc(warranty_ends)
    return deadline is not None and _now(now) < deadline


def days_until(deadline: Any, now: Any = None) -> int | None:
    """
    Whole days remaining until a deadline, truncated toward zero.

    Negative once the deadline has passed. None if the deadline is unparsable.
    """
    deadline_dt = to_utc(deadline)
    if deadline_dt is None:
        return None
    return math.trunc((deadline_dt - _now(now)).total_seconds() / SECONDS_PER_DAY)


def purchase_hash(merchant: str, purchase_date: str, total: str) -> str:
    """Fingerprint used to detect the same receipt being saved twice."""
    data = f"{merchant}|{purchase_date}|{total}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
