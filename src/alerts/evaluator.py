"""
Deadline alert evaluation for tracked purchases.

Given a snapshot of purchases and the user's notification settings, derives
the list of return-window and warranty-window alerts that are currently due.
Alerts are recomputed on every call and never stored.

Each purchase contributes at most one alert. The return window is checked
first; a purchase inside both windows only produces the return alert.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable

from dateutil import parser as dtparser


SECONDS_PER_DAY = 86_400

DEFAULT_RETURN_ALERT_DAYS = 7
DEFAULT_WARRANTY_ALERT_DAYS = 30

# Deadlines closer than these are flagged high priority
RETURN_HIGH_PRIORITY_DAYS = 3
WARRANTY_HIGH_PRIORITY_DAYS = 7

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class AlertKind(str, Enum):
    """Which deadline an alert refers to."""

    RETURN = "return"
    WARRANTY = "warranty"


class Priority(str, Enum):
    """Urgency of an alert."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class Purchase:
    """A tracked purchase with its return and warranty deadlines."""

    id: str
    merchant: str
    return_by: Any  # date, datetime or ISO string
    warranty_ends: Any


@dataclass
class NotificationSettings:
    """
    User notification preferences.

    Thresholds are None when the stored value is not a number; comparisons
    against None never match, so that kind of alert is suppressed.
    """

    notify_return_deadline: bool = True
    notify_warranty_expiry: bool = True
    return_alert_days: int | None = DEFAULT_RETURN_ALERT_DAYS
    warranty_alert_days: int | None = DEFAULT_WARRANTY_ALERT_DAYS

    @classmethod
    def from_record(cls, fields: dict | None) -> "NotificationSettings":
        """Build settings from a stored record, filling in defaults for missing keys."""
        if not fields:
            return cls()
        return cls(
            notify_return_deadline=bool(fields.get("notify_return_deadline", True)),
            notify_warranty_expiry=bool(fields.get("notify_warranty_expiry", True)),
            return_alert_days=parse_alert_days(
                fields.get("return_alert_days", DEFAULT_RETURN_ALERT_DAYS)
            ),
            warranty_alert_days=parse_alert_days(
                fields.get("warranty_alert_days", DEFAULT_WARRANTY_ALERT_DAYS)
            ),
        )

    @property
    def enabled(self) -> bool:
        return self.notify_return_deadline or self.notify_warranty_expiry


@dataclass
class Alert:
    """An approaching deadline for a single purchase."""

    id: str
    kind: AlertKind
    merchant: str
    days_left: int
    deadline_date: Any
    priority: Priority


@dataclass
class AlertSummary:
    """
    Result of an evaluation pass.

    enabled is False when the user turned off both return and warranty
    notifications. That is distinct from enabled with zero alerts due.
    """

    enabled: bool
    alerts: list[Alert] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.alerts)

    @classmethod
    def disabled(cls) -> "AlertSummary":
        return cls(enabled=False)


def parse_alert_days(value: Any) -> int | None:
    """
    Parse a threshold setting with leading-integer semantics.

    "7" -> 7, "10 days" -> 10, 12.9 -> 12, "abc" -> None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return int(value)
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def to_utc(value: Any) -> datetime | None:
    """
    Coerce a date, datetime or ISO string to an aware UTC datetime.

    Date-only values are taken as midnight UTC. Returns None for empty or
    unparsable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        try:
            dt = dtparser.isoparse(str(value).strip())
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def days_left(deadline: Any, now: Any) -> int | None:
    """Whole days until a deadline, rounded up. None if either side is unparsable."""
    deadline_dt = to_utc(deadline)
    now_dt = to_utc(now)
    if deadline_dt is None or now_dt is None:
        return None
    return math.ceil((deadline_dt - now_dt).total_seconds() / SECONDS_PER_DAY)


def _within(days: int | None, threshold: int | None) -> bool:
    if days is None or threshold is None:
        return False
    return 0 <= days <= threshold


def return_priority(days: int) -> Priority:
    return Priority.HIGH if days <= RETURN_HIGH_PRIORITY_DAYS else Priority.MEDIUM


def warranty_priority(days: int) -> Priority:
    return Priority.HIGH if days <= WARRANTY_HIGH_PRIORITY_DAYS else Priority.LOW


def evaluate_purchase(
    purchase: Purchase,
    settings: NotificationSettings,
    now: datetime,
) -> Alert | None:
    """Return the first alert that applies to a purchase, or None."""
    return_days = days_left(purchase.return_by, now)
    if settings.notify_return_deadline and _within(return_days, settings.return_alert_days):
        return Alert(
            id=purchase.id,
            kind=AlertKind.RETURN,
            merchant=purchase.merchant,
            days_left=return_days,
            deadline_date=purchase.return_by,
            priority=return_priority(return_days),
        )

    warranty_days = days_left(purchase.warranty_ends, now)
    if settings.notify_warranty_expiry and _within(warranty_days, settings.warranty_alert_days):
        return Alert(
            id=purchase.id,
            kind=AlertKind.WARRANTY,
            merchant=purchase.merchant,
            days_left=warranty_days,
            deadline_date=purchase.warranty_ends,
            priority=warranty_priority(warranty_days),
        )

    return None


def evaluate_alerts(
    purchases: Iterable[Purchase],
    settings: NotificationSettings | None = None,
    now: Any = None,
) -> AlertSummary:
    """
    Derive the active alerts for a set of purchases.

    Args:
        purchases: Purchases in display order; output keeps the same order
        settings: Notification preferences, defaults when None
        now: Reference time (datetime, date or ISO string), defaults to current UTC time

    Returns:
        AlertSummary with enabled=False if both notification kinds are off
    """
    if settings is None:
        settings = NotificationSettings()

    if not settings.enabled:
        return AlertSummary.disabled()

    now_dt = to_utc(now) if now is not None else datetime.now(timezone.utc)
    if now_dt is None:
        raise ValueError(f"Invalid reference time: {now!r}")

    alerts = []
    for purchase in purchases:
        alert = evaluate_purchase(purchase, settings, now_dt)
        if alert is not None:
            alerts.append(alert)

    return AlertSummary(enabled=True, alerts=alerts)
