"""
Urgent deadline summary shown once when a user signs in.

Counts purchases whose warranty ends within a week or whose return window
closes within three days. These windows are fixed and do not follow the
configured alert thresholds. A purchase can appear in both counts.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from alerts.evaluator import (
    RETURN_HIGH_PRIORITY_DAYS,
    WARRANTY_HIGH_PRIORITY_DAYS,
    NotificationSettings,
    Purchase,
    days_left,
    to_utc,
)


@dataclass
class UrgentMessage:
    """A user-facing notice."""

    title: str
    text: str
    severity: str  # "info" or "critical"


@dataclass
class UrgentSummary:
    """Purchases with deadlines inside the urgent windows."""

    warranties: list[Purchase] = field(default_factory=list)
    returns: list[Purchase] = field(default_factory=list)

    def messages(self) -> list[UrgentMessage]:
        """Build notices, warranty first, skipping empty groups."""
        messages = []

        if self.warranties:
            count = len(self.warranties)
            subject = "warranty is" if count == 1 else "warranties are"
            messages.append(
                UrgentMessage(
                    title="Warranty Alert",
                    text=f"{count} {subject} expiring within {WARRANTY_HIGH_PRIORITY_DAYS} days.",
                    severity="info",
                )
            )

        if self.returns:
            count = len(self.returns)
            subject = "deadline is" if count == 1 else "deadlines are"
            messages.append(
                UrgentMessage(
                    title="Return Deadline Alert",
                    text=f"{count} return {subject} within {RETURN_HIGH_PRIORITY_DAYS} days.",
                    severity="critical",
                )
            )

        return messages


def _is_urgent(deadline: Any, now: datetime, window: int) -> bool:
    if not deadline:
        return False
    days = days_left(deadline, now)
    return days is not None and 0 <= days <= window


def summarize_urgent(
    purchases: Iterable[Purchase],
    settings: NotificationSettings | None = None,
    now: Any = None,
) -> UrgentSummary | None:
    """
    Collect purchases with urgent deadlines.

    Returns None when both notification kinds are disabled.
    """
    if settings is None:
        settings = NotificationSettings()

    if not settings.enabled:
        return None

    now_dt = to_utc(now) if now is not None else datetime.now(timezone.utc)
    if now_dt is None:
        raise ValueError(f"Invalid reference time: {now!r}")

    purchases = list(purchases)
    summary = UrgentSummary()

    if settings.notify_warranty_expiry:
        summary.warranties = [
            p for p in purchases
            if _is_urgent(p.warranty_ends, now_dt, WARRANTY_HIGH_PRIORITY_DAYS)
        ]

    if settings.notify_return_deadline:
        summary.returns = [
            p for p in purchases
            if _is_urgent(p.return_by, now_dt, RETURN_HIGH_PRIORITY_DAYS)
        ]

    return summary
