"""
Alerts module for purchase deadline monitoring.

Derives return-window and warranty-window alerts from tracked purchases.
"""

from alerts.evaluator import (
    Alert,
    AlertKind,
    AlertSummary,
    NotificationSettings,
    Priority,
    Purchase,
    evaluate_alerts,
)
from alerts.urgent import UrgentSummary, summarize_urgent

__all__ = [
    "Alert",
    "AlertKind",
    "AlertSummary",
    "NotificationSettings",
    "Priority",
    "Purchase",
    "UrgentSummary",
    "evaluate_alerts",
    "summarize_urgent",
]
