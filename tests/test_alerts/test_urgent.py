"""
Tests for the urgent deadline summary.
"""

from datetime import datetime, timezone

from alerts.evaluator import NotificationSettings, Purchase
from alerts.urgent import summarize_urgent


NOW = datetime(2024, 12, 1, tzinfo=timezone.utc)


def purchase(pid: str, return_by: str | None, warranty_ends: str | None) -> Purchase:
    return Purchase(id=pid, merchant="Acme", return_by=return_by, warranty_ends=warranty_ends)


class TestSummarizeUrgent:
    """Tests for summarize_urgent."""

    def test_disabled_returns_none(self):
        settings = NotificationSettings(notify_return_deadline=False, notify_warranty_expiry=False)
        assert summarize_urgent([purchase("a", "2024-12-02", "2024-12-02")], settings, now=NOW) is None

    def test_return_within_three_days(self):
        summary = summarize_urgent(
            [purchase("a", "2024-12-04", "2026-01-01"), purchase("b", "2024-12-05", "2026-01-01")],
            now=NOW,
        )
        assert [p.id for p in summary.returns] == ["a"]
        assert summary.warranties == []

    def test_warranty_within_seven_days(self):
        summary = summarize_urgent(
            [purchase("a", "2024-01-01", "2024-12-08"), purchase("b", "2024-01-01", "2024-12-09")],
            now=NOW,
        )
        assert [p.id for p in summary.warranties] == ["a"]

    def test_purchase_can_count_in_both(self):
        summary = summarize_urgent([purchase("a", "2024-12-02", "2024-12-05")], now=NOW)
        assert len(summary.returns) == 1
        assert len(summary.warranties) == 1

    def test_ignores_configured_thresholds(self):
        """Urgent windows are fixed at 3 and 7 days."""
        settings = NotificationSettings(return_alert_days=1, warranty_alert_days=1)
        summary = summarize_urgent([purchase("a", "2024-12-03", "2024-12-06")], settings, now=NOW)
        assert len(summary.returns) == 1
        assert len(summary.warranties) == 1

    def test_respects_flags(self):
        settings = NotificationSettings(notify_warranty_expiry=False)
        summary = summarize_urgent([purchase("a", "2024-12-02", "2024-12-05")], settings, now=NOW)
        assert len(summary.returns) == 1
        assert summary.warranties == []

    def test_missing_and_past_deadlines_skipped(self):
        summary = summarize_urgent(
            [purchase("a", None, ""), purchase("b", "2024-11-30", "2024-11-01")],
            now=NOW,
        )
        assert summary.returns == []
        assert summary.warranties == []
        assert summary.messages() == []


class TestUrgentMessages:
    """Tests for UrgentSummary.messages wording."""

    def test_singular(self):
        summary = summarize_urgent([purchase("a", "2024-12-02", "2024-12-05")], now=NOW)
        messages = summary.messages()

        assert [m.title for m in messages] == ["Warranty Alert", "Return Deadline Alert"]
        assert messages[0].text == "1 warranty is expiring within 7 days."
        assert messages[0].severity == "info"
        assert messages[1].text == "1 return deadline is within 3 days."
        assert messages[1].severity == "critical"

    def test_plural(self):
        purchases = [
            purchase("a", "2024-12-02", "2024-12-05"),
            purchase("b", "2024-12-03", "2024-12-06"),
        ]
        messages = summarize_urgent(purchases, now=NOW).messages()

        assert messages[0].text == "2 warranties are expiring within 7 days."
        assert messages[1].text == "2 return deadlines are within 3 days."
