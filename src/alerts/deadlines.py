"""
Deadline alert service for purchase return and warranty windows.

Loads purchases and notification settings from Airtable, evaluates which
deadlines are inside the configured alert windows and sends Slack
notifications.

Usage:
    PYTHONPATH=src python -m alerts.deadlines
    PYTHONPATH=src python -m alerts.deadlines --dry-run
    PYTHONPATH=src python -m alerts.deadlines --date 2024-12-01
"""

import argparse
import asyncio
import sys
from datetime import date, datetime

from dotenv import load_dotenv

from alerts.evaluator import AlertSummary, evaluate_alerts
from api.services.airtable import AirtableService, to_notification_settings, to_purchase
from api.services.slack import describe_alert, send_admin_summary, send_alert


def check_upcoming_deadlines(
    today: date | None = None,
    store: AirtableService | None = None,
) -> AlertSummary:
    """
    Evaluate alerts for every stored purchase.

    Args:
        today: Override today's date (for testing)
        store: Airtable service, created from the environment if omitted
    """
    if today is None:
        today = date.today()
    if store is None:
        store = AirtableService()

    purchases = [to_purchase(r) for r in store.list_purchases(limit=None)]
    settings = to_notification_settings(store.get_settings())

    return evaluate_alerts(purchases, settings, now=today)


async def run_deadline_check(
    today: date | None = None,
    dry_run: bool = False,
    store: AirtableService | None = None,
) -> dict:
    """
    Run the full deadline check and optionally send notifications.

    Args:
        today: Override today's date (for testing)
        dry_run: If True, just list alerts without sending notifications
        store: Airtable service, created from the environment if omitted

    Returns:
        Summary dict with counts of alerts found and notifications sent
    """
    check_date = today or date.today()
    print(f"Checking deadlines for {check_date}...")

    summary = check_upcoming_deadlines(check_date, store)

    if not summary.enabled:
        print("Return and warranty notifications are disabled")
        if not dry_run:
            await send_admin_summary(check_date, None, 0, 0)
        return {
            "date": str(check_date),
            "enabled": False,
            "alerts_found": 0,
            "notifications_sent": 0,
            "notifications_failed": 0,
        }

    print(f"Found {summary.count} active alerts")

    sent = 0
    failed = 0

    for alert in summary.alerts:
        print(f"  - {alert.merchant}: {describe_alert(alert)} [{alert.priority.value}]")

        if not dry_run:
            success = await send_alert(alert)
            if success:
                sent += 1
            else:
                failed += 1

    if not dry_run:
        await send_admin_summary(check_date, summary.alerts, sent, failed)

    return {
        "date": str(check_date),
        "enabled": True,
        "alerts_found": summary.count,
        "notifications_sent": sent,
        "notifications_failed": failed,
    }


def main():
    """CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Check purchase return and warranty deadlines and send Slack alerts"
    )
    parser.add_argument(
        "--date",
        type=str,
        help="Check deadlines relative to this date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List alerts without sending notifications",
    )

    args = parser.parse_args()

    check_date = None
    if args.date:
        try:
            check_date = datetime.strptime(args.date, "%Y-%m-%d").date()
        except ValueError:
            print(f"Invalid date format: {args.date}. Use YYYY-MM-DD.")
            sys.exit(1)

    result = asyncio.run(run_deadline_check(check_date, dry_run=args.dry_run))

    print("\nSummary:")
    print(f"  Date: {result['date']}")
    print(f"  Alerts found: {result['alerts_found']}")
    if not args.dry_run:
        print(f"  Notifications sent: {result['notifications_sent']}")
        print(f"  Notifications failed: {result['notifications_failed']}")

        if result["notifications_failed"] > 0:
            sys.exit(1)


if __name__ == "__main__":
    main()
