"""
Slack notification service for purchase deadline alerts.
"""

import os
from datetime import date

import httpx

from alerts.evaluator import Alert, AlertKind, Priority, to_utc
from api.logging import get_logger, log_error

logger = get_logger(__name__)

PRIORITY_LABELS = {
    Priority.HIGH: "Urgent",
    Priority.MEDIUM: "Soon",
    Priority.LOW: "Notice",
}

PRIORITY_EMOJI = {
    Priority.HIGH: ":rotating_light:",
    Priority.MEDIUM: ":warning:",
    Priority.LOW: ":information_source:",
}


def format_days(days: int) -> str:
    """'1 day', '0 days', '5 days'."""
    return f"{days} day{'' if days == 1 else 's'}"


def format_deadline(value) -> str:
    """Format a deadline for display, or 'N/A' if it cannot be parsed."""
    dt = to_utc(value)
    if dt is None:
        return "N/A"
    return dt.strftime("%B %d, %Y")


def describe_alert(alert: Alert) -> str:
    """One-line description, e.g. 'Return window expires in 2 days'."""
    what = "Return window" if alert.kind == AlertKind.RETURN else "Warranty"
    return f"{what} expires in {format_days(alert.days_left)}"


def app_url(path: str) -> str | None:
    """Link into the web app, if APP_BASE_URL is configured."""
    base_url = os.environ.get("APP_BASE_URL")
    if not base_url:
        return None
    return f"{base_url.rstrip('/')}{path}"


def build_alert_message(alert: Alert) -> dict:
    """Slack Block Kit payload for a single alert."""
    label = PRIORITY_LABELS[alert.priority]
    emoji = PRIORITY_EMOJI[alert.priority]

    blocks = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"{emoji} {label}: {alert.merchant}",
                "emoji": True,
            },
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": describe_alert(alert)},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Merchant:*\n{alert.merchant}"},
                {"type": "mrkdwn", "text": f"*Deadline:*\n{format_deadline(alert.deadline_date)}"},
                {"type": "mrkdwn", "text": f"*Days Remaining:*\n{alert.days_left}"},
                {"type": "mrkdwn", "text": f"*Priority:*\n{label}"},
            ],
        },
    ]

    receipts_url = app_url("/receipts")
    if receipts_url:
        blocks.append(
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "View Receipts"},
                        "url": receipts_url,
                        "style": "primary",
                    }
                ],
            }
        )

    return {"blocks": blocks}


def build_admin_summary(
    check_date: date,
    alerts: list[Alert] | None,
    sent: int,
    failed: int,
) -> dict:
    """
    Slack payload summarising a deadline check run.

    alerts is None when notifications are disabled in settings.
    """
    date_str = check_date.strftime("%B %d, %Y")

    if alerts is None:
        status_emoji = ":no_bell:"
        status_text = "Alerts disabled in notification settings"
        alerts_text = "_Return and warranty notifications are both turned off_"
        alerts = []
    else:
        if failed > 0:
            status_emoji = ":warning:"
            status_text = f"Sent {sent}, Failed {failed}"
        elif sent > 0:
            status_emoji = ":white_check_mark:"
            status_text = f"Sent {sent} alert(s)"
        else:
            status_emoji = ":white_check_mark:"
            status_text = "No alerts needed"

        if alerts:
            alerts_text = "\n".join(
                f"• *{a.merchant}* - {describe_alert(a)} ({PRIORITY_LABELS[a.priority]})"
                for a in alerts
            )
        else:
            alerts_text = "_No deadlines within alert windows_"

    return {
        "blocks": [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"{status_emoji} Deadline Check Complete",
                    "emoji": True,
                },
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Date:*\n{date_str}"},
                    {"type": "mrkdwn", "text": f"*Status:*\n{status_text}"},
                ],
            },
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Active Alerts ({len(alerts)}):*\n{alerts_text}",
                },
            },
        ],
    }


async def _post(webhook_url: str, message: dict, action: str) -> bool:
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(webhook_url, json=message, timeout=10.0)
            response.raise_for_status()
            return True
    except httpx.HTTPError as e:
        log_error(logger, action, e)
        return False


async def send_alert(alert: Alert) -> bool:
    """
    Send Slack notification for one alert.

    Returns:
        True if notification sent successfully, False otherwise
    """
    webhook_url = os.environ.get("SLACK_WEBHOOK_URL")

    if not webhook_url:
        logger.info("SLACK_WEBHOOK_URL not configured, skipping notification")
        return False

    return await _post(webhook_url, build_alert_message(alert), "Slack notification failed")


async def send_admin_summary(
    check_date: date,
    alerts: list[Alert] | None,
    sent: int,
    failed: int,
) -> bool:
    """Send the run summary to the admin channel."""
    webhook_url = os.environ.get("SLACK_ADMIN_WEBHOOK_URL")

    if not webhook_url:
        logger.info("SLACK_ADMIN_WEBHOOK_URL not configured, skipping admin summary")
        return False

    message = build_admin_summary(check_date, alerts, sent, failed)
    return await _post(webhook_url, message, "Admin summary failed")
