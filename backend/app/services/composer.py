"""Rendering of trigger notifications and owner reminders."""
import html
import logging
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Switch Triggered"
FALLBACK_FIRST_NAME = "Recipient"


@dataclass
class RenderedNotification:
    """One fully rendered email for one recipient."""

    to: str
    subject: str
    text_body: str
    html_body: str


def get_first_name(full_name: str | None) -> str:
    """First whitespace-delimited token of a name, or a neutral fallback."""
    parts = (full_name or "").split()
    return parts[0] if parts else FALLBACK_FIRST_NAME


def render_tokens(text: str, recipient_name: str | None) -> str:
    """Replace personalization tokens with the recipient's names."""
    full_name = (recipient_name or "").strip()
    replacements = {
        "{recipient_name}": full_name,
        "{recipient_first_name}": get_first_name(full_name),
    }
    out = text or ""
    for token, value in replacements.items():
        out = out.replace(token, value)
    return out


def text_to_html(text: str) -> str:
    """Escape text for HTML and keep its line breaks."""
    return html.escape(text).replace("\n", "<br />")


def generate_trigger_html(subject: str, body: str, app_name: str, app_base_url: str) -> str:
    """HTML content for a triggered switch."""
    return f"""
    <div style="font-family: system-ui, -apple-system, BlinkMacSystemFont, sans-serif; line-height: 1.6;">
        <h2 style="margin: 0 0 12px;">{html.escape(subject)}</h2>
        <p style="margin: 0 0 16px;">{text_to_html(body)}</p>
        <hr style="margin: 24px 0; border: none; border-top: 1px solid #eee;" />
        <p style="font-size: 12px; color: #999; margin: 0;">
            Sent via <a href="{html.escape(app_base_url)}" style="color: #999;">{html.escape(app_name)}</a>
        </p>
    </div>
    """


def compose_notifications(
    message,
    recipients: list,
    app_name: str,
    app_base_url: str,
) -> list[RenderedNotification]:
    """Render one notification per recipient for a due switch.

    Returns an empty list when there is nothing deliverable: no message,
    an empty body, or no recipient with an email address.
    """
    if message is None:
        return []

    body = (message.body or "").strip()
    if not body:
        return []

    subject_template = (message.subject or "").strip() or DEFAULT_SUBJECT

    notifications = []
    for recipient in recipients:
        email = (recipient.email or "").strip()
        if not email:
            continue

        subject = render_tokens(subject_template, recipient.name).strip() or DEFAULT_SUBJECT
        rendered_body = render_tokens(body, recipient.name)

        notifications.append(RenderedNotification(
            to=email,
            subject=subject,
            text_body=f"{rendered_body}\n\nSent via {app_name} - {app_base_url}",
            html_body=generate_trigger_html(subject, rendered_body, app_name, app_base_url),
        ))

    return notifications


def format_time_remaining(deadline: datetime, now: datetime) -> str:
    """Human countdown such as '2 days and 3 hours'."""
    total_seconds = (deadline - now).total_seconds()
    if total_seconds <= 0:
        return "very soon"

    total_minutes = int(total_seconds // 60)
    total_hours = total_minutes // 60
    days, hours = divmod(total_hours, 24)

    def plural(count: int, unit: str) -> str:
        return f"{count} {unit}{'' if count == 1 else 's'}"

    if days > 0 and hours > 0:
        return f"{plural(days, 'day')} and {plural(hours, 'hour')}"
    if days > 0:
        return plural(days, "day")
    if total_hours > 0:
        return plural(total_hours, "hour")
    return plural(total_minutes, "minute")


def format_deadline_date(deadline: datetime, tz_name: str | None) -> str:
    """Long calendar date of the deadline in the switch's display timezone."""
    try:
        tz = ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz_name!r}, formatting in UTC")
        tz = ZoneInfo("UTC")
    local = deadline.astimezone(tz)
    return f"{local.strftime('%A, %B')} {local.day}, {local.year}"


def compose_owner_reminder(
    switch,
    tier: int,
    deadline: datetime,
    now: datetime,
    owner_email: str,
    app_name: str,
    app_base_url: str,
) -> RenderedNotification:
    """Render the halfway (50) or urgent (90) reminder sent to a switch's owner."""
    use_countdown = tier == 90 or switch.interval_days == 1
    if use_countdown:
        trigger_text = f"in {format_time_remaining(deadline, now)}"
    else:
        trigger_text = f"on {format_deadline_date(deadline, switch.timezone)}"

    dashboard_url = f"{app_base_url}/dashboard"
    settings_url = f"{app_base_url}/dashboard/settings"

    if tier == 90:
        subject = f'Urgent: "{switch.name}" triggers soon'
        heading = "Urgent Reminder"
        lead = f'Your switch "{switch.name}" is about to trigger!'
        accent = "#dc2626"
    else:
        subject = f'Reminder: "{switch.name}" is halfway to triggering'
        heading = "Halfway Reminder"
        lead = f'Your switch "{switch.name}" is 50% of the way through its check-in interval.'
        accent = "#000"

    text_body = (
        f"Hi,\n\n"
        f"{lead}\n\n"
        f"It will trigger {trigger_text} if you don't check in.\n\n"
        f"Log in to {app_name} to check in now:\n"
        f"{dashboard_url}\n\n"
        f"{app_name} - {app_base_url}\n"
        f"Don't want these reminders? Manage your settings: {settings_url}"
    )

    html_body = f"""
    <div style="font-family: system-ui, -apple-system, BlinkMacSystemFont, sans-serif; line-height: 1.6;">
        <h2 style="margin: 0 0 12px; color: {accent};">{heading}</h2>
        <p style="margin: 0 0 16px;">{html.escape(lead)}</p>
        <p style="margin: 0 0 16px;">
            It will trigger <strong>{html.escape(trigger_text)}</strong> if you don't check in.
        </p>
        <p style="margin: 0 0 24px;">
            <a href="{html.escape(dashboard_url)}" style="background: {accent}; color: #fff; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">Check in now</a>
        </p>
        <hr style="margin: 24px 0; border: none; border-top: 1px solid #eee;" />
        <p style="font-size: 12px; color: #999; margin: 0;">
            <a href="{html.escape(app_base_url)}" style="color: #999;">{html.escape(app_name)}</a><br />
            Don't want these reminders? <a href="{html.escape(settings_url)}" style="color: #999;">Manage your settings</a>
        </p>
    </div>
    """

    return RenderedNotification(
        to=owner_email,
        subject=subject,
        text_body=text_body,
        html_body=html_body,
    )
