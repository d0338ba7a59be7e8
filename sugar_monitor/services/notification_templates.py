"""Notification payloads and email rendering.

Each payload renders to a subject, an HTML body, and a plain-text body.
Anything that came from a user is HTML-escaped before it enters markup.
"""

import html
from dataclasses import dataclass, field
from datetime import datetime

from sugar_monitor.models.alert_history import AlertType
from sugar_monitor.models.reading import ReadingContext, format_context

ALERT_LABEL: dict[AlertType, str] = {
    AlertType.HIGH_GLUCOSE: "High Glucose",
    AlertType.LOW_GLUCOSE: "Low Glucose",
}

ALERT_COLOR: dict[AlertType, str] = {
    AlertType.HIGH_GLUCOSE: "#dc2626",
    AlertType.LOW_GLUCOSE: "#d97706",
}

DISCLAIMER = (
    "This is an automated alert and not medical advice. If this is a medical "
    "emergency, contact emergency services immediately or consult your "
    "healthcare provider."
)

FOOTER = (
    "This email was sent automatically by the Blood Sugar Monitor system. "
    "Please do not reply to this email."
)

_BASE_STYLE = (
    "body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; margin: 0; }"
    " .container { max-width: 640px; margin: 0 auto; padding: 20px; }"
    " .header { background: #5a67d8; color: #fff; padding: 24px; text-align: center; }"
    " .details { background: #f8f9fa; padding: 16px; margin: 16px 0; }"
    " .warning { background: #fff3cd; color: #856404; padding: 12px; margin: 16px 0; }"
    " .footer { color: #6c757d; font-size: 0.9em; text-align: center; }"
)


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    html_body: str
    text_body: str


@dataclass(frozen=True)
class AlertNotification:
    """Everything needed to describe one fired alert."""

    patient_name: str
    glucose_level: float
    alert_type: AlertType
    timestamp: datetime
    context: ReadingContext | str
    high_threshold: float
    low_threshold: float


@dataclass(frozen=True)
class WeeklyStats:
    total_alerts: int
    high_alerts: int
    low_alerts: int
    average_glucose: float
    total_readings: int
    alert_rate: float


@dataclass(frozen=True)
class DigestAlert:
    """An unacknowledged alert as shown in the weekly digest."""

    message: str
    alert_type: AlertType
    glucose_level: float
    context: ReadingContext | str
    reading_timestamp: datetime


@dataclass(frozen=True)
class WeeklyDigest:
    patient_name: str
    week_start: datetime
    week_end: datetime
    stats: WeeklyStats
    high_threshold: float
    low_threshold: float
    generated_at: datetime
    alerts: list[DigestAlert] = field(default_factory=list)


def format_glucose(value: float) -> str:
    """200.0 -> '200', 95.5 -> '95.5'."""
    return f"{value:g}"


def threshold_phrase(payload: AlertNotification) -> str:
    """'above 180 mg/dL' for HIGH, 'below 70 mg/dL' for LOW."""
    if payload.alert_type == AlertType.HIGH_GLUCOSE:
        return f"above {format_glucose(payload.high_threshold)} mg/dL"
    return f"below {format_glucose(payload.low_threshold)} mg/dL"


def _format_datetime(value: datetime) -> str:
    return value.strftime("%b %d, %Y %H:%M")


def _detail_row(label: str, value: str) -> str:
    return (
        f'<tr><td style="font-weight: bold; padding: 4px 12px 4px 0;">{label}</td>'
        f"<td>{html.escape(value)}</td></tr>"
    )


def render_alert_email(payload: AlertNotification) -> RenderedMessage:
    """Render the email sent when a reading breaches a threshold."""
    label = ALERT_LABEL[payload.alert_type]
    level = f"{format_glucose(payload.glucose_level)} mg/dL"
    phrase = threshold_phrase(payload)
    when = _format_datetime(payload.timestamp)
    context = format_context(payload.context)
    high = f"{format_glucose(payload.high_threshold)} mg/dL"
    low = f"{format_glucose(payload.low_threshold)} mg/dL"

    subject = f"{label} Alert - {level}"

    rows = "".join(
        [
            _detail_row("Patient:", payload.patient_name),
            _detail_row("Date &amp; Time:", when),
            _detail_row("Context:", context),
            _detail_row("High Threshold:", high),
            _detail_row("Low Threshold:", low),
        ]
    )
    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Glucose Alert</title><style>{_BASE_STYLE}</style></head>
<body>
<div class="container">
  <div class="header"><h1>Blood Sugar Monitor</h1><p>Glucose Level Alert Notification</p></div>
  <div style="background: {ALERT_COLOR[payload.alert_type]}; color: #fff; padding: 20px; text-align: center;">
    <h2>{label} Alert</h2>
    <div style="font-size: 2.5em; font-weight: bold;">{level}</div>
    <p>Glucose level is {phrase}</p>
  </div>
  <div class="details"><h3>Reading Details</h3><table>{rows}</table></div>
  <div class="warning"><strong>Important:</strong> {DISCLAIMER}</div>
  <div class="footer"><p>{FOOTER}</p></div>
</div>
</body>
</html>"""

    text_body = "\n".join(
        [
            "GLUCOSE ALERT NOTIFICATION",
            "",
            f"{label} Alert",
            "",
            f"Patient: {payload.patient_name}",
            f"Glucose Level: {level}",
            f"Status: Glucose level is {phrase}",
            f"Date & Time: {when}",
            f"Context: {context}",
            f"High Threshold: {high}",
            f"Low Threshold: {low}",
            "",
            f"IMPORTANT: {DISCLAIMER}",
            "",
            FOOTER,
        ]
    )

    return RenderedMessage(subject=subject, html_body=html_body, text_body=text_body)


def digest_subject(alert_count: int) -> str:
    plural = "" if alert_count == 1 else "s"
    return f"Weekly Glucose Alert Report - {alert_count} Unacknowledged Alert{plural}"


def render_weekly_digest(digest: WeeklyDigest) -> RenderedMessage:
    """Render the weekly summary of unacknowledged alerts."""
    stats = digest.stats
    period = (
        f"{digest.week_start.strftime('%b %d, %Y')} - "
        f"{digest.week_end.strftime('%b %d, %Y')}"
    )
    generated = digest.generated_at.strftime("%b %d, %Y at %H:%M")
    high = f"{format_glucose(digest.high_threshold)} mg/dL"
    low = f"{format_glucose(digest.low_threshold)} mg/dL"
    action = (
        "Please review and acknowledge these alerts in your Blood Sugar Monitor "
        "dashboard. If you are experiencing frequent alerts, consider consulting "
        "your healthcare provider about your thresholds or treatment plan."
    )

    summary_rows = "".join(
        [
            _detail_row("Total Alerts:", str(stats.total_alerts)),
            _detail_row("High Glucose Alerts:", str(stats.high_alerts)),
            _detail_row("Low Glucose Alerts:", str(stats.low_alerts)),
            _detail_row("Average Glucose:", f"{stats.average_glucose} mg/dL"),
            _detail_row("Total Readings:", str(stats.total_readings)),
            _detail_row("Alert Rate:", f"{stats.alert_rate}%"),
        ]
    )

    alert_blocks = []
    alert_lines = []
    for alert in digest.alerts:
        label = ALERT_LABEL[alert.alert_type]
        level = f"{format_glucose(alert.glucose_level)} mg/dL"
        context = format_context(alert.context)
        when = _format_datetime(alert.reading_timestamp)
        alert_blocks.append(
            '<div class="details">'
            f"<h4>{html.escape(alert.message)}</h4>"
            "<table>"
            f"{_detail_row('Type:', label)}"
            f"{_detail_row('Glucose:', level)}"
            f"{_detail_row('Context:', context)}"
            f"{_detail_row('Date:', when)}"
            "</table></div>"
        )
        alert_lines.extend(
            [
                f"- {alert.message}",
                f"  Glucose: {level}",
                f"  Context: {context}",
                f"  Date: {when}",
                f"  Type: {label}",
            ]
        )

    threshold_rows = _detail_row("High Threshold:", high) + _detail_row(
        "Low Threshold:", low
    )
    alerts_html = "".join(alert_blocks)

    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Weekly Glucose Alert Report</title><style>{_BASE_STYLE}</style></head>
<body>
<div class="container">
  <div class="header">
    <h1>Weekly Glucose Alert Report</h1>
    <p>{html.escape(digest.patient_name)}</p>
    <p>{period}</p>
  </div>
  <h2>Weekly Summary</h2>
  <div class="details"><table>{summary_rows}</table></div>
  <h3>Current Alert Thresholds</h3>
  <div class="details"><table>{threshold_rows}</table></div>
  <h2>Unacknowledged Alerts ({len(digest.alerts)})</h2>
  {alerts_html}
  <div class="warning"><strong>Action Required:</strong> {action}</div>
  <div class="footer"><p>Report generated on {generated}.</p><p>{FOOTER}</p></div>
</div>
</body>
</html>"""

    text_body = "\n".join(
        [
            "WEEKLY GLUCOSE ALERT REPORT",
            digest.patient_name,
            period,
            "",
            "WEEKLY SUMMARY",
            "==============",
            f"Total Alerts: {stats.total_alerts}",
            f"High Glucose Alerts: {stats.high_alerts}",
            f"Low Glucose Alerts: {stats.low_alerts}",
            f"Average Glucose: {stats.average_glucose} mg/dL",
            f"Total Readings: {stats.total_readings}",
            f"Alert Rate: {stats.alert_rate}%",
            "",
            "CURRENT THRESHOLDS",
            "==================",
            f"High Threshold: {high}",
            f"Low Threshold: {low}",
            "",
            f"UNACKNOWLEDGED ALERTS ({len(digest.alerts)})",
            "=====================",
            *alert_lines,
            "",
            f"ACTION REQUIRED: {action}",
            "",
            f"Report generated on {generated}.",
            FOOTER,
        ]
    )

    return RenderedMessage(
        subject=digest_subject(len(digest.alerts)),
        html_body=html_body,
        text_body=text_body,
    )
