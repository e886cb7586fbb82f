"""
Report email formatting and delivery.

A report is sent at most once per cycle: SmtpMailer.send makes a single
attempt and reports the outcome as a SendResult rather than raising.
"""

import html
import logging
import smtplib
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Callable, List, Optional

from .errors import SendError
from .geo import format_position
from .models import DistanceRecord, EnvironmentalReading, Position

logger = logging.getLogger(__name__)

RULE = "=" * 50
FOOTER = "Generated by Vessel Noon Logbook"


@dataclass
class SendResult:
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None
    recipients: List[str] = field(default_factory=list)


@dataclass
class ReportPayload:
    """Everything a report email shows. Distances are already rounded for display."""
    date_key: str
    vessel_name: str = "Unknown Vessel"
    position: Optional[Position] = None
    log_text: Optional[str] = None
    distance: Optional[DistanceRecord] = None
    readings: List[EnvironmentalReading] = field(default_factory=list)
    entry_id: Optional[int] = None


def map_link(position: Position) -> str:
    return f"https://www.google.com/maps?q={position.latitude},{position.longitude}&t=k&z=12"


def long_date(date_key: str) -> str:
    """'2024-06-01' -> 'Saturday, June 1, 2024'."""
    day = datetime.strptime(date_key, "%Y-%m-%d")
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def short_date(date_key: str) -> str:
    """'2024-06-01' -> 'Jun 1, 2024'."""
    day = datetime.strptime(date_key, "%Y-%m-%d")
    return f"{day:%b} {day.day}, {day.year}"


def _reading_text(reading: EnvironmentalReading) -> str:
    return f"{reading.value} {reading.unit}" if reading.unit else reading.value


def format_subject(payload: ReportPayload, prefix: str = "Log Report") -> str:
    return f"{prefix or 'Log Report'} - {short_date(payload.date_key)} - {payload.vessel_name}"


def format_text(payload: ReportPayload) -> str:
    """Plain-text report body."""
    lines = [
        f"{payload.vessel_name} - NOON REPORT",
        long_date(payload.date_key),
        RULE,
        "",
    ]

    if payload.log_text:
        lines += ["CAPTAIN'S LOG:", payload.log_text, ""]

    pos = payload.position
    lines += ["POSITION:", format_position(pos.latitude, pos.longitude) if pos else "Position unavailable"]
    if pos:
        lines.append(f"Coordinates: {pos.latitude:.6f}, {pos.longitude:.6f}")
        lines.append(f"Map: {map_link(pos)}")
    lines.append("")

    if payload.distance:
        lines += [
            "DISTANCE:",
            f"Since Last Report: {payload.distance.distance_since_last:.1f} nm",
            f"Total Voyage: {payload.distance.total_distance:.1f} nm",
            "",
        ]

    if payload.readings:
        lines.append("CONDITIONS:")
        lines += [f"{r.label}: {_reading_text(r)}" for r in payload.readings]

    lines += ["", RULE, FOOTER]
    return "\n".join(lines) + "\n"


def format_html(payload: ReportPayload) -> str:
    """HTML report body."""
    esc = html.escape
    pos = payload.position
    parts = [
        "<!DOCTYPE html>",
        "<html><head><meta charset=\"UTF-8\"></head>",
        "<body style=\"font-family: Arial, sans-serif; color: #333; max-width: 800px;\">",
        f"<h1 style=\"color: #2c5282;\">{esc(payload.vessel_name)} - Noon Report</h1>",
        f"<p>{esc(long_date(payload.date_key))}</p>",
    ]

    if payload.log_text:
        parts.append("<h3>Captain's Log</h3>")
        parts.append(f"<blockquote>{esc(payload.log_text)}</blockquote>")

    parts.append("<h3>Position</h3>")
    if pos:
        parts.append(f"<p><code>{esc(format_position(pos.latitude, pos.longitude))}</code></p>")
        parts.append(f"<p><a href=\"{esc(map_link(pos))}\">View position on map</a></p>")
    else:
        parts.append("<p>Position unavailable</p>")

    if payload.distance:
        parts.append("<h3>Distance</h3><table>")
        parts.append(
            f"<tr><td>Since Last Report</td><td>{payload.distance.distance_since_last:.1f} nm</td></tr>"
        )
        parts.append(
            f"<tr><td>Total Voyage</td><td>{payload.distance.total_distance:.1f} nm</td></tr>"
        )
        parts.append("</table>")

    if payload.readings:
        parts.append("<h3>Conditions</h3><table>")
        for r in payload.readings:
            parts.append(f"<tr><td>{esc(r.label)}</td><td>{esc(_reading_text(r))}</td></tr>")
        parts.append("</table>")

    parts.append(f"<p style=\"color: #718096; font-size: 12px;\">{FOOTER}</p>")
    parts.append("</body></html>")
    return "\n".join(parts)


class SmtpMailer:
    """
    Single-attempt SMTP delivery of report emails.

    Recipients are blind-copied and read at send time, from recipients_fn
    when given, else from the settings. Port 465 with smtp_secure uses
    implicit TLS; any other port with smtp_secure upgrades with STARTTLS.
    """

    def __init__(
        self,
        email_settings,
        timeout: float = 30.0,
        recipients_fn: Optional[Callable[[], List[str]]] = None,
    ):
        self.settings = email_settings
        self.recipients_fn = recipients_fn
        self.timeout = timeout
        self.sent_count = 0
        self._closed = False

    @property
    def enabled(self) -> bool:
        return bool(self.settings.enabled) and not self._closed

    def build_message(self, payload: ReportPayload) -> MIMEMultipart:
        cfg = self.settings
        message = MIMEMultipart("alternative")
        message["Subject"] = format_subject(payload, cfg.subject_prefix)
        message["From"] = cfg.from_email or cfg.smtp_user
        message["Date"] = formatdate(localtime=False)
        message["Message-ID"] = make_msgid()
        message.attach(MIMEText(format_text(payload), "plain", "utf-8"))
        message.attach(MIMEText(format_html(payload), "html", "utf-8"))
        return message

    @property
    def _implicit_tls(self) -> bool:
        return bool(self.settings.smtp_secure) and self.settings.smtp_port == 465

    def _connect(self) -> smtplib.SMTP:
        cfg = self.settings
        if self._implicit_tls:
            return smtplib.SMTP_SSL(cfg.smtp_host, cfg.smtp_port, timeout=self.timeout)
        return smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=self.timeout)

    def send(self, payload: ReportPayload) -> SendResult:
        if not self.enabled:
            return SendResult(success=False, error="Email not enabled")

        cfg = self.settings
        configured = self.recipients_fn() if self.recipients_fn else cfg.recipients
        recipients = [r.strip() for r in configured if r and r.strip()]
        if not recipients:
            return SendResult(success=False, error="No recipients configured")
        if not cfg.smtp_host:
            return SendResult(success=False, error="SMTP host not configured")

        message = self.build_message(payload)
        try:
            self._deliver(message, recipients)
        except SendError as e:
            logger.warning(str(e))
            return SendResult(success=False, error=str(e), recipients=recipients)

        self.sent_count += 1
        logger.info(f"Report email sent to {len(recipients)} recipient(s)")
        return SendResult(
            success=True, message_id=message["Message-ID"], recipients=recipients
        )

    def _deliver(self, message: MIMEMultipart, recipients: List[str]) -> None:
        cfg = self.settings
        sender = cfg.from_email or cfg.smtp_user
        logger.debug(f"Sending report email to: {', '.join(recipients)}")
        try:
            with self._connect() as server:
                if cfg.smtp_secure and not self._implicit_tls:
                    server.starttls()
                if cfg.smtp_user:
                    server.login(cfg.smtp_user, cfg.smtp_pass)
                server.sendmail(sender, recipients, message.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise SendError(f"Failed to send email: {e}") from e

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            logger.debug("Mailer closed")
