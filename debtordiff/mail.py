from __future__ import annotations

import logging
import os
import smtplib
from dataclasses import dataclass
from datetime import date, datetime
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .models import BARCODE, CAMPUS, DUE_DATE, EMAIL, FULL_NAME, TITLE, ActionKind, Config, Row

LOGGER = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

ENV = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


@dataclass(frozen=True)
class NotificationTemplate:
    subject: str
    template: str
    log_entry: str


NOTIFICATIONS: Dict[ActionKind, NotificationTemplate] = {
    ActionKind.FIRST_REMINDER: NotificationTemplate(
        "Reminder: pending return of borrowed items", "first_reminder.html", "first reminder sent"
    ),
    ActionKind.SECOND_REMINDER: NotificationTemplate(
        "Second reminder: pending return of borrowed items", "second_reminder.html", "second reminder sent"
    ),
    ActionKind.RECHARGE_NOTICE: NotificationTemplate(
        "Notice of late-return charge", "recharge_notice.html", "recharge notice sent"
    ),
    ActionKind.RECHARGE_CONFIRMATION: NotificationTemplate(
        "Late-return charge confirmed", "recharge_confirmation.html", "recharge confirmation sent"
    ),
}


class Mailer(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> bool: ...


class SmtpMailer:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        sender_name: str = "",
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.sender_name = sender_name
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _message(self, to: str, subject: str, html_body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.sender_name, self.sender)) if self.sender_name else self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(html_body, subtype="html")
        return msg

    def send(self, to: str, subject: str, html_body: str) -> bool:
        if not to or not str(to).strip():
            LOGGER.error("Empty recipient for %r", subject)
            return False
        msg = self._message(str(to).strip(), subject, html_body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.error("Sending to %s failed: %s", to, exc)
            return False
        LOGGER.info("Email sent to %s: %s", to, subject)
        return True


class LogMailer:
    """Dry-run mailer: logs what would be sent and reports success."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, str]] = []

    def send(self, to: str, subject: str, html_body: str) -> bool:
        if not to or not str(to).strip():
            LOGGER.error("Empty recipient for %r", subject)
            return False
        self.sent.append({"to": str(to).strip(), "subject": subject, "html_body": html_body})
        LOGGER.info("[dry-run] email to %s: %s (%d chars)", to, subject, len(html_body))
        return True


def mailer_from_config(config: Config, dry_run: bool = False) -> Mailer:
    mail_cfg = config.get("mail") or {}
    if dry_run or not mail_cfg.get("host"):
        if not dry_run:
            LOGGER.warning("No mail.host configured; notifications are logged, not sent")
        return LogMailer()
    password_env = mail_cfg.get("password_env")
    return SmtpMailer(
        host=mail_cfg["host"],
        port=int(mail_cfg.get("port", 587)),
        sender=mail_cfg.get("sender", ""),
        sender_name=mail_cfg.get("sender_name", ""),
        username=mail_cfg.get("username"),
        password=os.getenv(password_env) if password_env else None,
        use_tls=bool(mail_cfg.get("use_tls", True)),
    )


def _display(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.strftime("%d/%m/%Y")
    return "" if value is None else str(value)


def recipient(rows: Sequence[Row]) -> str:
    for values in rows:
        email = values[EMAIL]
        if email and str(email).strip():
            return str(email).strip()
    return ""


def render_notification(kind: ActionKind, rows: Sequence[Row], config: Config) -> Tuple[str, str]:
    """Subject and HTML body for one message covering all of a user's rows."""
    notification = NOTIFICATIONS[kind]
    branding = (config.get("mail") or {}).get("branding") or {}
    items = [
        {
            "title": _display(values[TITLE]),
            "barcode": _display(values[BARCODE]),
            "campus": _display(values[CAMPUS]),
            "due_date": _display(values[DUE_DATE]),
        }
        for values in rows
    ]
    campus_name = branding.get("campus_name")
    subject = f"{notification.subject} - {campus_name}" if campus_name else notification.subject
    body = ENV.get_template(notification.template).render(
        name=_display(rows[0][FULL_NAME]),
        items=items,
        branding=branding,
    )
    return subject, body
