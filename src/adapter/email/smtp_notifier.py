"""SMTP implementation of NotifierPort.

Renders the verification, password reset and welcome emails and sends them
synchronously. Delivery failures are logged and reported as False; the
socket timeout bounds every send.
"""

import logging
import re
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape
from typing import Any

from domain.model.auth import NotificationKind

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 20.0


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int = 465
    username: str = ''
    password: str = ''
    from_name: str = 'App Name'
    use_ssl: bool = True
    timeout: float = SMTP_TIMEOUT_SECONDS


_LAYOUT = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #4a4a4a;">{title}</h2>
  {body}
  <p>Best regards,<br>The Team</p>
</div>
"""

_CODE = '<strong style="font-size: 18px; color: #007bff;">{code}</strong>'


def _greeting(name: str) -> str:
    return f"<p>Hello {escape(name)},</p>" if name else "<p>Hello,</p>"


def _render(kind: NotificationKind, payload: dict[str, Any]) -> tuple[str, str]:
    """Return (subject, html) for a notification."""
    name = payload.get('name') or ''
    code = _CODE.format(code=escape(str(payload.get('code', ''))))

    if kind == NotificationKind.VERIFICATION_CODE:
        body = (
            f"{_greeting(name)}"
            "<p>Thank you for registering! Please verify your email address to complete your registration.</p>"
            f"<p>Your verification code is: {code}</p>"
            "<p>Please use this code to verify your email. The code will expire in 1 hour.</p>"
            "<p>If you didn't request this code, you can safely ignore this email.</p>"
        )
        return 'Verify Your Email Address', _LAYOUT.format(title='Email Verification', body=body)

    if kind == NotificationKind.RESET_CODE:
        body = (
            f"{_greeting(name)}"
            "<p>We received a request to reset the password for your account.</p>"
            f"<p>Your password reset code is: {code}</p>"
            "<p>This code will expire in 1 hour.</p>"
            "<p>If you didn't request a password reset, you can safely ignore this email.</p>"
        )
        return 'Reset Your Password', _LAYOUT.format(title='Password Reset', body=body)

    body = (
        f"{_greeting(name)}"
        "<p>Thank you for joining us! Your account has been successfully created and verified.</p>"
        "<p>You can now enjoy all the features our platform has to offer.</p>"
        "<p>If you have any questions or need assistance, please don't hesitate to contact our support team.</p>"
    )
    return 'Welcome to Our Platform', _LAYOUT.format(title='Welcome to Our Platform!', body=body)


def _html_to_text(html: str) -> str:
    text = re.sub(r'<br\s*/?>', '\n', html)
    text = re.sub(r'</(p|h2)>', '\n', text)
    text = re.sub(r'<[^>]*>', '', text)
    return '\n'.join(line.strip() for line in text.splitlines() if line.strip())


class SmtpNotifier:
    """Sends account emails through an SMTP server."""

    def __init__(self, settings: SmtpSettings):
        self.settings = settings

    def build_message(self, kind: NotificationKind, to: str, payload: dict[str, Any]) -> EmailMessage:
        subject, html = _render(kind, payload)
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{self.settings.from_name} <{self.settings.username}>"
        msg["To"] = to
        msg.set_content(_html_to_text(html))
        msg.add_alternative(html, subtype="html")
        return msg

    def notify(self, kind: NotificationKind, to: str, payload: dict[str, Any]) -> bool:
        msg = self.build_message(kind, to, payload)
        try:
            with self._connect() as server:
                if self.settings.username:
                    server.login(self.settings.username, self.settings.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email", extra={
                "kind": kind.value, "email": to, "error": str(e),
            })
            return False

        logger.info("Email sent", extra={"kind": kind.value, "email": to})
        return True

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        if s.use_ssl:
            return smtplib.SMTP_SSL(s.host, s.port, timeout=s.timeout)
        server = smtplib.SMTP(s.host, s.port, timeout=s.timeout)
        server.starttls()
        return server
