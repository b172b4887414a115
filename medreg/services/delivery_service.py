"""Delivery of verification codes and confirmation links to email and phone."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import certifi

from medreg.config import Settings
from medreg.utils.contact import mask_contact

_LOGGER = logging.getLogger(__name__)


class DeliveryError(RuntimeError):
    """Raised when a code could not be handed to the mail server."""


def _send_email(settings: Settings, recipient: str, subject: str, plain_body: str, html_body: str) -> None:
    message = MIMEMultipart("alternative")
    message["From"] = settings.email_from or ""
    message["To"] = recipient
    message["Subject"] = subject

    message.attach(MIMEText(plain_body, "plain"))
    message.attach(MIMEText(html_body, "html"))

    context = ssl.create_default_context(cafile=certifi.where())
    try:
        with smtplib.SMTP(settings.smtp_server, settings.smtp_port, timeout=10) as server:
            server.starttls(context=context)
            if settings.smtp_user and settings.smtp_password:
                server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.email_from or "", recipient, message.as_string())
    except (smtplib.SMTPException, OSError) as exc:
        raise DeliveryError(f"Email delivery failed: {exc}") from exc


def send_email_code(settings: Settings, email: str, code: str) -> None:
    """Email a six digit code, or log it when no SMTP server is configured."""
    minutes = settings.code_ttl_seconds // 60
    if not settings.smtp_server:
        _LOGGER.info("SMTP not configured; email code for %s is %s", mask_contact(email), code)
        return

    plain_body = f"Your verification code is {code}. It expires in {minutes} minutes."
    html_body = (
        "<html><body>"
        f"<p>Your verification code is:</p><p style=\"font-size:24px\"><strong>{code}</strong></p>"
        f"<p>It expires in {minutes} minutes.</p>"
        "</body></html>"
    )
    _send_email(settings, email, "Verify your email", plain_body, html_body)
    _LOGGER.info("Verification code emailed to %s", mask_contact(email))


def send_email_link(settings: Settings, email: str, link: str) -> None:
    """Email a one-click confirmation link."""
    if not settings.smtp_server:
        _LOGGER.info("SMTP not configured; confirmation link for %s is %s", mask_contact(email), link)
        return

    html_body = (
        "<html><body>"
        "<p>Click the link below to confirm your email address:</p>"
        f"<p><a href=\"{link}\" target=\"_blank\" rel=\"noopener noreferrer\">Confirm email</a></p>"
        f"<p>{link}</p>"
        "</body></html>"
    )
    _send_email(settings, email, "Confirm your email", link, html_body)
    _LOGGER.info("Confirmation link emailed to %s", mask_contact(email))


def send_sms_code(settings: Settings, phone: str, code: str) -> None:
    """Hand a code to the SMS channel.

    No SMS gateway is wired up yet, so the code is only logged.
    """
    _LOGGER.info("SMS code for %s is %s", mask_contact(phone), code)
