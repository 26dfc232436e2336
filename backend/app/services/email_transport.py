"""Outbound email transport."""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid

from app.config import Settings

logger = logging.getLogger(__name__)


class TransportNotConfigured(RuntimeError):
    """Required transport credentials are missing."""


class DeliveryError(Exception):
    """A single message could not be handed to the transport."""

    def __init__(self, message: str, code: str | int | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


class EmailTransport:
    """Interface the dispatcher sends through."""

    def is_configured(self) -> bool:
        raise NotImplementedError

    def send(
        self,
        to: str,
        subject: str,
        text_body: str,
        html_body: str,
        sender_name: str | None = None,
    ) -> str:
        """Send one message and return the transport's message id.

        Raises DeliveryError on failure.
        """
        raise NotImplementedError


class SmtpEmailTransport(EmailTransport):
    """Send through an SMTP relay.

    Requires settings:
    - SMTP_HOST
    - SMTP_PORT (default 587)
    - SMTP_USER / SMTP_PASSWORD (optional)
    - EMAIL_FROM
    - EMAIL_REPLY_TO
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def is_configured(self) -> bool:
        return self.settings.email_configured

    def build_message(
        self,
        to: str,
        subject: str,
        text_body: str,
        html_body: str,
        sender_name: str | None = None,
    ) -> MIMEMultipart:
        settings = self.settings
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((sender_name or settings.app_name, settings.email_from))
        msg["To"] = to
        msg["Reply-To"] = settings.email_reply_to
        msg["Message-ID"] = make_msgid()
        # Delivery stream / category for relays that route on it
        msg["X-PM-Message-Stream"] = settings.message_stream

        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def send(
        self,
        to: str,
        subject: str,
        text_body: str,
        html_body: str,
        sender_name: str | None = None,
    ) -> str:
        if not self.is_configured():
            raise TransportNotConfigured("SMTP transport is not configured")

        settings = self.settings
        msg = self.build_message(to, subject, text_body, html_body, sender_name)

        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout) as server:
                if settings.smtp_use_tls:
                    server.starttls()
                if settings.smtp_user and settings.smtp_password:
                    server.login(settings.smtp_user, settings.smtp_password)
                server.send_message(msg)
        except smtplib.SMTPRecipientsRefused as e:
            code, reason = next(iter(e.recipients.values()), (None, b""))
            raise DeliveryError(_decode(reason) or "Recipient refused", code) from e
        except smtplib.SMTPResponseException as e:
            raise DeliveryError(_decode(e.smtp_error) or "SMTP error", e.smtp_code) from e
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(str(e) or e.__class__.__name__) from e

        return msg["Message-ID"]


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value or "")
