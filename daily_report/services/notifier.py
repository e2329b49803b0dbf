"""Email delivery of report documents.

``MailTransport`` is the seam to the mail server; ``SMTPTransport`` is the
smtplib implementation. ``Notifier`` addresses a document to the configured
recipients and hands it to the transport in a worker thread so the event
loop keeps serving while the SMTP conversation runs.
"""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import formataddr, make_msgid, parseaddr
from typing import Callable, List, Optional, Sequence

from daily_report.config import Settings
from daily_report.errors import DeliveryError, ReportError, TransportError
from daily_report.schemas.report import DeliveryReceipt, ReportDocument
from daily_report.services.formatter import format_date

logger = logging.getLogger(__name__)


class MailTransport(ABC):
    """Abstract mail transport."""

    @abstractmethod
    def send_email(
        self,
        sender: str,
        recipients: Sequence[str],
        subject: str,
        html: str,
        message_id: str,
    ) -> List[str]:
        """Send one HTML message.

        Args:
            sender: From header value
            recipients: Target addresses
            subject: Subject line
            html: HTML body
            message_id: Message-ID header value

        Returns:
            Addresses accepted by the server

        Raises:
            TransportError: If the server cannot be reached or login fails
            DeliveryError: If the server rejects the message
        """
        raise NotImplementedError


class SMTPTransport(MailTransport):
    """smtplib implementation of ``MailTransport``."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_ssl: bool = False,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SMTPTransport":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.EMAIL_USER or None,
            password=settings.EMAIL_PASS or None,
            use_ssl=settings.SMTP_SECURE,
            timeout=settings.SMTP_TIMEOUT,
        )

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        return smtplib.SMTP(self.host, self.port, timeout=self.timeout)

    def send_email(
        self,
        sender: str,
        recipients: Sequence[str],
        subject: str,
        html: str,
        message_id: str,
    ) -> List[str]:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = ", ".join(recipients)
        msg["Message-ID"] = message_id
        msg.set_content(html, subtype="html")

        try:
            with self._connect() as smtp:
                smtp.ehlo()
                if not self.use_ssl and smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                refused = smtp.send_message(msg, to_addrs=list(recipients))
        except (
            smtplib.SMTPAuthenticationError,
            smtplib.SMTPConnectError,
            smtplib.SMTPHeloError,
            smtplib.SMTPNotSupportedError,
            smtplib.SMTPServerDisconnected,
        ) as exc:
            raise TransportError(
                f"Failed to connect or authenticate with SMTP server at {self.host}:{self.port}: {exc}"
            ) from exc
        except smtplib.SMTPRecipientsRefused as exc:
            raise DeliveryError("All recipients were refused", details=_refusals(exc.recipients)) from exc
        except smtplib.SMTPException as exc:
            raise DeliveryError(f"SMTP server rejected the message: {exc}") from exc
        except OSError as exc:
            raise TransportError(f"Failed to reach SMTP server at {self.host}:{self.port}: {exc}") from exc

        if refused:
            logger.warning(f"Some recipients were refused: {', '.join(refused)}")
        return [address for address in recipients if address not in refused]


def _refusals(recipients) -> dict:
    return {address: f"{code} {reply!r}" for address, (code, reply) in recipients.items()}


class Notifier:
    """Deliver report documents to a fixed recipient set."""

    def __init__(
        self,
        transport: MailTransport,
        sender: str,
        recipients: Sequence[str],
        subject_prefix: str = "Daily Report",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not recipients:
            raise ValueError("Notifier requires at least one recipient")
        self.transport = transport
        self.sender = sender
        self.recipients = tuple(recipients)
        self.subject_prefix = subject_prefix
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[MailTransport] = None) -> "Notifier":
        return cls(
            transport or SMTPTransport.from_settings(settings),
            sender=formataddr((settings.EMAIL_FROM_NAME, settings.EMAIL_USER)),
            recipients=settings.recipients,
            subject_prefix=settings.REPORT_TITLE,
        )

    def subject_for(self, document: ReportDocument, now: datetime) -> str:
        subject = f"{self.subject_prefix} - {format_date(now)}"
        if document.is_error:
            subject = f"Error: {subject}"
        return subject

    async def send(self, document: ReportDocument) -> DeliveryReceipt:
        """
        Send a document to every recipient in a single attempt.

        Raises:
            TransportError: If the mail server cannot be reached
            DeliveryError: If the mail server rejects the message
        """
        now = self.clock()
        subject = self.subject_for(document, now)
        address = parseaddr(self.sender)[1]
        domain = address.rpartition("@")[2] if "@" in address else None
        message_id = make_msgid(domain=domain)

        try:
            accepted = await asyncio.to_thread(
                self.transport.send_email,
                self.sender,
                self.recipients,
                subject,
                document.html,
                message_id,
            )
        except ReportError:
            logger.error(f"Error sending email '{subject}'")
            raise
        except Exception as exc:
            logger.error(f"Error sending email '{subject}': {exc}")
            raise DeliveryError(f"Mail transport failed: {exc}") from exc

        logger.info(f"Email sent successfully: {message_id} ({len(accepted)} recipients)")
        return DeliveryReceipt(message_id=message_id, recipients=list(accepted), sent_at=now)
