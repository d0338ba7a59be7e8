"""SMTP mail transport.

smtplib is blocking, so every network call runs in a worker thread to keep
the event loop free. Each call opens its own connection and the context
manager closes it on every path.
"""

import asyncio
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from sugar_monitor.config import Settings, settings
from sugar_monitor.core.errors import NotifierConnectionError, NotifierSendError
from sugar_monitor.logging_config import get_logger

logger = get_logger(__name__)

SENDER_NAME = "Blood Sugar Monitor"


@dataclass(frozen=True)
class MailMessage:
    """A multipart (text + HTML) message to one or more recipients."""

    to: tuple[str, ...]
    subject: str
    html_body: str
    text_body: str


class SmtpMailTransport:
    """Sends mail through an SMTP relay with STARTTLS and login."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        sender: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "SmtpMailTransport":
        config = config or settings
        return cls(
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_user,
            password=config.smtp_password,
            sender=config.mail_sender,
            use_tls=config.smtp_use_tls,
            timeout=config.smtp_timeout_seconds,
        )

    def _open(self) -> smtplib.SMTP:
        if not self.host:
            raise NotifierConnectionError("SMTP host is not configured")

        try:
            if self.port == 465:
                return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
            return smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        except (smtplib.SMTPException, OSError) as e:
            raise NotifierConnectionError(
                f"Could not connect to SMTP server {self.host}:{self.port}: {e}"
            ) from e

    def _handshake(self, server: smtplib.SMTP) -> None:
        """EHLO, STARTTLS, and login on an open connection."""
        try:
            server.ehlo()
            if self.use_tls and self.port not in (25, 465):
                server.starttls()
                server.ehlo()
            if self.username:
                server.login(self.username, self.password)
        except (smtplib.SMTPException, OSError) as e:
            raise NotifierConnectionError(
                f"SMTP handshake with {self.host}:{self.port} failed: {e}"
            ) from e

    def _build(self, message: MailMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((SENDER_NAME, self.sender))
        msg["To"] = ", ".join(message.to)
        msg["Subject"] = message.subject
        # Last part is the preferred rendering
        msg.attach(MIMEText(message.text_body, "plain", "utf-8"))
        msg.attach(MIMEText(message.html_body, "html", "utf-8"))
        return msg

    def _verify_sync(self) -> None:
        with self._open() as server:
            self._handshake(server)
            try:
                server.noop()
            except (smtplib.SMTPException, OSError) as e:
                raise NotifierConnectionError(
                    f"SMTP server did not respond: {e}"
                ) from e

    def _send_sync(self, message: MailMessage) -> None:
        with self._open() as server:
            self._handshake(server)
            try:
                server.sendmail(
                    self.sender, list(message.to), self._build(message).as_string()
                )
            except smtplib.SMTPServerDisconnected as e:
                raise NotifierConnectionError(f"SMTP connection dropped: {e}") from e
            except (smtplib.SMTPException, OSError) as e:
                raise NotifierSendError(f"SMTP send failed: {e}") from e

    async def verify(self) -> None:
        """Connect, authenticate, and NOOP.

        Raises:
            NotifierConnectionError: On any connection or auth failure.
        """
        await asyncio.to_thread(self._verify_sync)
        logger.info("Mail transport connection verified", host=self.host)

    async def send(self, message: MailMessage) -> None:
        """Send a message.

        Raises:
            NotifierConnectionError: If the server cannot be reached.
            NotifierSendError: If the server rejects the message.
        """
        if not message.to:
            raise NotifierSendError("Message has no recipients")
        await asyncio.to_thread(self._send_sync, message)
        logger.info(
            "Email sent",
            recipients=len(message.to),
            subject=message.subject,
        )
