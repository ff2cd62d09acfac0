from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from app.core.config import Settings, settings
from app.core.errors import ConfigurationError, EmailDeliveryError
from app.core.logging import get_logger
from app.core.metrics import inc_counter, timer
from app.i18n.messages import DeliveryMessages

logger = get_logger("maturity.services.mailer", component="service")


class SmtpMailer:
    """Send the report email over SMTP; every network call is bounded by ``timeout``."""

    def __init__(
        self,
        host: Optional[str],
        port: int,
        user: Optional[str],
        password: Optional[str],
        sender: Optional[str],
        *,
        timeout: float = 15.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.timeout = timeout

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "SmtpMailer":
        return cls(
            config.smtp_host,
            config.smtp_port,
            config.smtp_user,
            config.smtp_password,
            config.smtp_from,
            timeout=config.smtp_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.user and self.password and self.sender)

    def _connect(self) -> smtplib.SMTP:
        if self.port == 465:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=ssl.create_default_context())
        client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            client.ehlo()
            if client.has_extn("starttls"):
                client.starttls(context=ssl.create_default_context())
                client.ehlo()
        except (smtplib.SMTPException, OSError):
            client.close()
            raise
        return client

    def send(self, to: str, subject: str, html: str, attachment: bytes, filename: str) -> str:
        if not self.configured:
            raise ConfigurationError(DeliveryMessages.SMTP_NOT_CONFIGURED)

        message = EmailMessage()
        message_id = make_msgid(domain=self.sender.rsplit("@", 1)[-1] if "@" in self.sender else None)
        message["Message-ID"] = message_id
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("Il tuo report è allegato in formato PDF.")
        message.add_alternative(html, subtype="html")
        message.add_attachment(attachment, maintype="application", subtype="pdf", filename=filename)

        try:
            with timer("delivery.email.send"):
                with self._connect() as client:
                    client.login(self.user, self.password)
                    client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            inc_counter("delivery.email.errors")
            logger.warning(
                "smtp_send_failed",
                extra={"structured_data": {"host": self.host, "port": self.port, "error": str(exc)}},
            )
            raise EmailDeliveryError(DeliveryMessages.EMAIL_FAILED, detail={"reason": str(exc)}) from exc

        inc_counter("delivery.email.sent")
        return message_id
