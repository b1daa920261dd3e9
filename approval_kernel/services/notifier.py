"""
approval_kernel.services.notifier -- Mail transport adapters.

Responsibility:
    The notifier boundary: ``send(to, subject, html_body) -> bool``.  The
    kernel only builds recipients, subjects and bodies; transport details
    stay behind this interface.

Failure modes:
    - Adapters return False or raise NotificationDeliveryError.  Callers
      (``NotificationService``) log the failure and carry on; chain state is
      never rolled back for a transport failure.
"""

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from approval_kernel.exceptions import NotificationDeliveryError
from approval_kernel.logging_config import get_logger

logger = get_logger("services.notifier")


class Notifier(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> bool:
        """Deliver one HTML message.  True on success."""
        ...


@dataclass(frozen=True)
class OutboundMessage:
    to: str
    subject: str
    html_body: str


class OutboxNotifier:
    """Keeps messages in memory instead of sending them.

    Used for dry runs (the CLI prints the outbox) and tests.
    """

    def __init__(self) -> None:
        self.messages: list[OutboundMessage] = []

    def send(self, to: str, subject: str, html_body: str) -> bool:
        self.messages.append(OutboundMessage(to, subject, html_body))
        return True

    def sent_to(self, to: str) -> list[OutboundMessage]:
        return [m for m in self.messages if m.to.lower() == to.lower()]

    def clear(self) -> None:
        self.messages.clear()


class SmtpNotifier:
    """Sends HTML mail through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def send(self, to: str, subject: str, html_body: str) -> bool:
        msg = MIMEMultipart()
        msg["From"] = self._sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                if self._use_tls:
                    server.starttls()
                if self._username and self._password:
                    server.login(self._username, self._password)
                server.send_message(msg, to_addrs=[to])
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationDeliveryError(to, str(exc)) from exc

        logger.debug("smtp_message_sent", extra={"to": to, "subject": subject})
        return True
