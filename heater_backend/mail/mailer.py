# heater_backend/mail/mailer.py
from __future__ import annotations

from email.message import EmailMessage
from typing import Iterable
from typing_extensions import Protocol
import logging
import smtplib


logger = logging.getLogger(__name__)


class MailSender(Protocol):
    def send(self, subject: str, body: str, recipients: Iterable[str]) -> None:
        ...


class Mailer:
    """Wysyłka maili przez SMTP (STARTTLS, login jeśli podano użytkownika)."""

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        sender: str = "",
        use_tls: bool = True,
        timeout_s: float = 30.0,
    ) -> None:
        self._host = host
        self._port = int(port)
        self._user = user
        self._password = password
        self._sender = sender or user
        self._use_tls = bool(use_tls)
        self._timeout_s = float(timeout_s)

    def build_message(self, subject: str, body: str, recipients: Iterable[str]) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self._sender
        msg["To"] = ", ".join(sorted(recipients))
        msg.set_content(body)
        return msg

    def send(self, subject: str, body: str, recipients: Iterable[str]) -> None:
        recipients = sorted(set(recipients))
        if not recipients:
            logger.info("Mail '%s' not sent: no recipients", subject)
            return

        msg = self.build_message(subject, body, recipients)
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout_s) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._user:
                smtp.login(self._user, self._password)
            smtp.send_message(msg)

        logger.info("Mail '%s' sent to %d recipient(s)", subject, len(recipients))
