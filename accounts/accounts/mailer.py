"""Transactional email over SMTP."""

import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from accounts.errors import MailError

logger = logging.getLogger("accounts.mailer")


class MailSender:
    def send(self, to: str, subject: str, text: str, html: Optional[str] = None):
        raise NotImplementedError


class SmtpMailSender(MailSender):
    """Sends mail from a single system mailbox via STARTTLS SMTP."""

    def __init__(
        self,
        server: str,
        port: int,
        user: str,
        password: str,
        sender_name: str,
    ):
        self.server = server
        self.port = port
        self.user = user
        self.password = password
        self.sender_name = sender_name

        if not self.password:
            logger.warning("SMTP password is not configured. Email sending will fail.")

    def build_message(
        self, to: str, subject: str, text: str, html: Optional[str] = None
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = f'"{self.sender_name}" <{self.user}>'
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text)
        if html is not None:
            msg.add_alternative(html, subtype="html")
        return msg

    def send(self, to: str, subject: str, text: str, html: Optional[str] = None):
        msg = self.build_message(to, subject, text, html)
        try:
            with smtplib.SMTP(self.server, self.port) as server:
                server.starttls()
                server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send '{subject}' to {to}: {e}")
            raise MailError(f"Failed to send email: {e}") from e
        logger.info(f"Email '{subject}' sent to {to}")
