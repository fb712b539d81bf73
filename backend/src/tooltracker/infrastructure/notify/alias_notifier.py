"""Alias invitation mail, sent to borrowers outside the known senders.

Replying keeps the "Subject: Alias" line, so the reply is itself an Alias
command and the first line of the reply becomes the sender's alias.
"""

import logging
import smtplib
from email.mime.text import MIMEText
from typing import Optional

from ...domain.mail.ports import AliasNotifierPort

logger = logging.getLogger(__name__)

INVITATION_BODY = (
    "Your email isn't a work e-mail. Reply to this e-mail with the first\n"
    "line of the reply containing an alias you wish to use (to hide your\n"
    "personal e-mail address)."
)


class SmtpAliasNotifier(AliasNotifierPort):
    """Sends alias invitations through an authenticated submission server.

    Args:
        host: Submission server hostname
        port: Submission port (STARTTLS is always used)
        user: Login user
        password: Login password
        from_address: Tracker address replies should go to
        timeout: Socket timeout in seconds
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_address: str,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> Optional["SmtpAliasNotifier"]:
        """Build a notifier, or None unless host, user and password are all set."""
        if not (settings.SMTP_SEND_HOST and settings.SMTP_SEND_USER and settings.SMTP_SEND_PASSWORD):
            return None
        return cls(
            host=settings.SMTP_SEND_HOST,
            port=settings.SMTP_SEND_PORT,
            user=settings.SMTP_SEND_USER,
            password=settings.SMTP_SEND_PASSWORD,
            from_address=settings.accept_address,
        )

    def build_message(self, recipient: str) -> MIMEText:
        msg = MIMEText(INVITATION_BODY, 'plain')
        msg['To'] = recipient
        msg['From'] = self.from_address
        msg['Subject'] = "Alias"
        msg['X-Tooltracker-Type'] = "Alias"
        return msg

    def notify(self, recipient: str) -> None:
        """Send the invitation.

        Raises:
            smtplib.SMTPException: If submission fails
            OSError: If the server cannot be reached
        """
        msg = self.build_message(recipient)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            smtp.login(self.user, self.password)
            smtp.send_message(msg)
        logger.info(f"Sent alias invitation to {recipient}")
