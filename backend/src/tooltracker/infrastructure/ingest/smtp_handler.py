"""SMTP Handler for tracker mail.

Implements the aiosmtpd handler hooks. Only the tracker's own address is
accepted as recipient; each message is handed to MailSession in a worker
thread so slow DNS or database calls never block the event loop.

Response codes:
    250  processed, or rejected as invalid (no bounce is generated)
    451  temporary failure, the sending MTA should retry
    452  too many recipients
    550  unknown recipient
"""

import asyncio
import logging
from typing import List

from aiosmtpd.controller import Controller
from aiosmtpd.smtp import Envelope, Session, SMTP

from ...domain.mail.errors import InvalidMessage, RetryableFailure
from ...domain.mail.session import MailSession
from ...observability.correlation import generate_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)


class TrackerSMTPHandler:
    """SMTP handler feeding received mail into a MailSession.

    Args:
        mail_session: Shared MailSession
        accept_address: The only recipient accepted, e.g. tooltracker@example.com
        max_recipients: Upper bound on RCPT TO commands per message
    """

    def __init__(
        self,
        mail_session: MailSession,
        accept_address: str,
        max_recipients: int = 10,
    ):
        self.mail_session = mail_session
        self.accept_address = accept_address.strip().lower()
        self.max_recipients = max_recipients

    def is_accepted_recipient(self, address: str) -> bool:
        return address.strip().lower() == self.accept_address

    async def handle_RCPT(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
        address: str,
        rcpt_options: List[str],
    ) -> str:
        """Accept only the tracker address, up to max_recipients times."""
        if not self.is_accepted_recipient(address):
            logger.warning(f"Rejecting recipient {address}")
            return '550 No such user here'
        if len(envelope.rcpt_tos) >= self.max_recipients:
            return '452 Too many recipients'
        envelope.rcpt_tos.append(address)
        return '250 OK'

    async def handle_DATA(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
    ) -> str:
        """Handle email DATA command (main SMTP handler entry point).

        Args:
            server: SMTP server instance
            session: SMTP session
            envelope: Email envelope (content, sender, recipients)

        Returns:
            str: SMTP response code and message
        """
        set_correlation_id(generate_correlation_id())
        sender = envelope.mail_from
        # DKIM needs the bytes exactly as received
        raw = envelope.original_content or envelope.content or b""
        if isinstance(raw, str):
            raw = raw.encode("utf-8", errors="surrogateescape")

        logger.info(
            f"Received email: from={sender}, size={len(raw)} bytes",
            extra={"sender": sender, "transport": "smtp"},
        )

        try:
            await asyncio.to_thread(self.mail_session.handle, raw, sender)
        except InvalidMessage as e:
            # Accept and drop: bouncing would mail whoever the sender claims to be
            logger.warning(f"Dropped invalid email from {sender}: {e}")
            return '250 Message accepted'
        except RetryableFailure as e:
            logger.error(f"Temporary failure processing email from {sender}: {e}")
            return '451 Temporary server error'
        except Exception as e:
            logger.error(f"Unexpected error processing email: {e}", exc_info=True)
            return '451 Temporary server error'
        finally:
            set_correlation_id(None)

        return '250 Message accepted'


def create_controller(
    handler: TrackerSMTPHandler,
    hostname: str,
    port: int,
    server_hostname: str,
    data_size_limit: int,
    read_timeout: float,
) -> Controller:
    """Build the aiosmtpd Controller serving `handler`.

    Messages over `data_size_limit` bytes are refused by aiosmtpd with 552
    before DATA completes.
    """
    return Controller(
        handler,
        hostname=hostname,
        port=port,
        server_hostname=server_hostname,
        data_size_limit=data_size_limit,
        timeout=read_timeout,
        enable_SMTPUTF8=True,
    )
