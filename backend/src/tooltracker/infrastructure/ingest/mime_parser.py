"""MIME Parser for inbound tracker mail.

Parses raw messages with the standard library and extracts the headers the
transport adapters log and route on.
"""

import email
import email.policy
import logging
from email.message import Message
from email.utils import getaddresses
from typing import List, Optional

logger = logging.getLogger(__name__)


class EmailMetadata:
    """Extracted metadata from email message."""

    def __init__(
        self,
        message_id: Optional[str],
        from_addresses: List[str],
        subject: Optional[str],
        date: Optional[str],
    ):
        self.message_id = message_id
        self.from_addresses = from_addresses
        self.subject = subject
        self.date = date

    @property
    def single_sender(self) -> Optional[str]:
        """The From address, if the message has exactly one."""
        if len(self.from_addresses) == 1:
            return self.from_addresses[0]
        return None


def parse_mime_message(raw_mime: bytes) -> Message:
    """Parse raw MIME bytes into email.Message object.

    Args:
        raw_mime: Raw MIME message bytes

    Returns:
        email.Message: Parsed MIME message

    Raises:
        ValueError: If MIME parsing fails
    """
    try:
        msg = email.message_from_bytes(
            raw_mime,
            policy=email.policy.default
        )
        return msg
    except Exception as e:
        logger.error(f"Failed to parse MIME message: {e}")
        raise ValueError(f"Invalid MIME message: {e}")


def extract_from_addresses(msg: Message) -> List[str]:
    """Return every address in the From header(s), in order."""
    try:
        headers = [str(value) for value in msg.get_all('From', [])]
    except (TypeError, ValueError) as e:
        logger.warning(f"Unparseable From header: {e}")
        return []
    return [addr for _, addr in getaddresses(headers) if addr]


def extract_metadata(msg: Message) -> EmailMetadata:
    """Extract email metadata from parsed MIME message.

    Args:
        msg: Parsed email message

    Returns:
        EmailMetadata: Extracted metadata
    """
    return EmailMetadata(
        message_id=msg.get('Message-ID'),
        from_addresses=extract_from_addresses(msg),
        subject=msg.get('Subject'),
        date=msg.get('Date'),
    )
