"""IMAP Poller for tracker mail.

Alternative to running the SMTP server: reads a mailbox the tracker's
address is delivered to, processes every message in it, and deletes what
it processed. Messages that failed transiently stay for the next poll.

Polling runs in a plain thread; set the shutdown event to stop it.
"""

import imaplib
import logging
import subprocess
import threading
from typing import Callable, Optional, Sequence

from ...domain.mail.errors import InvalidMessage, RetryableFailure
from ...domain.mail.session import MailSession
from ...observability.correlation import generate_correlation_id, set_correlation_id
from .mime_parser import extract_from_addresses, parse_mime_message

logger = logging.getLogger(__name__)


class ImapAuthError(Exception):
    """Could not obtain credentials for the IMAP login."""
    pass


def run_token_command(command: Sequence[str]) -> str:
    """Run an OAuth2 token helper such as `pizauth show tooltracker`.

    Returns:
        str: The access token printed on stdout

    Raises:
        ImapAuthError: If the command is empty, fails or prints nothing
    """
    if not command:
        raise ImapAuthError("Token command is empty")
    try:
        result = subprocess.run(list(command), capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.SubprocessError) as e:
        raise ImapAuthError(f"Error running token command: {e}")

    stderr = result.stderr.strip()
    if result.returncode != 0:
        raise ImapAuthError(f"Token command exited with {result.returncode}: {stderr}")
    if stderr:
        logger.warning(f"Token command stderr: {stderr}")

    token = result.stdout.strip()
    if not token:
        raise ImapAuthError("Token command printed no token")
    return token


def xoauth2_string(user: str, token: str) -> bytes:
    """SASL XOAUTH2 initial response."""
    return f"user={user}\x01auth=Bearer {token}\x01\x01".encode()


class ImapPoller:
    """Polls an IMAP mailbox and feeds each message to a MailSession.

    Args:
        mail_session: Shared MailSession
        host: IMAP server (TLS, port 993 by default)
        user: Login user
        mailbox: Mailbox to read and delete from
        token_command: OAuth2 token helper, used when no password is given
        password: Plain LOGIN password
        port: IMAP TLS port
        max_message_bytes: Bytes fetched per message
        poll_interval: Seconds between polls
        retry_interval: Seconds to wait after a connection error
        connect: Factory returning a connected IMAP4 client (host, port)
    """

    def __init__(
        self,
        mail_session: MailSession,
        host: str,
        user: str,
        mailbox: str = "INBOX",
        token_command: Optional[Sequence[str]] = None,
        password: Optional[str] = None,
        port: int = 993,
        max_message_bytes: int = 1024 * 1024,
        poll_interval: float = 60.0,
        retry_interval: float = 300.0,
        connect: Callable[[str, int], imaplib.IMAP4] = imaplib.IMAP4_SSL,
    ):
        self.mail_session = mail_session
        self.host = host
        self.user = user
        self.mailbox = mailbox
        self.token_command = list(token_command or [])
        self.password = password
        self.port = port
        self.max_message_bytes = max_message_bytes
        self.poll_interval = poll_interval
        self.retry_interval = retry_interval
        self.connect = connect

    def login(self) -> imaplib.IMAP4:
        """Connect, authenticate and select the mailbox.

        Raises:
            ImapAuthError: If no token can be obtained
            imaplib.IMAP4.error: If the server refuses login or select
            OSError: If the server cannot be reached
        """
        logger.info(f"Connecting to {self.host}:{self.port}")
        imap = self.connect(self.host, self.port)

        if self.password:
            imap.login(self.user, self.password)
        else:
            token = run_token_command(self.token_command)
            logger.info("Authenticating with XOAUTH2")
            imap.authenticate("XOAUTH2", lambda _: xoauth2_string(self.user, token))

        status, data = imap.select(self.mailbox)
        if status != "OK":
            raise imaplib.IMAP4.error(f"Failed to select mailbox {self.mailbox}: {data}")
        logger.info(f"Mailbox {self.mailbox} contains {data[0].decode()} messages")
        return imap

    def run(self, shutdown: threading.Event) -> None:
        """Poll until `shutdown` is set, reconnecting after errors."""
        while not shutdown.is_set():
            imap = None
            try:
                imap = self.login()
                while not shutdown.is_set():
                    self.poll_once(imap, shutdown)
                    shutdown.wait(self.poll_interval)
            except (imaplib.IMAP4.error, ImapAuthError, OSError) as e:
                logger.error(f"IMAP connection failed: {e}, retrying in {self.retry_interval}s")
                shutdown.wait(self.retry_interval)
            finally:
                if imap is not None:
                    self._logout(imap)
        logger.info("IMAP poller stopped")

    def poll_once(self, imap: imaplib.IMAP4, shutdown: Optional[threading.Event] = None) -> int:
        """Process every message currently in the mailbox.

        Returns:
            int: Number of messages flagged for deletion
        """
        status, data = imap.uid("SEARCH", None, "ALL")
        if status != "OK":
            raise imaplib.IMAP4.error(f"SEARCH failed: {data}")
        uids = data[0].split() if data and data[0] else []

        deleted = 0
        for uid in uids:
            if shutdown is not None and shutdown.is_set():
                break
            if self.process_uid(imap, uid.decode()):
                deleted += 1

        if deleted:
            imap.expunge()
        return deleted

    def process_uid(self, imap: imaplib.IMAP4, uid: str) -> bool:
        """Fetch and process one message.

        Returns:
            bool: True if the message was flagged \\Deleted
        """
        set_correlation_id(generate_correlation_id())
        try:
            raw = self.fetch(imap, uid)
            if raw is None:
                logger.warning(f"Fetched nothing for UID {uid}")
                return False

            if self.handle_raw(raw, uid):
                imap.uid("STORE", uid, "+FLAGS.SILENT", r"(\Deleted)")
                return True
            return False
        finally:
            set_correlation_id(None)

    def fetch(self, imap: imaplib.IMAP4, uid: str) -> Optional[bytes]:
        """Fetch up to max_message_bytes of a message without setting \\Seen."""
        status, data = imap.uid("FETCH", uid, f"(BODY.PEEK[]<0.{self.max_message_bytes}>)")
        if status != "OK":
            logger.error(f"Failed to fetch UID {uid}: {data}")
            return None
        for item in data:
            if isinstance(item, tuple) and len(item) == 2:
                return item[1]
        return None

    def handle_raw(self, raw: bytes, uid: str) -> bool:
        """Run one message through the session.

        Returns:
            bool: Whether the message is done with and should be deleted
        """
        try:
            senders = extract_from_addresses(parse_mime_message(raw))
        except ValueError as e:
            logger.warning(f"Deleting unparseable message UID {uid}: {e}")
            return True
        if len(senders) != 1:
            logger.warning(f"Expecting one from address, got {len(senders)}")
            return True

        sender = senders[0]
        logger.info(f"Processing message from {sender}", extra={"sender": sender, "transport": "imap"})
        try:
            self.mail_session.handle(raw, sender)
        except InvalidMessage as e:
            logger.warning(f"Dropped invalid email from {sender}: {e}")
        except RetryableFailure as e:
            logger.error(f"Keeping message from {sender} for retry: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error processing email: {e}", exc_info=True)
            return False
        return True

    @staticmethod
    def _logout(imap: imaplib.IMAP4) -> None:
        try:
            imap.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug(f"Logout failed: {e}")

