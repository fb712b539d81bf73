"""Mail session: the single entry point for inbound tracker mail.

Both transport adapters (SMTP DATA, IMAP fetch) call
MailSession.handle(raw, sender) exactly once per received message.

Processing is a linear state machine, not persisted between messages:

    RECEIVED → TRUST_CHECKED → BODY_EXTRACTED → COMMAND_DISPATCHED → DONE
        ↓            ↓               ↓                  ↓
      FAILED ←──────────────────────────────────────────┘

The store is written only in COMMAND_DISPATCHED, so a failure in any
earlier state leaves it untouched.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Pattern

from ...infrastructure.ingest.mime_parser import parse_mime_message
from .addresses import find_addresses, normalize_address
from .body import extract_body, first_line
from .commands import AliasCommand, BorrowCommand, Command, UnknownCommand, classify
from .errors import InvalidMessage, RetryableFailure
from .ports import AliasNotifierPort, AliasRecord, DkimVerifierPort, TrackerStorePort
from .trust import TrustEvaluator, TrustPolicy

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Processing state of one message."""
    RECEIVED = "RECEIVED"
    TRUST_CHECKED = "TRUST_CHECKED"
    BODY_EXTRACTED = "BODY_EXTRACTED"
    COMMAND_DISPATCHED = "COMMAND_DISPATCHED"
    DONE = "DONE"
    FAILED = "FAILED"


ALLOWED_TRANSITIONS: Dict[SessionState, List[SessionState]] = {
    SessionState.RECEIVED: [SessionState.TRUST_CHECKED, SessionState.FAILED],
    SessionState.TRUST_CHECKED: [SessionState.BODY_EXTRACTED, SessionState.FAILED],
    SessionState.BODY_EXTRACTED: [SessionState.COMMAND_DISPATCHED, SessionState.FAILED],
    SessionState.COMMAND_DISPATCHED: [SessionState.DONE, SessionState.FAILED],
    SessionState.DONE: [],  # Terminal success state
    SessionState.FAILED: [],  # Terminal failure state
}


def can_transition(from_state: SessionState, to_state: SessionState) -> bool:
    """Validate if a state transition is allowed."""
    return to_state in ALLOWED_TRANSITIONS.get(from_state, [])


class MessageProgress:
    """Tracks the state of one message through the pipeline."""

    def __init__(self, sender: Optional[str]):
        self.sender = sender
        self.state = SessionState.RECEIVED
        self.failure: Optional[str] = None

    def advance(self, new_state: SessionState) -> None:
        """Move to `new_state`.

        Raises:
            ValueError: If the transition is not allowed
        """
        if not can_transition(self.state, new_state):
            raise ValueError(
                f"Invalid session transition: {self.state.value} → {new_state.value}"
            )
        logger.debug(f"Message from {self.sender}: {self.state.value} → {new_state.value}")
        self.state = new_state

    def fail(self, reason: str) -> None:
        self.failure = reason
        self.advance(SessionState.FAILED)


class MailSession:
    """Interprets tracker mails and applies them to the store.

    Holds no per-message state, so one instance serves every connection;
    concurrent writes are serialized by the store's upserts.

    Args:
        store: Tracker persistence
        verifier: DKIM verifier (used only when the policy enables DKIM)
        policy: Trust configuration
        notifier: Optional alias invitation sender
        known_senders: Addresses matching this need no alias invitation
    """

    def __init__(
        self,
        store: TrackerStorePort,
        verifier: DkimVerifierPort,
        policy: TrustPolicy,
        notifier: Optional[AliasNotifierPort] = None,
        known_senders: Optional[Pattern] = None,
    ):
        self.store = store
        self.policy = policy
        self.trust = TrustEvaluator(verifier, policy)
        self.notifier = notifier
        self.known_senders = known_senders

    def handle(self, raw_message: bytes, asserted_sender: Optional[str]) -> SessionState:
        """Process one received message.

        Args:
            raw_message: Message bytes, already bounded in size by the adapter
            asserted_sender: SMTP MAIL FROM, or the single IMAP From address

        Returns:
            SessionState: DONE

        Raises:
            InvalidMessage: The message is invalid or untrusted; do not retry
            RetryableFailure: A transient store or DNS failure; may retry
        """
        progress = MessageProgress(asserted_sender)
        try:
            return self._process(progress, raw_message)
        except InvalidMessage:
            progress.fail("invalid")
            raise
        except RetryableFailure as e:
            progress.fail("retryable")
            logger.warning(f"Retryable failure for message from {asserted_sender}: {e}")
            raise

    def _process(self, progress: MessageProgress, raw_message: bytes) -> SessionState:
        # Delegation rows are keyed with lower-cased domains
        sender = normalize_address(progress.sender or "")
        if not sender:
            logger.warning("No sender for this mail")
            raise InvalidMessage()

        delegate = self._resolve_delegate(sender)
        self.trust.evaluate(sender, delegate, raw_message)
        progress.advance(SessionState.TRUST_CHECKED)

        try:
            message = parse_mime_message(raw_message)
        except ValueError as e:
            logger.warning(f"Error parsing e-mail from {sender}: {e}")
            raise InvalidMessage()
        subject = str(message.get("Subject", "") or "")
        body = extract_body(message)
        progress.advance(SessionState.BODY_EXTRACTED)

        command = classify(subject)
        self._dispatch(command, sender, delegate, body)
        progress.advance(SessionState.COMMAND_DISPATCHED)

        if isinstance(command, BorrowCommand):
            self._invite_alias(sender)

        progress.advance(SessionState.DONE)
        return progress.state

    def _resolve_delegate(self, sender: str) -> str:
        """Delegate of `sender`, or `sender` itself when delegation is off."""
        if not self.policy.delegation_enabled:
            return sender
        return self.store.get_delegate(sender)

    def _dispatch(self, command: Command, sender: str, delegate: str, body: str) -> None:
        if isinstance(command, BorrowCommand):
            self._process_borrow(command, sender, body)
        elif isinstance(command, AliasCommand):
            self._process_alias(command, sender, delegate, body)
        elif isinstance(command, UnknownCommand):
            logger.warning(f"Bad command {command.subject!r} from {sender}")
            raise InvalidMessage()
        else:
            raise TypeError(f"Unhandled command {command!r}")

    def _process_borrow(self, command: BorrowCommand, sender: str, body: str) -> None:
        comment = first_line(body) or None
        logger.info(f"{sender} borrowed {command.tool!r}")
        self.store.update_location(command.tool, sender, comment)

    def _process_alias(self, command: AliasCommand, sender: str, delegate: str, body: str) -> None:
        alias = first_line(body)
        if not alias:
            logger.warning(f"Empty alias from {sender}")
            raise InvalidMessage()

        records = [AliasRecord(email=sender, alias=alias)]

        # Only the DKIM-validated identity itself may create delegates, which
        # keeps delegation one level deep
        if sender == delegate:
            for address in find_addresses(command.delegates_text):
                records.append(AliasRecord(
                    email=str(address),
                    alias=alias,
                    delegated_email=sender,
                ))
        elif command.delegates_text.strip():
            logger.warning(
                f"Ignoring delegation request from {sender}, itself delegated by {delegate}"
            )

        logger.info(f"{sender} set alias {alias!r} with {len(records) - 1} delegate(s)")
        self.store.update_aliases(records)

    def _invite_alias(self, sender: str) -> None:
        """Invite unknown senders without an alias to register one.

        Best effort: failures are logged and do not affect the result.
        """
        if self.notifier is None or self.known_senders is None:
            return
        if self.known_senders.search(sender):
            return
        try:
            if self.store.get_alias(sender) is not None:
                return
            self.notifier.notify(sender)
        except Exception as e:
            logger.error(f"Failed to send alias invitation to {sender}: {e}")
