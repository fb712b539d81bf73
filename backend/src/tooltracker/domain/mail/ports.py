"""Ports consumed by the mail pipeline.

Architecture: Hexagonal - the session depends on these interfaces; the
SQLAlchemy repository, the dkimpy verifier and the SMTP notifier are the
adapters implementing them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class AliasRecord:
    """One alias upsert: `email` is shown as `alias`.

    `delegated_email`, when set, is the DKIM-validated identity that vouched
    for `email`. None keeps whatever delegation is already stored.
    """
    email: str
    alias: str
    delegated_email: Optional[str] = None


@dataclass(frozen=True)
class DkimResult:
    """Outcome of verifying one DKIM-Signature header.

    `domain` is the signature's d= tag (empty if unreadable); `error` is
    None only when the signature verified. `transient` marks errors caused
    by a DNS outage rather than by the message.
    """
    domain: str
    error: Optional[str] = None
    transient: bool = False

    @property
    def passed(self) -> bool:
        return self.error is None


class TrackerStorePort(ABC):
    """Persistence needed by the mail pipeline.

    Every write is its own transaction and is idempotent under retry.
    Implementations raise StoreFailure when the store is unavailable.
    """

    @abstractmethod
    def get_delegate(self, email: str) -> str:
        """Return the identity `email` is delegated to, or `email` itself."""

    @abstractmethod
    def get_alias(self, email: str) -> Optional[AliasRecord]:
        """Return the alias row for `email`, if any."""

    @abstractmethod
    def update_location(self, tool: str, last_seen_by: str, comment: Optional[str]) -> None:
        """Insert or overwrite the custody row for `tool`."""

    @abstractmethod
    def update_alias(self, email: str, alias: str, delegated_email: Optional[str] = None) -> None:
        """Insert or update one alias, keeping an existing delegation if none given."""

    @abstractmethod
    def update_aliases(self, records: Sequence[AliasRecord]) -> None:
        """Apply several alias upserts in a single transaction."""


class DkimVerifierPort(ABC):
    """Verifies the DKIM signatures of a raw message."""

    @abstractmethod
    def verify(self, raw_message: bytes) -> List[DkimResult]:
        """Return one result per DKIM-Signature header, in header order."""


class AliasNotifierPort(ABC):
    """Invites senders without an alias to register one."""

    @abstractmethod
    def notify(self, recipient: str) -> None:
        """Send the invitation to `recipient`."""
