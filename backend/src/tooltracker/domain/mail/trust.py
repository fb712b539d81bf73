"""DKIM trust evaluation with alias delegation.

Decides whether a mail's asserted sender may act on the tracker.

With no DKIM domain configured every sender is trusted (for deployments
behind a transport that already filters mail). Otherwise:

- A sender whose delegate differs from itself was vouched for by a
  DKIM-validated identity through "Alias <address>"; its mail must carry a
  valid signature from its own domain.
- A sender from the configured domain may skip DKIM when the local
  exemption is enabled. The delegate is then never cryptographically
  confirmed: the local transport is the trust boundary.
- Everyone else needs a valid signature from the configured domain.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .addresses import parse_address, same_domain
from .errors import InvalidMessage, LookupFailure
from .ports import DkimVerifierPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrustPolicy:
    """Explicit trust configuration for one MailSession.

    Attributes:
        dkim_domain: Domain whose signature is required; "" disables DKIM
        delegation_enabled: Consult alias delegations when choosing the domain
        local_dkim_exempt: Skip DKIM for senders in dkim_domain
    """
    dkim_domain: str = ""
    delegation_enabled: bool = False
    local_dkim_exempt: bool = False

    @property
    def dkim_enabled(self) -> bool:
        return self.dkim_domain != ""


class TrustDecision(str, Enum):
    """How a message came to be trusted."""
    DKIM_DISABLED = "DKIM_DISABLED"
    LOCAL_EXEMPT = "LOCAL_EXEMPT"
    VERIFIED = "VERIFIED"


class TrustEvaluator:
    """Checks a message against a TrustPolicy using a DKIM verifier."""

    def __init__(self, verifier: DkimVerifierPort, policy: TrustPolicy):
        self.verifier = verifier
        self.policy = policy

    def domain_to_verify(self, sender: str, delegate: str) -> Optional[str]:
        """Pick the signing domain required for `sender`.

        Returns None when the message needs no verification.

        Raises:
            InvalidMessage: If the sender address cannot be parsed
        """
        if not self.policy.dkim_enabled:
            return None

        try:
            address = parse_address(sender)
        except ValueError as e:
            logger.warning(f"Cannot parse sender for DKIM check: {e}")
            raise InvalidMessage()

        if sender != delegate:
            # Only reachable through a DKIM-validated "Alias <sender>" mail
            return address.domain
        if self.policy.local_dkim_exempt and same_domain(address.domain, self.policy.dkim_domain):
            return None
        return self.policy.dkim_domain

    def evaluate(self, sender: str, delegate: str, raw_message: bytes) -> TrustDecision:
        """Decide whether the message from `sender` is trusted.

        Args:
            sender: Asserted sender (SMTP MAIL FROM or the IMAP From address)
            delegate: Identity `sender` is delegated to (itself if none)
            raw_message: Message exactly as received

        Returns:
            TrustDecision: Why the message is trusted

        Raises:
            InvalidMessage: Any trust failure, without detail
            LookupFailure: A key lookup failed transiently and nothing verified
        """
        if not self.policy.dkim_enabled:
            return TrustDecision.DKIM_DISABLED

        required_domain = self.domain_to_verify(sender, delegate)
        if required_domain is None:
            logger.info(f"Skipping DKIM for local sender {sender}")
            return TrustDecision.LOCAL_EXEMPT

        results = self.verifier.verify(raw_message)
        if not results:
            logger.warning(f"No DKIM signature on message from {sender}")
            raise InvalidMessage()

        transient = False
        for result in results:
            if not result.passed:
                logger.warning(f"Failed to verify signature by {result.domain!r}: {result.error}")
                transient = transient or result.transient
            elif same_domain(result.domain, required_domain):
                logger.info(f"Verified DKIM signature by {result.domain} for {sender}")
                return TrustDecision.VERIFIED
            else:
                logger.warning(
                    f"Verified {result.domain} but not the one we are looking for: {required_domain}"
                )

        if transient:
            raise LookupFailure(f"DKIM key lookup failed for message from {sender}")

        logger.warning(f"Failed to verify message from {sender} against {required_domain}")
        raise InvalidMessage()
