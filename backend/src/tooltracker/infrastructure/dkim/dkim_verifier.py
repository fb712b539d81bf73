"""DKIM Verifier - checks every DKIM-Signature header of a raw message.

dkimpy does the canonicalization and the RSA/Ed25519 work; the public keys
come from a TXT lookup function so tests can serve fixed records instead
of querying DNS.
"""

import logging
import re
from typing import Callable, List, Optional

import dkim
import dns.exception
import dns.resolver

from ...domain.mail.ports import DkimResult, DkimVerifierPort

logger = logging.getLogger(__name__)

# TXT lookup: name (bytes, as dkimpy passes it) -> record or None if absent
TxtLookup = Callable[..., Optional[bytes]]

SIGNING_DOMAIN_RE = re.compile(rb"(?:^|;)\s*d\s*=\s*([^;\s]+)")


class DnsLookupError(Exception):
    """A key lookup failed for a reason other than the key not existing."""
    pass


def make_dns_lookup(timeout: float = 5.0) -> TxtLookup:
    """Build a TXT lookup function using dnspython.

    NXDOMAIN and empty answers mean "no key" and return None. Timeouts and
    server failures raise DnsLookupError so callers can retry later.
    """
    resolver = dns.resolver.Resolver()
    resolver.timeout = timeout
    resolver.lifetime = timeout

    def lookup(name, timeout=None) -> Optional[bytes]:
        qname = name.decode("ascii") if isinstance(name, bytes) else name
        try:
            answer = resolver.resolve(qname, "TXT")
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            logger.debug(f"No TXT record at {qname}")
            return None
        except dns.exception.DNSException as e:
            raise DnsLookupError(f"TXT lookup for {qname} failed: {e}")

        for record in answer:
            return b"".join(record.strings)
        return None

    return lookup


def signing_domain(signature_header: bytes) -> str:
    """Return the d= tag of a DKIM-Signature header value, or ""."""
    match = SIGNING_DOMAIN_RE.search(signature_header)
    if not match:
        return ""
    return match.group(1).decode("ascii", errors="replace").lower()


class DkimVerifier(DkimVerifierPort):
    """dkimpy-backed implementation of DkimVerifierPort.

    Args:
        lookup_txt: TXT lookup used for public keys (see make_dns_lookup)
    """

    def __init__(self, lookup_txt: TxtLookup):
        self.lookup_txt = lookup_txt

    def verify(self, raw_message: bytes) -> List[DkimResult]:
        """Verify each DKIM-Signature header independently.

        Returns:
            List[DkimResult]: One result per signature, in header order
        """
        try:
            checker = dkim.DKIM(raw_message, logger=logger)
        except dkim.DKIMException as e:
            logger.warning(f"Cannot parse message for DKIM: {e}")
            return []

        signatures = [
            value for name, value in checker.headers
            if name.lower() == b"dkim-signature"
        ]

        results = []
        for idx, header in enumerate(signatures):
            results.append(self._verify_one(checker, idx, signing_domain(header)))
        return results

    def _verify_one(self, checker: "dkim.DKIM", idx: int, domain: str) -> DkimResult:
        failures: List[str] = []

        def lookup(name, timeout=5):
            try:
                return self.lookup_txt(name, timeout=timeout)
            except DnsLookupError as e:
                failures.append(str(e))
                raise

        try:
            verified = checker.verify(idx=idx, dnsfunc=lookup)
        except DnsLookupError as e:
            return DkimResult(domain=domain, error=str(e), transient=True)
        except dkim.DKIMException as e:
            return DkimResult(domain=domain, error=str(e), transient=bool(failures))

        if failures:
            # dkimpy may report a failed lookup as a plain verification failure
            return DkimResult(domain=domain, error=failures[0], transient=True)
        if not verified:
            return DkimResult(domain=domain, error="signature did not verify")
        return DkimResult(domain=domain)
