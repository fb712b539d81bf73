"""E-mail address parsing.

Two entry points: parse exactly one mailbox (the asserted sender), or find
any number of addresses in free text (delegation targets in a subject).
"""

import re
from dataclasses import dataclass
from email.utils import parseaddr
from typing import List


# addr-spec with a dot-atom local part and a dotted domain
ADDRESS_RE = re.compile(
    r"[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@"
    r"(?:[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?\.)+"
    r"[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?"
)


@dataclass(frozen=True)
class Address:
    """A parsed mailbox. `domain` is lower-cased."""
    local: str
    domain: str

    def __str__(self) -> str:
        return f"{self.local}@{self.domain}"


def parse_address(text: str) -> Address:
    """Parse a single mailbox such as `Bob <bob@example.com>`.

    Raises:
        ValueError: If `text` holds no usable address
    """
    _, addr = parseaddr(text or "")
    local, sep, domain = addr.strip().rpartition("@")
    if not sep or not local or not domain:
        raise ValueError(f"Not an e-mail address: {text!r}")
    return Address(local=local, domain=domain.lower())


def normalize_address(text: str) -> str:
    """Trim an address and lower-case its domain, as stored in the tracker.

    Text that is not a bare `local@domain` is only trimmed.

    Example:
        >>> normalize_address(" bob@Family.NET ")
        'bob@family.net'
    """
    text = (text or "").strip()
    local, sep, domain = text.rpartition("@")
    if not sep or not local or not domain:
        return text
    return str(Address(local=local, domain=domain.lower()))


def find_addresses(text: str) -> List[Address]:
    """Find every address in free text, in order, without duplicates."""
    found: List[Address] = []
    for match in ADDRESS_RE.finditer(text or ""):
        local, _, domain = match.group(0).rpartition("@")
        address = Address(local=local, domain=domain.lower())
        if address not in found:
            found.append(address)
    return found


def same_domain(left: str, right: str) -> bool:
    """Compare two domain names the way DNS does."""
    return left.strip().rstrip(".").lower() == right.strip().rstrip(".").lower()
