"""DKIM signature verification backed by dkimpy and dnspython."""

from .dkim_verifier import DkimVerifier, DnsLookupError, make_dns_lookup

__all__ = ["DkimVerifier", "DnsLookupError", "make_dns_lookup"]
