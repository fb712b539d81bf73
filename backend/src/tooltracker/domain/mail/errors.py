"""Errors raised while processing an inbound tracker mail.

Input errors and trust failures deliberately share one type with one
generic message, so an untrusted sender cannot tell "unsigned" from "wrong
domain" from "revoked key". The detail goes to the log only.
"""


class MailProcessingError(Exception):
    """Base class for all mail pipeline errors."""


class InvalidMessage(MailProcessingError):
    """The message cannot be acted on and retrying it will not help.

    Covers unparseable messages, missing senders, unknown commands and
    failed DKIM checks.
    """

    def __init__(self, message: str = "Invalid email"):
        super().__init__(message)


class RetryableFailure(MailProcessingError):
    """A transient failure; the same message may succeed later."""


class StoreFailure(RetryableFailure):
    """Reading from or writing to the tracker store failed."""


class LookupFailure(RetryableFailure):
    """A DNS lookup needed for DKIM verification failed transiently."""
