"""Mail command interpretation and trust pipeline."""

from .errors import (
    InvalidMessage,
    LookupFailure,
    MailProcessingError,
    RetryableFailure,
    StoreFailure,
)
from .ports import (
    AliasNotifierPort,
    AliasRecord,
    DkimResult,
    DkimVerifierPort,
    TrackerStorePort,
)
from .trust import TrustDecision, TrustEvaluator, TrustPolicy
from .session import MailSession, SessionState

__all__ = [
    "AliasNotifierPort",
    "AliasRecord",
    "DkimResult",
    "DkimVerifierPort",
    "InvalidMessage",
    "LookupFailure",
    "MailProcessingError",
    "MailSession",
    "RetryableFailure",
    "SessionState",
    "StoreFailure",
    "TrackerStorePort",
    "TrustDecision",
    "TrustEvaluator",
    "TrustPolicy",
]
