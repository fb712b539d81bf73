"""Builds the mail pipeline from Settings for the ingestion entry points."""

import logging
import re

from sqlalchemy.orm import sessionmaker

from .config import Settings
from .database import create_db_engine, create_session_factory, ensure_tables
from .domain.mail.session import MailSession
from .infrastructure.dkim import DkimVerifier, make_dns_lookup
from .infrastructure.notify import SmtpAliasNotifier
from .infrastructure.repositories import TrackerRepository

logger = logging.getLogger(__name__)


def open_store(settings: Settings) -> sessionmaker:
    """Connect to DATABASE_URL and make sure the tables exist."""
    engine = create_db_engine(settings.DATABASE_URL)
    ensure_tables(engine)
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[-1]}")  # Hide credentials
    return create_session_factory(engine)


def build_mail_session(settings: Settings, session_factory: sessionmaker) -> MailSession:
    """MailSession wired to the SQL store, DNS-backed DKIM and the notifier."""
    policy = settings.trust_policy()
    if policy.dkim_enabled:
        logger.info(
            f"Requiring DKIM from {policy.dkim_domain} "
            f"(delegation {'on' if policy.delegation_enabled else 'off'}, "
            f"local exemption {'on' if policy.local_dkim_exempt else 'off'})"
        )
    else:
        logger.warning("DKIM_DOMAIN is not set, trusting every sender")

    notifier = SmtpAliasNotifier.from_settings(settings)
    return MailSession(
        store=TrackerRepository(session_factory),
        verifier=DkimVerifier(make_dns_lookup(settings.DNS_TIMEOUT)),
        policy=policy,
        notifier=notifier,
        known_senders=re.compile(settings.FROM_REGEX),
    )
