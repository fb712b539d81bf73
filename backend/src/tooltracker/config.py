"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.

The mail pipeline never reads these settings directly: adapters build a
TrustPolicy from them and pass it into MailSession.
"""

from typing import List, Optional
from functools import lru_cache

from pydantic_settings import BaseSettings

from .domain.mail.trust import TrustPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults for local experiments (SMTP on a
    user port, SQLite file, no DKIM checking). Deployments reachable from
    the internet MUST set DKIM_DOMAIN.

    Environment Variables:
        DATABASE_URL: SQLAlchemy URL of the tracker store
        DOMAIN: Public host name, used for HELO and the mailto links
        MAILBOX: Local part of the address mail is sent to
        FROM_REGEX: Addresses matching this are shown unshortened
        DKIM_DOMAIN: Domain whose DKIM signature is required ("" disables)
        DELEGATE: Honour alias delegation when checking DKIM
        LOCAL_DKIM_EXEMPT: Skip DKIM for senders in DKIM_DOMAIN
        LOG_LEVEL: Logging level (default INFO)
    """

    # Database
    DATABASE_URL: str = "sqlite:///tooltracker.db"

    # Network
    LISTEN_HOST: str = "localhost"
    DOMAIN: str = "localhost"
    HTTP_PORT: int = 8123
    HTTP_PREFIX: str = ""

    # Mail commands
    MAILBOX: str = "tooltracker"
    FROM_REGEX: str = r"^.*@work\.com$"

    # Trust
    DKIM_DOMAIN: str = ""
    DELEGATE: bool = False
    LOCAL_DKIM_EXEMPT: bool = False
    DNS_TIMEOUT: float = 5.0

    # SMTP ingest
    SMTP_PORT: int = 1025
    MAX_MESSAGE_BYTES: int = 1024 * 1024  # 1 MiB
    MAX_RECIPIENTS: int = 10
    SMTP_READ_TIMEOUT: int = 10  # seconds

    # IMAP ingest
    IMAP_HOST: str = "outlook.office365.com"
    IMAP_PORT: int = 993
    IMAP_USER: str = ""
    IMAP_PASSWORD: Optional[str] = None
    IMAP_MAILBOX: str = "INBOX"
    IMAP_TOKEN_CMD: List[str] = ["pizauth", "show", "tooltracker"]
    IMAP_POLL_INTERVAL: float = 60.0  # seconds
    RETRY_INTERVAL: float = 300.0  # seconds

    # Outbound mail for alias invitations (disabled unless all are set)
    SMTP_SEND_HOST: Optional[str] = None
    SMTP_SEND_PORT: int = 587
    SMTP_SEND_USER: Optional[str] = None
    SMTP_SEND_PASSWORD: Optional[str] = None

    # Application
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def accept_address(self) -> str:
        """The only recipient the SMTP server accepts."""
        return f"{self.MAILBOX}@{self.DOMAIN}"

    def trust_policy(self) -> TrustPolicy:
        """Build the explicit trust configuration for MailSession."""
        return TrustPolicy(
            dkim_domain=self.DKIM_DOMAIN.strip(),
            delegation_enabled=self.DELEGATE,
            local_dkim_exempt=self.LOCAL_DKIM_EXEMPT,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
