"""Unit tests for environment configuration"""

import pytest

from tooltracker.config import Settings
from tooltracker.domain.mail.trust import TrustPolicy


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DATABASE_URL", "DOMAIN", "MAILBOX", "DKIM_DOMAIN", "DELEGATE",
                 "LOCAL_DKIM_EXEMPT", "IMAP_TOKEN_CMD", "SMTP_PORT"):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Test settings defaults and overrides"""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.DKIM_DOMAIN == ""
        assert settings.DELEGATE is False
        assert settings.LOCAL_DKIM_EXEMPT is False
        assert settings.IMAP_TOKEN_CMD == ["pizauth", "show", "tooltracker"]
        assert settings.MAX_MESSAGE_BYTES == 1024 * 1024

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DOMAIN", "tools.example.com")
        monkeypatch.setenv("SMTP_PORT", "2525")
        monkeypatch.setenv("DELEGATE", "true")
        settings = Settings(_env_file=None)
        assert settings.DOMAIN == "tools.example.com"
        assert settings.SMTP_PORT == 2525
        assert settings.DELEGATE is True

    def test_token_command_from_json(self, monkeypatch):
        monkeypatch.setenv("IMAP_TOKEN_CMD", '["oauth2ms", "--encode-xoauth2"]')
        assert Settings(_env_file=None).IMAP_TOKEN_CMD == ["oauth2ms", "--encode-xoauth2"]

    def test_accept_address(self):
        settings = Settings(_env_file=None, MAILBOX="tools", DOMAIN="example.com")
        assert settings.accept_address == "tools@example.com"


class TestTrustPolicy:
    """Test building the trust policy from settings"""

    def test_dkim_disabled_by_default(self):
        policy = Settings(_env_file=None).trust_policy()
        assert policy == TrustPolicy()
        assert not policy.dkim_enabled

    def test_full_policy(self):
        settings = Settings(
            _env_file=None,
            DKIM_DOMAIN=" example.com ",
            DELEGATE=True,
            LOCAL_DKIM_EXEMPT=True,
        )
        assert settings.trust_policy() == TrustPolicy(
            dkim_domain="example.com",
            delegation_enabled=True,
            local_dkim_exempt=True,
        )
