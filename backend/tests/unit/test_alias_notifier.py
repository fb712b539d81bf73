"""Unit tests for the alias invitation mail"""

import smtplib

import pytest

from tooltracker.config import Settings
from tooltracker.infrastructure.notify import SmtpAliasNotifier
from tooltracker.infrastructure.notify.alias_notifier import INVITATION_BODY

from fixtures.mail import TO, USER3


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.calls = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.calls.append("quit")
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def send_message(self, msg):
        self.calls.append("send")
        self.sent.append(msg)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def make_notifier():
    return SmtpAliasNotifier("smtp.example.com", 587, "tracker", "secret", TO)


class TestMessage:
    """Test the invitation contents"""

    def test_headers(self):
        msg = make_notifier().build_message(USER3)
        assert msg["To"] == USER3
        assert msg["From"] == TO
        assert msg["Subject"] == "Alias"
        assert msg["X-Tooltracker-Type"] == "Alias"

    def test_body(self):
        msg = make_notifier().build_message(USER3)
        assert msg.get_payload(decode=True).decode() == INVITATION_BODY


class TestNotify:
    """Test submission"""

    def test_sends_with_starttls_and_login(self, fake_smtp):
        make_notifier().notify(USER3)
        [smtp] = fake_smtp.instances
        assert (smtp.host, smtp.port) == ("smtp.example.com", 587)
        assert smtp.calls == ["starttls", ("login", "tracker", "secret"), "send", "quit"]
        assert smtp.sent[0]["To"] == USER3

    def test_errors_propagate(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError("connection refused")

        monkeypatch.setattr(smtplib, "SMTP", refuse)
        with pytest.raises(OSError):
            make_notifier().notify(USER3)


class TestFromSettings:
    """Test building the notifier from settings"""

    def test_disabled_without_credentials(self):
        settings = Settings(_env_file=None, SMTP_SEND_HOST="smtp.example.com")
        assert SmtpAliasNotifier.from_settings(settings) is None

    def test_enabled(self):
        settings = Settings(
            _env_file=None,
            MAILBOX="tooltracker",
            DOMAIN="a.example.com",
            SMTP_SEND_HOST="smtp.example.com",
            SMTP_SEND_USER="tracker",
            SMTP_SEND_PASSWORD="secret",
        )
        notifier = SmtpAliasNotifier.from_settings(settings)
        assert notifier.from_address == TO
        assert notifier.port == 587
