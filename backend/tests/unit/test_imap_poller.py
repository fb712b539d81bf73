"""Unit tests for the IMAP poller

A fake IMAP client records commands; the session is faked so only the
delete/keep policy and the IMAP conversation are under test.
"""

import imaplib
import sys
import threading

import pytest

from tooltracker.domain.mail.errors import InvalidMessage, StoreFailure
from tooltracker.infrastructure.ingest.imap_poller import (
    ImapAuthError,
    ImapPoller,
    run_token_command,
    xoauth2_string,
)

from fixtures.mail import TOOL1, USER1, USER2, plain_mail


class FakeImap:
    """In-memory IMAP4 client holding messages by UID"""

    def __init__(self, messages=None):
        self.messages = dict(messages or {})
        self.commands = []
        self.deleted = []
        self.expunged = False
        self.logged_out = False
        self.authenticated = None

    def login(self, user, password):
        self.authenticated = ("LOGIN", user, password)
        return "OK", [b"Logged in"]

    def authenticate(self, mechanism, authobject):
        self.authenticated = (mechanism, authobject(b""))
        return "OK", [b"Authenticated"]

    def select(self, mailbox):
        return "OK", [str(len(self.messages)).encode()]

    def uid(self, command, *args):
        self.commands.append((command,) + args)
        if command == "SEARCH":
            return "OK", [b" ".join(uid.encode() for uid in self.messages)]
        if command == "FETCH":
            uid, spec = args
            return "OK", [(f"{uid} (UID {uid} BODY[]<0> {{n}}".encode(), self.messages[uid]), b")"]
        if command == "STORE":
            self.deleted.append(args[0])
            return "OK", [None]
        raise AssertionError(f"unexpected command {command}")

    def expunge(self):
        self.expunged = True
        return "OK", [None]

    def logout(self):
        self.logged_out = True
        return "BYE", [b"Logging out"]


class FakeMailSession:
    def __init__(self, errors=None):
        self.errors = errors or {}
        self.calls = []

    def handle(self, raw_message, asserted_sender):
        self.calls.append(asserted_sender)
        error = self.errors.get(asserted_sender)
        if error is not None:
            raise error


def make_poller(session, **kwargs):
    kwargs.setdefault("password", "secret")
    return ImapPoller(session, "imap.example.com", "tracker", **kwargs)


class TestPollOnce:
    """Test processing one mailbox snapshot"""

    def test_processed_messages_are_deleted(self):
        imap = FakeImap({"1": plain_mail(USER1, f"Borrowed {TOOL1}")})
        session = FakeMailSession()
        assert make_poller(session).poll_once(imap) == 1
        assert session.calls == [USER1]
        assert imap.deleted == ["1"]
        assert imap.expunged

    def test_invalid_messages_are_deleted(self):
        imap = FakeImap({"1": plain_mail(USER1, "Hello")})
        session = FakeMailSession({USER1: InvalidMessage()})
        assert make_poller(session).poll_once(imap) == 1
        assert imap.deleted == ["1"]

    def test_retryable_failures_are_kept(self):
        imap = FakeImap({
            "1": plain_mail(USER1, f"Borrowed {TOOL1}"),
            "2": plain_mail(USER2, f"Borrowed {TOOL1}"),
        })
        session = FakeMailSession({USER1: StoreFailure("database is locked")})
        assert make_poller(session).poll_once(imap) == 1
        assert imap.deleted == ["2"]

    def test_unexpected_errors_are_kept(self):
        imap = FakeImap({"1": plain_mail(USER1, f"Borrowed {TOOL1}")})
        session = FakeMailSession({USER1: RuntimeError("boom")})
        assert make_poller(session).poll_once(imap) == 0
        assert imap.deleted == []
        assert not imap.expunged

    def test_multiple_from_addresses_are_deleted_unprocessed(self):
        raw = plain_mail(f"{USER1}, {USER2}", f"Borrowed {TOOL1}")
        imap = FakeImap({"1": raw})
        session = FakeMailSession()
        assert make_poller(session).poll_once(imap) == 1
        assert session.calls == []

    def test_fetch_is_bounded_and_does_not_set_seen(self):
        imap = FakeImap({"7": plain_mail(USER1, f"Borrowed {TOOL1}")})
        make_poller(FakeMailSession(), max_message_bytes=4096).poll_once(imap)
        assert ("FETCH", "7", "(BODY.PEEK[]<0.4096>)") in imap.commands
        assert ("STORE", "7", "+FLAGS.SILENT", r"(\Deleted)") in imap.commands

    def test_empty_mailbox(self):
        imap = FakeImap()
        assert make_poller(FakeMailSession()).poll_once(imap) == 0
        assert not imap.expunged

    def test_stops_when_shutdown_is_set(self):
        imap = FakeImap({"1": plain_mail(USER1, f"Borrowed {TOOL1}")})
        shutdown = threading.Event()
        shutdown.set()
        session = FakeMailSession()
        assert make_poller(session).poll_once(imap, shutdown) == 0
        assert session.calls == []


class TestLogin:
    """Test IMAP authentication"""

    def test_password_login(self):
        imap = FakeImap()
        poller = make_poller(FakeMailSession(), connect=lambda host, port: imap)
        assert poller.login() is imap
        assert imap.authenticated == ("LOGIN", "tracker", "secret")

    def test_xoauth2_login(self):
        imap = FakeImap()
        poller = make_poller(
            FakeMailSession(),
            password=None,
            token_command=[sys.executable, "-c", "print('tok123')"],
            connect=lambda host, port: imap,
        )
        poller.login()
        assert imap.authenticated == ("XOAUTH2", b"user=tracker\x01auth=Bearer tok123\x01\x01")

    def test_select_failure(self):
        imap = FakeImap()
        imap.select = lambda mailbox: ("NO", [b"No such mailbox"])
        poller = make_poller(FakeMailSession(), connect=lambda host, port: imap)
        with pytest.raises(imaplib.IMAP4.error):
            poller.login()

    def test_run_retries_until_shutdown(self):
        shutdown = threading.Event()
        attempts = []

        def connect(host, port):
            attempts.append((host, port))
            shutdown.set()
            raise OSError("connection refused")

        poller = make_poller(FakeMailSession(), connect=connect, retry_interval=0)
        poller.run(shutdown)
        assert attempts == [("imap.example.com", 993)]

    def test_run_logs_out_after_error(self):
        shutdown = threading.Event()
        imap = FakeImap()

        def failing_search(command, *args):
            shutdown.set()
            raise imaplib.IMAP4.abort("connection reset")

        imap.uid = failing_search
        poller = make_poller(FakeMailSession(), connect=lambda host, port: imap, retry_interval=0)
        poller.run(shutdown)
        assert imap.logged_out


class TestTokenCommand:
    """Test the OAuth2 token helper"""

    def test_prints_token(self):
        assert run_token_command([sys.executable, "-c", "print(' tok ')"]) == "tok"

    def test_failure(self):
        with pytest.raises(ImapAuthError):
            run_token_command([sys.executable, "-c", "import sys; sys.exit(3)"])

    def test_no_output(self):
        with pytest.raises(ImapAuthError):
            run_token_command([sys.executable, "-c", "pass"])

    def test_empty_command(self):
        with pytest.raises(ImapAuthError):
            run_token_command([])

    def test_missing_executable(self):
        with pytest.raises(ImapAuthError):
            run_token_command(["/nonexistent/token-helper"])

    def test_xoauth2_string(self):
        assert xoauth2_string("a@b.c", "t") == b"user=a@b.c\x01auth=Bearer t\x01\x01"
