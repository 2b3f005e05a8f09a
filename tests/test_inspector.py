import poplib

import pytest

from spamstress import inspector as inspector_module
from spamstress.errors import RetrievalError
from spamstress.inspector import MailboxInspector


class FakePOP3:
    """POP3 session over a shared list; DELE only takes effect on QUIT"""
    mailbox = []
    password = "test"
    sessions = 0

    def __init__(self, host, port, timeout=None):
        FakePOP3.sessions += 1
        self.deleted = set()

    def user(self, user):
        return b"+OK"

    def pass_(self, password):
        if password != FakePOP3.password:
            raise poplib.error_proto(b"-ERR invalid password")
        return b"+OK"

    def stat(self):
        return len(FakePOP3.mailbox), sum(len(m) for m in FakePOP3.mailbox)

    def retr(self, which):
        text = FakePOP3.mailbox[which - 1]
        lines = text.encode().split(b"\r\n")
        return b"+OK", lines, len(text)

    def dele(self, which):
        self.deleted.add(which - 1)
        return b"+OK"

    def quit(self):
        FakePOP3.mailbox = [m for i, m in enumerate(FakePOP3.mailbox) if i not in self.deleted]
        return b"+OK"

    def close(self):
        self.deleted.clear()


@pytest.fixture(autouse=True)
def fake_pop3(monkeypatch):
    FakePOP3.mailbox = []
    FakePOP3.sessions = 0
    monkeypatch.setattr(inspector_module.poplib, "POP3", FakePOP3)
    return FakePOP3


def test_count():
    FakePOP3.mailbox = ["a", "b", "c"]

    assert MailboxInspector().count("test@test.com", "test") == 3
    assert FakePOP3.mailbox == ["a", "b", "c"]


def test_count_empty_mailbox():
    assert MailboxInspector().count("test@test.com", "test") == 0


def test_pop_oldest_returns_and_removes_first_message():
    FakePOP3.mailbox = ["X-Spam-Status: No\r\n\r\nfirst", "second"]
    inspector = MailboxInspector()

    text = inspector.pop_oldest_text("test@test.com", "test")

    assert text == "X-Spam-Status: No\r\n\r\nfirst"
    assert FakePOP3.mailbox == ["second"]
    assert inspector.pop_oldest_text("test@test.com", "test") == "second"
    assert inspector.count("test@test.com", "test") == 0


def test_pop_from_empty_mailbox_fails():
    with pytest.raises(RetrievalError):
        MailboxInspector().pop_oldest_text("test@test.com", "test")


def test_bad_credentials():
    FakePOP3.mailbox = ["a"]

    with pytest.raises(RetrievalError) as exc_info:
        MailboxInspector().count("test@test.com", "wrong")

    assert "login failed" in str(exc_info.value)


def test_every_call_opens_its_own_session():
    FakePOP3.mailbox = ["a", "b"]
    inspector = MailboxInspector()

    inspector.count("test@test.com", "test")
    inspector.pop_oldest_text("test@test.com", "test")

    assert FakePOP3.sessions == 2


def test_connection_refused(monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError(111, "Connection refused")

    monkeypatch.setattr(inspector_module.poplib, "POP3", refuse)

    with pytest.raises(RetrievalError) as exc_info:
        MailboxInspector("mail.test", 1110).count("test@test.com", "test")

    assert "mail.test:1110" in str(exc_info.value)
