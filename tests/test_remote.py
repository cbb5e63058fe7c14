import asyncio
import imaplib
from datetime import date

import pytest

from mail_search import IMAPConfig, IMAPMailStoreClient, IMAPSearchEngine, RemoteSearchError
from mail_search.remote import format_criterion


class StubClient:
    def __init__(self, ids=None, error=None):
        self.ids = ids or []
        self.error = error
        self.calls = []

    def search(self, criteria):
        self.calls.append(criteria)
        if self.error:
            raise self.error
        return self.ids


def test_build_criteria_operators_and_text():
    criteria = IMAPSearchEngine.build_criteria('from:alice subject:"weekly report" hello world')
    assert criteria == [("FROM", "alice"), ("SUBJECT", "weekly report"), ("TEXT", "hello world")]


def test_build_criteria_repeated_values_become_or():
    criteria = IMAPSearchEngine.build_criteria("to:a to:b to:c")
    assert criteria == [("OR", ("TO", "a"), ("OR", ("TO", "b"), ("TO", "c")))]


def test_build_criteria_dates():
    criteria = IMAPSearchEngine.build_criteria("after:2024-01-01 before:2024-01-31")
    assert criteria == [("SINCE", date(2024, 1, 1)), ("BEFORE", date(2024, 2, 1))]


def test_build_criteria_falls_back_to_all():
    assert IMAPSearchEngine.build_criteria("") == [("ALL",)]
    assert IMAPSearchEngine.build_criteria("has:attachment") == [("ALL",)]


def test_build_criteria_rejects_impossible_dates():
    with pytest.raises(ValueError):
        IMAPSearchEngine.build_criteria("before:2024-02-30")


def test_format_criterion():
    assert format_criterion(("SINCE", date(2024, 1, 5))) == "SINCE 05-Jan-2024"
    assert format_criterion(("OR", ("FROM", "a"), ("FROM", "b"))) == 'OR FROM "a" FROM "b"'
    assert format_criterion(("SUBJECT", 'say "hi"')) == 'SUBJECT "say \\"hi\\""'
    assert format_criterion(("ALL",)) == "ALL"


def test_supported_criteria():
    supported = IMAPSearchEngine.supported_criteria()
    assert "SINCE" in supported
    assert "TEXT" in supported


def test_search_remote_returns_remote_ids():
    client = StubClient(ids=[3, 7, 9])
    engine = IMAPSearchEngine(client=client)
    result = asyncio.run(engine.search_remote("from:alice budget"))
    assert result.ids == [3, 7, 9]
    assert result.count == 3
    assert client.calls == [[("FROM", "alice"), ("TEXT", "budget")]]


def test_search_remote_wraps_client_errors():
    engine = IMAPSearchEngine(client=StubClient(error=OSError("connection refused")))
    with pytest.raises(RemoteSearchError, match="connection refused"):
        asyncio.run(engine.search_remote("budget"))


def test_search_remote_wraps_translation_errors():
    engine = IMAPSearchEngine(client=StubClient())
    with pytest.raises(RemoteSearchError):
        asyncio.run(engine.search_remote("before:2024-02-30"))


def test_engine_requires_configuration(monkeypatch):
    monkeypatch.setattr(IMAPConfig, "from_settings", classmethod(lambda cls: None))
    with pytest.raises(RemoteSearchError):
        IMAPSearchEngine()


class FakeIMAP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port, self.timeout = host, port, timeout
        self.commands = []
        FakeIMAP.instances.append(self)

    def login(self, user, password):
        self.commands.append(("login", user))

    def select(self, mailbox, readonly=False):
        self.commands.append(("select", mailbox, readonly))
        return "OK", [b"12"]

    def search(self, charset, *criteria):
        self.commands.append(("search", charset, criteria))
        return "OK", [b"1 2 5"]

    def logout(self):
        self.commands.append(("logout",))

    def shutdown(self):
        self.commands.append(("shutdown",))


def test_mail_store_client_runs_search(monkeypatch):
    FakeIMAP.instances = []
    monkeypatch.setattr(imaplib, "IMAP4_SSL", FakeIMAP)
    config = IMAPConfig(host="imap.example.com", user="me", password="secret", timeout=5)
    ids = IMAPMailStoreClient(config).search([("FROM", "alice"), ("SINCE", date(2024, 1, 1))])

    assert ids == [1, 2, 5]
    conn = FakeIMAP.instances[0]
    assert (conn.host, conn.port, conn.timeout) == ("imap.example.com", 993, 5)
    assert conn.commands == [
        ("login", "me"),
        ("select", "INBOX", True),
        ("search", None, ('FROM "alice"', "SINCE 01-Jan-2024")),
        ("logout",),
    ]


def test_mail_store_client_logs_out_on_failure(monkeypatch):
    class FailingIMAP(FakeIMAP):
        def search(self, charset, *criteria):
            raise imaplib.IMAP4.error("BAD command")

    FakeIMAP.instances = []
    monkeypatch.setattr(imaplib, "IMAP4_SSL", FailingIMAP)
    client = IMAPMailStoreClient(IMAPConfig(host="imap.example.com", user="me", password="secret"))
    with pytest.raises(imaplib.IMAP4.error):
        client.search([("ALL",)])
    assert FakeIMAP.instances[0].commands[-1] == ("logout",)


def test_mail_store_client_closes_socket_when_login_fails(monkeypatch):
    class RejectingIMAP(FakeIMAP):
        def login(self, user, password):
            self.commands.append(("login", user))
            raise imaplib.IMAP4.error("AUTHENTICATIONFAILED")

    FakeIMAP.instances = []
    monkeypatch.setattr(imaplib, "IMAP4_SSL", RejectingIMAP)
    client = IMAPMailStoreClient(IMAPConfig(host="imap.example.com", user="me", password="wrong"))
    with pytest.raises(imaplib.IMAP4.error):
        client.search([("ALL",)])
    assert FakeIMAP.instances[0].commands == [("login", "me"), ("shutdown",)]


class LiteralIMAP(FakeIMAP):
    """Answers SEARCH from a table keyed by (charset, args, literal)."""

    literal = None
    responses = {}

    def search(self, charset, *criteria):
        literal, self.literal = self.literal, None
        self.commands.append(("search", charset, criteria, literal))
        return "OK", [self.responses.get((charset, criteria, literal), b"")]


def test_mail_store_client_sends_non_ascii_text_as_literal(monkeypatch):
    FakeIMAP.instances = []
    monkeypatch.setattr(imaplib, "IMAP4_SSL", LiteralIMAP)
    monkeypatch.setattr(LiteralIMAP, "responses", {("UTF-8", ("TEXT",), "café".encode()): b"4 2"})
    client = IMAPMailStoreClient(IMAPConfig(host="imap.example.com", user="me", password="secret"))

    assert client.search([("TEXT", "café")]) == [2, 4]
    assert FakeIMAP.instances[0].commands[2] == ("search", "UTF-8", ("TEXT",), b"caf\xc3\xa9")


def test_mail_store_client_combines_non_ascii_criteria(monkeypatch):
    FakeIMAP.instances = []
    monkeypatch.setattr(imaplib, "IMAP4_SSL", LiteralIMAP)
    monkeypatch.setattr(LiteralIMAP, "responses", {
        (None, ('SUBJECT "report"',), None): b"1 2 3 4",
        ("UTF-8", ("FROM",), "josé".encode()): b"2",
        ("UTF-8", ("FROM",), "zoë".encode()): b"4 9",
    })
    client = IMAPMailStoreClient(IMAPConfig(host="imap.example.com", user="me", password="secret"))
    criteria = IMAPSearchEngine.build_criteria("from:josé from:zoë subject:report")

    assert client.search(criteria) == [2, 4]
    searches = [c for c in FakeIMAP.instances[0].commands if c[0] == "search"]
    assert len(searches) == 3
    assert FakeIMAP.instances[0].commands[-1] == ("logout",)
