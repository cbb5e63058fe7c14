import asyncio
import imaplib
import logging
from dataclasses import dataclass
from datetime import date, timedelta

from mail_search.config import settings
from mail_search.exceptions import RemoteSearchError
from mail_search.models import ParsedQuery, RemoteSearchResult
from mail_search.query import parse_query

logger = logging.getLogger(__name__)

SUPPORTED_CRITERIA = (
    "ALL", "ANSWERED", "BCC", "BEFORE", "BODY", "CC", "DELETED", "DRAFT",
    "FLAGGED", "FROM", "HEADER", "KEYWORD", "LARGER", "NEW", "NOT",
    "OLD", "ON", "OR", "RECENT", "SEEN", "SENTBEFORE", "SENTON",
    "SENTSINCE", "SINCE", "SMALLER", "SUBJECT", "TEXT",
    "TO", "UID", "UNANSWERED", "UNDELETED", "UNDRAFT", "UNFLAGGED",
    "UNKEYWORD", "UNSEEN",
)

# IMAP dates use English month abbreviations regardless of locale.
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

Criterion = tuple


@dataclass
class IMAPConfig:
    host: str
    user: str
    password: str
    port: int = 993
    mailbox: str = "INBOX"
    use_ssl: bool = True
    timeout: float | None = None

    @classmethod
    def from_settings(cls) -> "IMAPConfig | None":
        if not settings.imap_host:
            return None
        return cls(
            host=settings.imap_host,
            user=settings.imap_user,
            password=settings.imap_password,
            port=settings.imap_port,
            mailbox=settings.imap_mailbox,
            use_ssl=settings.imap_use_ssl,
            timeout=settings.remote_timeout,
        )


class IMAPMailStoreClient:
    """Blocking IMAP client: one connection per search, read-only mailbox.

    Criteria that are pure ASCII go out in a single SEARCH. A criterion holding
    non-ASCII text is sent with ``CHARSET UTF-8`` and its value as a literal.
    imaplib sends at most one literal per command, so each such value gets its
    own SEARCH and the id sets are combined: intersection across top-level
    criteria, union across the branches of an ``OR``.
    """

    def __init__(self, config: IMAPConfig):
        self._config = config

    def _connect(self) -> imaplib.IMAP4:
        cfg = self._config
        logger.info("[IMAPMailStoreClient] connecting to %s:%d", cfg.host, cfg.port)
        if cfg.use_ssl:
            conn = imaplib.IMAP4_SSL(cfg.host, cfg.port, timeout=cfg.timeout)
        else:
            conn = imaplib.IMAP4(cfg.host, cfg.port, timeout=cfg.timeout)
        try:
            conn.login(cfg.user, cfg.password)
        except BaseException:
            conn.shutdown()
            raise
        return conn

    def search(self, criteria: list[Criterion]) -> list[int]:
        conn = self._connect()
        try:
            status, _ = conn.select(self._config.mailbox, readonly=True)
            if status != "OK":
                raise RemoteSearchError(f"Cannot open mailbox {self._config.mailbox}")
            return sorted(self._search(conn, criteria))
        finally:
            try:
                conn.logout()
            except (imaplib.IMAP4.error, OSError) as e:
                logger.warning("[IMAPMailStoreClient] error closing connection: %s", e)

    def _search(self, conn: imaplib.IMAP4, criteria: list[Criterion]) -> set[int]:
        plain = [c for c in criteria if format_criterion(c).isascii()]
        wide = [c for c in criteria if not format_criterion(c).isascii()]

        ids = None
        if plain or not wide:
            ids = _run_search(conn, None, [format_criterion(c) for c in plain] or ["ALL"])
        for criterion in wide:
            matched = self._search_wide(conn, criterion)
            ids = matched if ids is None else ids & matched
        return ids

    def _search_wide(self, conn: imaplib.IMAP4, criterion: Criterion) -> set[int]:
        key, *args = criterion
        if key == "OR":
            return self._search_wide(conn, args[0]) | self._search_wide(conn, args[1])
        if format_criterion(criterion).isascii():
            return _run_search(conn, None, [format_criterion(criterion)])
        conn.literal = str(args[-1]).encode("utf-8")
        return _run_search(conn, "UTF-8", [format_criterion((key, *args[:-1]))])


def _run_search(conn: imaplib.IMAP4, charset: str | None, args: list[str]) -> set[int]:
    status, data = conn.search(charset, *args)
    if status != "OK":
        raise RemoteSearchError(f"IMAP search returned {status}")
    raw = b" ".join(part for part in data if part)
    return {int(n) for n in raw.split()}


class IMAPSearchEngine:
    def __init__(self, config: IMAPConfig | None = None, client: IMAPMailStoreClient | None = None):
        self._config = config or IMAPConfig.from_settings()
        if client is None and self._config is None:
            raise RemoteSearchError("IMAP configuration not available")
        self._client = client or IMAPMailStoreClient(self._config)

    @staticmethod
    def supported_criteria() -> list[str]:
        return list(SUPPORTED_CRITERIA)

    @staticmethod
    def build_criteria(query: str | ParsedQuery) -> list[Criterion]:
        """Translate a query into IMAP SEARCH criteria.

        Repeated values for one operator become nested ``OR`` criteria so they
        keep the local OR-within-field meaning. ``has:attachment`` has no IMAP
        equivalent and is left out. ``before:`` is inclusive locally but IMAP
        ``BEFORE`` is exclusive, so the remote bound is moved one day later.

        Raises:
            ValueError: If a date operator carries an impossible date.
        """
        parsed = parse_query(query) if isinstance(query, str) else query
        criteria: list[Criterion] = []

        for key, values in (("FROM", parsed.from_), ("TO", parsed.to), ("SUBJECT", parsed.subject)):
            if values:
                criteria.append(_any_of([(key, v) for v in values]))

        if parsed.date_range:
            if parsed.date_range.after:
                criteria.append(("SINCE", date.fromisoformat(parsed.date_range.after)))
            if parsed.date_range.before:
                criteria.append(("BEFORE", date.fromisoformat(parsed.date_range.before) + timedelta(days=1)))

        if parsed.has_attachment:
            logger.debug("[IMAPSearchEngine] has:attachment is not expressible in IMAP SEARCH, skipping")

        if parsed.text:
            criteria.append(("TEXT", parsed.text))

        return criteria or [("ALL",)]

    async def search_remote(self, query: str) -> RemoteSearchResult:
        try:
            criteria = self.build_criteria(query)
        except ValueError as e:
            raise RemoteSearchError(f"Cannot translate query for IMAP: {e}") from e

        logger.info("[IMAPSearchEngine] searching with criteria %s", criteria)
        try:
            ids = await asyncio.to_thread(self._client.search, criteria)
        except RemoteSearchError:
            raise
        except Exception as e:
            raise RemoteSearchError(f"IMAP search failed: {e}") from e

        logger.info("[IMAPSearchEngine] remote search returned %d ids", len(ids))
        return RemoteSearchResult(ids=ids, criteria=criteria)


def _any_of(criteria: list[Criterion]) -> Criterion:
    if len(criteria) == 1:
        return criteria[0]
    return ("OR", criteria[0], _any_of(criteria[1:]))


def format_criterion(criterion: Criterion) -> str:
    key, *args = criterion
    parts = [key]
    for arg in args:
        if isinstance(arg, tuple):
            parts.append(format_criterion(arg))
        elif isinstance(arg, date):
            parts.append(f"{arg.day:02d}-{_MONTHS[arg.month - 1]}-{arg.year}")
        else:
            parts.append(_quote(str(arg)))
    return " ".join(parts)


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
