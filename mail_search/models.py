from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Union

SearchType = Literal["simple", "advanced", "empty"]
SortBy = Literal["relevance", "date", "sender"]
SortOrder = Literal["asc", "desc"]


@dataclass(frozen=True)
class Participant:
    name: str = ""
    address: str = ""


# A from/to/cc value: bare "Name <addr>" string, a structured pair, or a list of either.
ParticipantField = Union[str, Participant, Mapping[str, Any], Sequence[Any], None]


@dataclass
class Attachment:
    filename: str = ""
    mime_type: str | None = None
    size: int = 0


@dataclass
class EmailMessage:
    message_id: str
    subject: str = ""
    sender: ParticipantField = None
    to: ParticipantField = None
    cc: ParticipantField = None
    body_text: str = ""
    body_html: str = ""
    date: datetime | date | str | None = None
    attachments: list[Attachment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EmailMessage":
        """Build a message from either a camelCase record or a parsed ingestion dict.

        Recognised id keys are ``message_id``, ``messageId`` and ``gmail_id``.
        Recipients may be given flat (``to``/``cc``) or nested under ``recipients``.
        """
        recipients = data.get("recipients") or {}
        attachments = [
            a if isinstance(a, Attachment) else Attachment(
                filename=a.get("filename") or "",
                mime_type=a.get("mime_type") or a.get("mimeType"),
                size=a.get("size") or 0,
            )
            for a in data.get("attachments") or []
        ]
        return cls(
            message_id=data.get("message_id") or data.get("messageId") or data.get("gmail_id") or "",
            subject=data.get("subject") or "",
            sender=data.get("sender", data.get("from")),
            to=data.get("to", recipients.get("to")),
            cc=data.get("cc", recipients.get("cc")),
            body_text=data.get("body_text") or data.get("bodyText") or data.get("body") or "",
            body_html=data.get("body_html") or data.get("bodyHtml") or "",
            date=data.get("date"),
            attachments=attachments,
        )


@dataclass
class SearchableContent:
    subject: str = ""
    sender: str = ""
    to: str = ""
    cc: str = ""
    body: str = ""
    html_body: str = ""
    attachment_names: str = ""
    all_text: str = ""


@dataclass
class DateRange:
    after: str | None = None
    before: str | None = None


@dataclass
class ParsedQuery:
    terms: list[str] = field(default_factory=list)
    from_: list[str] = field(default_factory=list)
    to: list[str] = field(default_factory=list)
    subject: list[str] = field(default_factory=list)
    has_attachment: bool = False
    date_range: DateRange | None = None
    is_advanced: bool = False
    text: str = ""  # free text left after operator removal

    @property
    def is_empty(self) -> bool:
        return not self.is_advanced and not self.terms

    def to_dict(self) -> dict:
        data = asdict(self)
        data["from"] = data.pop("from_")
        return data


@dataclass
class SearchResult:
    results: list[str]
    query: str
    total_results: int
    search_time: float
    search_type: SearchType
    parsed_query: ParsedQuery | None = None

    def to_dict(self) -> dict:
        return {
            "results": self.results,
            "query": self.query,
            "total_results": self.total_results,
            "search_time": self.search_time,
            "search_type": self.search_type,
            "parsed_query": self.parsed_query.to_dict() if self.parsed_query else None,
        }


@dataclass
class RemoteSearchResult:
    """Ids returned by the remote store. These are IMAP sequence numbers, not message-ids."""

    ids: list[int]
    criteria: list[tuple] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.ids)


@dataclass
class CombinedSearchResult:
    results: list[str]
    query: str
    total_results: int
    search_time: float
    local: SearchResult
    remote: RemoteSearchResult | None = None
    remote_count: int = 0
    warnings: list[str] = field(default_factory=list)
    superseded: bool = False
    search_type: str = "combined"

    def to_dict(self) -> dict:
        return {
            "results": self.results,
            "query": self.query,
            "total_results": self.total_results,
            "search_time": self.search_time,
            "search_type": self.search_type,
            "local": self.local.to_dict(),
            "remote": {"ids": self.remote.ids, "count": self.remote.count} if self.remote else None,
            "remote_count": self.remote_count,
            "warnings": self.warnings,
            "superseded": self.superseded,
        }


@dataclass(frozen=True)
class HistoryEntry:
    query: str
    result_count: int
    timestamp: datetime


@dataclass(frozen=True)
class Suggestion:
    type: Literal["history", "participant", "subject"]
    text: str
    result_count: int | None = None
    count: int | None = None


@dataclass
class IndexStats:
    total_messages: int = 0
    unique_words: int = 0
    participants: int = 0
    subjects: int = 0
    dates_indexed: int = 0
    attachments: int = 0
    last_index_update: datetime | None = field(default=None, compare=False)


@dataclass
class SearchOptions:
    use_remote: bool = False
    limit: int | None = None
    sort_by: SortBy = "relevance"
    sort_order: SortOrder = "desc"
