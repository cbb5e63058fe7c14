import re
from collections.abc import Mapping
from datetime import UTC, date, datetime
from email.utils import parsedate_to_datetime

from mail_search.models import Participant, ParticipantField

STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
    "has", "he", "in", "is", "it", "its", "of", "on", "that", "the",
    "to", "was", "will", "with", "you", "your", "this", "these",
    "those", "i", "me", "my", "we", "our", "us", "have", "had",
    "would", "could", "should", "can", "may", "might", "must", "shall",
})

MIN_TOKEN_LENGTH = 3
MAX_TOKEN_LENGTH = 50

_NON_WORD_RE = re.compile(r"[^\w\s@.-]")
_DIGITS_RE = re.compile(r"^\d+$")
EMAIL_RE = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
# A name segment, optionally followed by its "<address>" part.
_NAME_RE = re.compile(r"([^<>,]+)(?:\s*<[^>]*>)?")
_REPLY_PREFIX_RE = re.compile(r"^(re|fwd|fw):\s*", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def tokenize(text: str | None) -> list[str]:
    if not text:
        return []
    words = _NON_WORD_RE.sub(" ", text.lower()).split()
    return [
        w for w in words
        if MIN_TOKEN_LENGTH <= len(w) <= MAX_TOKEN_LENGTH
        and w not in STOP_WORDS
        and not _DIGITS_RE.match(w)
    ]


def extract_email_text(value: ParticipantField) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, Participant):
        if value.name and value.address:
            return f"{value.name} <{value.address}>"
        return value.address or value.name
    if isinstance(value, Mapping):
        name, address = value.get("name"), value.get("address")
        return (
            value.get("text")
            or (f"{name} <{address}>" if name and address else "")
            or address
            or value.get("value")
            or ""
        )
    if isinstance(value, (list, tuple)):
        return ", ".join(t for t in (extract_email_text(v) for v in value) if t)
    return str(value)


def extract_participants(value: ParticipantField) -> set[str]:
    """Harvest addresses and display names from a from/to/cc field.

    Both forms become separate keys, so "Jane Doe <jane@x.com>" yields
    ``{"jane doe", "jane@x.com"}``.
    """
    text = extract_email_text(value)
    if not text:
        return set()

    participants = set(EMAIL_RE.findall(text))
    for match in _NAME_RE.finditer(text):
        name = match.group(1).strip()
        if name and not EMAIL_RE.fullmatch(name):
            participants.add(name)

    return {p.strip().lower() for p in participants if p.strip()}


def normalize_subject(subject: str | None) -> str:
    if not subject:
        return ""
    subject = _REPLY_PREFIX_RE.sub("", subject.strip(), count=1)
    return _WHITESPACE_RE.sub(" ", subject).strip().lower()


def to_day_string(value: datetime | date | str | None) -> str | None:
    """Truncate a message date to its ISO calendar day (UTC for aware datetimes).

    Raises ValueError when ``value`` cannot be parsed.
    """
    if not value:
        return None
    if isinstance(value, str):
        value = _parse_date_string(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    raise ValueError(f"Unsupported date value: {value!r}")


def _parse_date_string(raw: str) -> datetime:
    raw = raw.strip()
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Unparsable date: {raw!r}") from e
