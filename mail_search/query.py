import re

from mail_search.config import settings
from mail_search.exceptions import InvalidQueryError
from mail_search.models import DateRange, ParsedQuery
from mail_search.text import tokenize

# Operators only start at the beginning of the query or after whitespace,
# so "auto:x" is free text rather than a "to:" clause.
OPERATOR_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("from", re.compile(r"(?<!\S)from:(\S+)", re.IGNORECASE)),
    ("to", re.compile(r"(?<!\S)to:(\S+)", re.IGNORECASE)),
    ("subject", re.compile(r'(?<!\S)subject:("[^"]*"|[^\s"]+)', re.IGNORECASE)),
    ("has_attachment", re.compile(r"(?<!\S)has:attachment\b", re.IGNORECASE)),
    ("after", re.compile(r"(?<!\S)after:(\d{4}-\d{2}-\d{2})(?!\S)", re.IGNORECASE)),
    ("before", re.compile(r"(?<!\S)before:(\d{4}-\d{2}-\d{2})(?!\S)", re.IGNORECASE)),
]


def validate_query(query: str | None, max_length: int | None = None) -> str:
    max_length = max_length if max_length is not None else settings.max_query_length
    if not isinstance(query, str):
        raise InvalidQueryError(query, "query must be a non-empty string")
    if not query.strip():
        raise InvalidQueryError(query, "query cannot be empty")
    if len(query) > max_length:
        raise InvalidQueryError(query, f"query too long (max {max_length} characters)")
    return query


def parse_query(query: str) -> ParsedQuery:
    parsed = ParsedQuery()
    remaining = query or ""

    for field, pattern in OPERATOR_PATTERNS:
        for match in pattern.finditer(remaining):
            parsed.is_advanced = True
            _apply_operator(parsed, field, match.group(1) if pattern.groups else None)
        remaining = pattern.sub(" ", remaining)

    parsed.text = " ".join(remaining.split())
    parsed.terms = tokenize(parsed.text)
    return parsed


def _apply_operator(parsed: ParsedQuery, field: str, value: str | None):
    if field == "has_attachment":
        parsed.has_attachment = True
    elif field in ("after", "before"):
        if parsed.date_range is None:
            parsed.date_range = DateRange()
        setattr(parsed.date_range, field, value)
    elif field == "from":
        parsed.from_.append(value.replace('"', ""))
    else:
        getattr(parsed, field).append(value.replace('"', ""))
