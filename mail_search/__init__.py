from mail_search.config import SearchSettings, settings
from mail_search.engine import EmailSearchEngine
from mail_search.exceptions import (
    InvalidQueryError,
    MailSearchError,
    RemoteSearchError,
    SearchEngineNotInitializedError,
)
from mail_search.index import SearchIndex
from mail_search.manager import SearchDisplay, SearchManager
from mail_search.models import (
    Attachment,
    CombinedSearchResult,
    EmailMessage,
    HistoryEntry,
    IndexStats,
    ParsedQuery,
    Participant,
    SearchOptions,
    SearchResult,
    Suggestion,
)
from mail_search.query import parse_query, validate_query
from mail_search.remote import IMAPConfig, IMAPMailStoreClient, IMAPSearchEngine
from mail_search.text import extract_participants, tokenize

__all__ = [
    "SearchSettings",
    "settings",
    "SearchIndex",
    "EmailSearchEngine",
    "SearchManager",
    "SearchDisplay",
    "IMAPConfig",
    "IMAPMailStoreClient",
    "IMAPSearchEngine",
    "EmailMessage",
    "Attachment",
    "Participant",
    "ParsedQuery",
    "SearchOptions",
    "SearchResult",
    "CombinedSearchResult",
    "HistoryEntry",
    "Suggestion",
    "IndexStats",
    "parse_query",
    "validate_query",
    "tokenize",
    "extract_participants",
    "MailSearchError",
    "SearchEngineNotInitializedError",
    "InvalidQueryError",
    "RemoteSearchError",
]
