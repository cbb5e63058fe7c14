import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import datetime

from bs4 import BeautifulSoup

from mail_search.models import EmailMessage, IndexStats, SearchableContent
from mail_search.text import (
    extract_email_text,
    extract_participants,
    normalize_subject,
    to_day_string,
    tokenize,
)

logger = logging.getLogger(__name__)

WORDS = "words"
PARTICIPANTS = "participants"
SUBJECTS = "subjects"
DATES = "dates"
ATTACHMENTS = "attachments"

MessageLike = EmailMessage | Mapping


class SearchIndex:
    """In-memory inverted indexes over a snapshot of messages.

    Five independent indexes map a normalized key to the set of message-ids
    whose corresponding field produced that key at last index time. The keys a
    message contributed are remembered so re-indexing the same id replaces its
    entries instead of leaving stale ones behind.
    """

    def __init__(self):
        self._content: dict[str, SearchableContent] = {}
        self._days: dict[str, str] = {}
        self._indexes: dict[str, defaultdict[str, set[str]]] = {
            name: defaultdict(set) for name in (WORDS, PARTICIPANTS, SUBJECTS, DATES, ATTACHMENTS)
        }
        self._keys_by_message: dict[str, dict[str, set[str]]] = {}
        self.last_index_update: datetime | None = None

    # --- Lifecycle ---

    def build_index(self, messages: Iterable[MessageLike]) -> IndexStats:
        messages = list(messages)
        logger.info("[SearchIndex] building index for %d messages", len(messages))
        self.clear()
        for message in messages:
            self.index_message(message)
        self.last_index_update = datetime.now()
        stats = self.get_stats()
        logger.info(
            "[SearchIndex] built: %d messages, %d words, %d participants, %d subjects, %d dates, %d attachments",
            stats.total_messages, stats.unique_words, stats.participants,
            stats.subjects, stats.dates_indexed, stats.attachments,
        )
        return stats

    def clear(self):
        self._content.clear()
        self._days.clear()
        self._keys_by_message.clear()
        for index in self._indexes.values():
            index.clear()

    def index_message(self, message: MessageLike):
        if isinstance(message, Mapping):
            message = EmailMessage.from_dict(message)
        if not message.message_id:
            return

        message_id = message.message_id
        if message_id in self._keys_by_message:
            self.remove_message(message_id)

        content = self.create_searchable_content(message)
        self._content[message_id] = content

        keys: dict[str, set[str]] = {
            WORDS: set(tokenize(content.all_text)),
            PARTICIPANTS: (
                extract_participants(message.sender)
                | extract_participants(message.to)
                | extract_participants(message.cc)
            ),
            SUBJECTS: set(),
            DATES: set(),
            ATTACHMENTS: {a.filename.lower() for a in message.attachments if a.filename},
        }
        if subject := normalize_subject(message.subject):
            keys[SUBJECTS].add(subject)
        if day := self._day_for(message):
            keys[DATES].add(day)
            self._days[message_id] = day

        for name, index_keys in keys.items():
            index = self._indexes[name]
            for key in index_keys:
                index[key].add(message_id)
        self._keys_by_message[message_id] = keys

    def remove_message(self, message_id: str) -> bool:
        keys = self._keys_by_message.pop(message_id, None)
        if keys is None:
            return False
        for name, index_keys in keys.items():
            index = self._indexes[name]
            for key in index_keys:
                ids = index.get(key)
                if ids is None:
                    continue
                ids.discard(message_id)
                if not ids:
                    del index[key]
        self._content.pop(message_id, None)
        self._days.pop(message_id, None)
        return True

    @staticmethod
    def create_searchable_content(message: EmailMessage) -> SearchableContent:
        body = message.body_text
        if not body and message.body_html:
            body = BeautifulSoup(message.body_html, "html.parser").get_text(separator=" ", strip=True)
        content = SearchableContent(
            subject=message.subject or "",
            sender=extract_email_text(message.sender),
            to=extract_email_text(message.to),
            cc=extract_email_text(message.cc),
            body=body or "",
            html_body=message.body_html or "",
            attachment_names=" ".join(a.filename for a in message.attachments if a.filename),
        )
        content.all_text = " ".join([
            content.subject, content.sender, content.to,
            content.cc, content.body, content.attachment_names,
        ]).lower()
        return content

    @staticmethod
    def _day_for(message: EmailMessage) -> str | None:
        try:
            return to_day_string(message.date)
        except ValueError as e:
            logger.warning("[SearchIndex] skipping date for %s: %s", message.message_id, e)
            return None

    # --- Read access ---

    @property
    def words(self) -> Mapping[str, set[str]]:
        return self._indexes[WORDS]

    @property
    def participants(self) -> Mapping[str, set[str]]:
        return self._indexes[PARTICIPANTS]

    @property
    def subjects(self) -> Mapping[str, set[str]]:
        return self._indexes[SUBJECTS]

    @property
    def dates(self) -> Mapping[str, set[str]]:
        return self._indexes[DATES]

    @property
    def attachments(self) -> Mapping[str, set[str]]:
        return self._indexes[ATTACHMENTS]

    def get_content(self, message_id: str) -> SearchableContent | None:
        return self._content.get(message_id)

    def get_day(self, message_id: str) -> str | None:
        return self._days.get(message_id)

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._content

    def __len__(self) -> int:
        return len(self._content)

    def get_stats(self) -> IndexStats:
        return IndexStats(
            total_messages=len(self._content),
            unique_words=len(self.words),
            participants=len(self.participants),
            subjects=len(self.subjects),
            dates_indexed=len(self.dates),
            attachments=len(self.attachments),
            last_index_update=self.last_index_update,
        )
