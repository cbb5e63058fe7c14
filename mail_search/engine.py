import logging
import time
from collections.abc import Mapping
from datetime import date

from mail_search.index import SearchIndex
from mail_search.models import DateRange, ParsedQuery, SearchResult, Suggestion
from mail_search.query import parse_query
from mail_search.ranking import RelevanceWeights, rank

logger = logging.getLogger(__name__)


class EmailSearchEngine:
    def __init__(self, index: SearchIndex | None = None, weights: RelevanceWeights | None = None):
        self.index = index if index is not None else SearchIndex()
        self._weights = weights

    # --- Search ---

    def search(self, query: str) -> SearchResult:
        start = time.perf_counter()
        if not query or not query.strip():
            return self._empty_result(query)

        parsed = parse_query(query)
        if parsed.is_empty:
            return self._empty_result(query)

        # Bind once so a concurrent index swap cannot mix two snapshots.
        index = self.index
        matches = self.execute(parsed, index)
        ranked = rank(index, sorted(matches), parsed.terms, self._weights)

        return SearchResult(
            results=ranked,
            query=query,
            total_results=len(ranked),
            search_time=(time.perf_counter() - start) * 1000,
            search_type="advanced" if parsed.is_advanced else "simple",
            parsed_query=parsed,
        )

    def execute(self, parsed: ParsedQuery, index: SearchIndex | None = None) -> set[str]:
        """AND across clause types, OR across the values within one clause type."""
        index = index if index is not None else self.index
        conditions = [
            (bool(parsed.terms), lambda: self._search_by_terms(index, parsed.terms)),
            (bool(parsed.from_), lambda: self._search_by_keys(index.participants, parsed.from_)),
            (bool(parsed.to), lambda: self._search_by_keys(index.participants, parsed.to)),
            (bool(parsed.subject), lambda: self._search_by_keys(index.subjects, parsed.subject)),
            (parsed.has_attachment, lambda: self._search_by_attachments(index)),
            (parsed.date_range is not None, lambda: self._search_by_date_range(index, parsed.date_range)),
        ]

        results: set[str] | None = None
        for active, lookup in conditions:
            if not active:
                continue
            matched = lookup()
            results = matched if results is None else results & matched
        return results or set()

    # --- Per-condition lookups ---

    @staticmethod
    def _search_by_terms(index: SearchIndex, terms: list[str]) -> set[str]:
        results: set[str] = set()
        for term in terms:
            for word, ids in index.words.items():
                if term in word:
                    results.update(ids)
        return results

    @staticmethod
    def _search_by_keys(keys: Mapping[str, set[str]], values: list[str]) -> set[str]:
        results: set[str] = set()
        for value in values:
            needle = value.lower()
            for key, ids in keys.items():
                if needle in key:
                    results.update(ids)
        return results

    @staticmethod
    def _search_by_attachments(index: SearchIndex) -> set[str]:
        results: set[str] = set()
        for ids in index.attachments.values():
            results.update(ids)
        return results

    @staticmethod
    def _search_by_date_range(index: SearchIndex, date_range: DateRange) -> set[str]:
        for bound in (date_range.after, date_range.before):
            if bound is None:
                continue
            try:
                date.fromisoformat(bound)
            except ValueError:
                logger.warning("[EmailSearchEngine] ignoring unparsable date bound %r", bound)
                return set()

        results: set[str] = set()
        for day, ids in index.dates.items():
            if date_range.after and day < date_range.after:
                continue
            if date_range.before and day > date_range.before:
                continue
            results.update(ids)
        return results

    # --- Suggestions ---

    def get_suggestions(self, partial: str, limit: int | None = None) -> list[Suggestion]:
        needle = (partial or "").lower()
        index = self.index
        suggestions = [
            Suggestion(type="participant", text=f"from:{participant}", count=len(ids))
            for participant, ids in index.participants.items()
            if needle in participant
        ]
        suggestions.extend(
            Suggestion(type="subject", text=f'subject:"{subject}"', count=len(ids))
            for subject, ids in index.subjects.items()
            if needle in subject
        )
        return suggestions[:limit] if limit is not None else suggestions

    @staticmethod
    def _empty_result(query: str) -> SearchResult:
        return SearchResult(results=[], query=query, total_results=0, search_time=0.0, search_type="empty")
