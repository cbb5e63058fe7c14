import asyncio
import inspect
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime
from typing import Protocol

from mail_search.config import settings
from mail_search.engine import EmailSearchEngine
from mail_search.exceptions import SearchEngineNotInitializedError
from mail_search.index import SearchIndex
from mail_search.models import (
    CombinedSearchResult,
    EmailMessage,
    HistoryEntry,
    IndexStats,
    RemoteSearchResult,
    SearchOptions,
    SearchResult,
    Suggestion,
)
from mail_search.query import validate_query
from mail_search.ranking import RelevanceWeights, sort_results
from mail_search.remote import IMAPConfig, IMAPSearchEngine

logger = logging.getLogger(__name__)

MessageProvider = Callable[[], Iterable[EmailMessage | Mapping]]
RemoteIdResolver = Callable[[list[int]], Iterable[str] | Awaitable[Iterable[str]]]


class SearchDisplay(Protocol):
    def display_results(self, result: CombinedSearchResult) -> None: ...

    def clear_search(self) -> None: ...

    def show_warning(self, message: str) -> None: ...


class SearchManager:
    """Coordinates local index search, optional remote IMAP search, and history.

    The manager owns one index snapshot at a time. Rebuilds construct a fresh
    ``SearchIndex`` and swap it in whole, so a search never sees a half-built
    index. Each ``perform_search`` call takes a generation number; a remote
    result that completes after a newer search has started is discarded.
    """

    def __init__(
        self,
        message_provider: MessageProvider | None = None,
        remote_engine: IMAPSearchEngine | None = None,
        imap_config: IMAPConfig | None = None,
        display: SearchDisplay | None = None,
        resolver: RemoteIdResolver | None = None,
        weights: RelevanceWeights | None = None,
        max_history_size: int | None = None,
        max_suggestions: int | None = None,
        max_query_length: int | None = None,
        remote_timeout: float | None = None,
    ):
        self._provider = message_provider
        self._remote = remote_engine
        self._imap_config = imap_config
        self._display = display
        self._resolver = resolver
        self._engine = EmailSearchEngine(weights=weights or RelevanceWeights.from_settings())
        self._max_history_size = max_history_size if max_history_size is not None else settings.max_history_size
        self._max_suggestions = max_suggestions if max_suggestions is not None else settings.max_suggestions
        self._max_query_length = max_query_length if max_query_length is not None else settings.max_query_length
        self._remote_timeout = remote_timeout if remote_timeout is not None else settings.remote_timeout
        self._history: deque[HistoryEntry] = deque(maxlen=self._max_history_size)
        self._generation = 0
        self._is_built = False
        self._is_stale = False

    def set_display(self, display: SearchDisplay | None):
        self._display = display

    # --- Index lifecycle ---

    def build_index(self, messages: Iterable[EmailMessage | Mapping]) -> IndexStats:
        index = SearchIndex()
        stats = index.build_index(messages)
        self._engine.index = index
        self._is_built = True
        self._is_stale = False
        return stats

    def index_message(self, message: EmailMessage | Mapping):
        self._engine.index.index_message(message)
        self._is_built = True

    def invalidate_index(self):
        self._is_stale = True

    def _ensure_index_ready(self):
        if self._is_built and not self._is_stale:
            return
        if self._provider is not None:
            logger.info("[SearchManager] (re)building index from message provider")
            self.build_index(self._provider())
            return
        if not self._is_built:
            raise SearchEngineNotInitializedError()

    def get_stats(self) -> IndexStats:
        return self._engine.index.get_stats()

    # --- Search ---

    def search(self, query: str, options: SearchOptions | None = None) -> SearchResult:
        """Synchronous local-only search; recorded in history."""
        options = options or SearchOptions()
        validate_query(query, self._max_query_length)
        self._ensure_index_ready()
        local = self._local_search(query, options)
        self._add_to_history(query, local.total_results)
        if options.limit is not None:
            local.results = local.results[: options.limit]
        return local

    async def perform_search(self, query: str, options: SearchOptions | None = None) -> CombinedSearchResult | None:
        options = options or SearchOptions()
        if not query or not query.strip():
            if self._display:
                self._display.clear_search()
            return None

        validate_query(query, self._max_query_length)
        self._generation += 1
        generation = self._generation
        start = time.perf_counter()

        self._ensure_index_ready()

        remote_task = None
        remote_engine = self._get_remote_engine() if options.use_remote else None
        if remote_engine is not None:
            remote_task = asyncio.create_task(self._run_remote(remote_engine, query))

        try:
            local = self._local_search(query, options)
        except BaseException:
            if remote_task:
                remote_task.cancel()
            raise
        logger.info("[SearchManager] local search for %r: %d results", query, local.total_results)

        remote, warnings = None, []
        if remote_task:
            remote, warning = await remote_task
            if warning:
                warnings.append(warning)

        superseded = generation != self._generation
        if superseded and remote is not None:
            logger.info("[SearchManager] discarding remote result for superseded query %r", query)
            remote = None

        combined = await self._combine(local, remote, options, warnings)
        combined.search_time = (time.perf_counter() - start) * 1000
        combined.superseded = superseded

        self._add_to_history(query, combined.total_results)

        if self._display and not superseded:
            for warning in warnings:
                self._display.show_warning(warning)
            self._display.display_results(combined)
        return combined

    def _local_search(self, query: str, options: SearchOptions) -> SearchResult:
        result = self._engine.search(query)
        result.results = sort_results(self._engine.index, result.results, options.sort_by, options.sort_order)
        return result

    def _get_remote_engine(self) -> IMAPSearchEngine | None:
        if self._remote is None:
            config = self._imap_config or IMAPConfig.from_settings()
            if config is None:
                return None
            self._remote = IMAPSearchEngine(config)
        return self._remote

    async def _run_remote(self, engine: IMAPSearchEngine, query: str) -> tuple[RemoteSearchResult | None, str | None]:
        try:
            result = await asyncio.wait_for(engine.search_remote(query), timeout=self._remote_timeout)
        except TimeoutError:
            message = f"Remote search timed out after {self._remote_timeout:g}s, showing local results only"
            logger.warning("[SearchManager] %s", message)
            return None, message
        except Exception as e:
            message = f"Remote search failed, showing local results only: {e}"
            logger.warning("[SearchManager] %s", message)
            return None, message
        return result, None

    async def _combine(
        self,
        local: SearchResult,
        remote: RemoteSearchResult | None,
        options: SearchOptions,
        warnings: list[str],
    ) -> CombinedSearchResult:
        results = list(local.results)
        total = local.total_results
        remote_count = remote.count if remote else 0

        if remote and self._resolver is not None:
            resolved = self._resolver(remote.ids)
            if inspect.isawaitable(resolved):
                resolved = await resolved
            seen = set(results)
            for message_id in resolved:
                if message_id not in seen:
                    seen.add(message_id)
                    results.append(message_id)
            total = len(results)
        elif remote:
            # Remote ids are IMAP sequence numbers; only their count can be combined.
            total += remote_count

        if options.limit is not None:
            results = results[: options.limit]

        return CombinedSearchResult(
            results=results,
            query=local.query,
            total_results=total,
            search_time=local.search_time,
            local=local,
            remote=remote,
            remote_count=remote_count,
            warnings=warnings,
        )

    # --- History & suggestions ---

    def _add_to_history(self, query: str, result_count: int):
        self._history.appendleft(HistoryEntry(query=query, result_count=result_count, timestamp=datetime.now()))

    def get_history(self) -> list[HistoryEntry]:
        return list(self._history)

    def clear_history(self):
        self._history.clear()

    def get_suggestions(self, partial: str) -> list[Suggestion]:
        needle = (partial or "").lower()
        suggestions: list[Suggestion] = []
        seen: set[str] = set()
        for entry in self._history:
            if needle in entry.query.lower() and entry.query not in seen:
                seen.add(entry.query)
                suggestions.append(Suggestion(type="history", text=entry.query, result_count=entry.result_count))
        suggestions.extend(self._engine.get_suggestions(partial, limit=self._max_suggestions))
        return suggestions[: self._max_suggestions]

    def get_search_config(self) -> dict:
        return {
            "is_initialized": self._is_built,
            "is_stale": self._is_stale,
            "has_remote_engine": self._remote is not None,
            "can_use_remote": self._remote is not None or (self._imap_config or IMAPConfig.from_settings()) is not None,
            "history_size": len(self._history),
            "max_history_size": self._max_history_size,
        }
