import logging
import re
from collections import deque
from datetime import datetime, UTC

from api.settings import settings

# mail_search messages lead with the emitting class, e.g. "[SearchManager] ...".
_COMPONENT_RE = re.compile(r"^\[(\w+)\]\s*")


class SearchLogBuffer(logging.Handler):
    """Keeps the most recent mail_search log records, split into component and message."""

    def __init__(self, maxlen: int = 1000):
        super().__init__()
        self._entries: deque[dict] = deque(maxlen=maxlen)

    def emit(self, record: logging.LogRecord):
        try:
            message = record.getMessage()
        except Exception:
            self.handleError(record)
            return
        match = _COMPONENT_RE.match(message)
        self._entries.append({
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "levelno": record.levelno,
            "logger": record.name,
            "component": match.group(1) if match else record.name.rsplit(".", 1)[-1],
            "message": message[match.end():] if match else message,
        })

    def records(
        self,
        after: str | None = None,
        level: str | None = None,
        component: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Entries at or above ``level``, oldest first; ``limit`` keeps the newest."""
        threshold = logging.NOTSET
        if level:
            threshold = logging.getLevelName(level.upper())
            if not isinstance(threshold, int):
                raise ValueError(f"Unknown log level: {level}")
        items = [
            e for e in self._entries
            if (not after or e["ts"] > after)
            and e["levelno"] >= threshold
            and (not component or e["component"] == component)
        ]
        return items[-limit:] if limit else items

    def clear(self):
        self._entries.clear()


log_buffer = SearchLogBuffer(maxlen=settings.log_buffer_size)
