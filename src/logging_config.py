"""
Logging setup.

Configures the root logger once at startup and keeps a bounded buffer of
recent records for the admin log view.
"""
import logging
import sys
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class RecentLogHandler(logging.Handler):
    """Keeps the last ``capacity`` log records in memory."""

    def __init__(self, capacity: int = 500, level: int = logging.NOTSET):
        super().__init__(level)
        self.records: Deque[Dict[str, Any]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": datetime.utcfromtimestamp(record.created).isoformat() + "Z",
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            if record.exc_info:
                entry["exception"] = logging.Formatter().formatException(record.exc_info)
            self.records.append(entry)
        except Exception:
            self.handleError(record)

    def recent(self, limit: int = 100, level: Optional[str] = None) -> List[Dict[str, Any]]:
        """Newest first, optionally only records at or above ``level``."""
        entries = list(self.records)
        if level:
            threshold = logging.getLevelName(level.upper())
            if isinstance(threshold, int):
                entries = [e for e in entries if logging.getLevelName(e["level"]) >= threshold]
        return list(reversed(entries))[:limit]


recent_logs = RecentLogHandler()


def setup_logging(log_level: str = "INFO", capacity: Optional[int] = None) -> logging.Logger:
    """
    Set up console logging plus the in-memory recent-log buffer.

    Args:
        log_level: Logging level to use
        capacity: Size of the recent-log buffer

    Returns:
        The root logger
    """
    root = logging.getLogger()
    level = getattr(logging, log_level.upper(), logging.INFO)
    root.setLevel(level)

    if not any(getattr(h, "_globetrotter_console", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._globetrotter_console = True
        root.addHandler(handler)

    if capacity is not None and capacity != recent_logs.records.maxlen:
        recent_logs.records = deque(recent_logs.records, maxlen=capacity)
    if recent_logs not in root.handlers:
        root.addHandler(recent_logs)

    return root
