"""Error metrics channel.

Errors are surfaced through ordinary logging: any ``logger.error(...,
extra={"category": ...})`` under the ``elementfeed`` logger is counted here.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter

ROOT_LOGGER_NAME = "elementfeed"
UNCATEGORIZED = "uncategorized"


class ErrorMetricsHandler(logging.Handler):
    """Counts ERROR-and-above records, overall and per ``category`` extra."""

    def __init__(self, level: int = logging.ERROR):
        super().__init__(level)
        self._counts: Counter[str] = Counter()
        self._total = 0
        self._counts_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        category = getattr(record, "category", None) or UNCATEGORIZED
        with self._counts_lock:
            self._total += 1
            self._counts[str(category)] += 1

    def snapshot(self) -> dict[str, object]:
        with self._counts_lock:
            return {"total": self._total, "by_category": dict(self._counts)}

    def reset(self) -> None:
        with self._counts_lock:
            self._total = 0
            self._counts.clear()

    def install(self, logger_name: str = ROOT_LOGGER_NAME) -> ErrorMetricsHandler:
        """Attach to *logger_name* (idempotent)."""
        target = logging.getLogger(logger_name)
        if self not in target.handlers:
            target.addHandler(self)
        return self

    def uninstall(self, logger_name: str = ROOT_LOGGER_NAME) -> None:
        logging.getLogger(logger_name).removeHandler(self)
