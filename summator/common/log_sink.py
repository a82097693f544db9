"""
Rotating Log Sink

Bounded, newest-first debug log shared by the delivery pipeline and the
host UI. Each entry is prefixed with a UTC wall-clock time, prepended to the
stored buffer and the buffer is cut to a fixed number of characters, so the
oldest content always falls off the tail.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .storage import LocalStore

logger = logging.getLogger("summator.common.log_sink")

LOG_KEY = "debug_logs"
DEFAULT_MAX_CHARS = 10000
EMPTY_LOG_SENTINEL = "No logs yet."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RotatingLog:
    """
    Persistent debug log buffer.

    Appending never fails the caller: persistence errors are reported on the
    module logger and swallowed.
    """

    def __init__(
        self,
        store: LocalStore,
        max_chars: int = DEFAULT_MAX_CHARS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize log sink.

        Args:
            store: State store holding the buffer
            max_chars: Maximum buffer length in characters
            clock: Time source for entry prefixes (default: UTC now)
        """
        self._store = store
        self._max_chars = max_chars
        self._clock = clock or _utc_now

    @property
    def max_chars(self) -> int:
        return self._max_chars

    def format_entry(self, message: str) -> str:
        """Format a message as a single timestamped log line"""
        timestamp = self._clock().strftime("%H:%M:%S")
        return f"[{timestamp}] {message}\n"

    def append(self, message: str) -> None:
        """
        Prepend a timestamped entry and persist the truncated buffer.

        Args:
            message: Log message
        """
        entry = self.format_entry(message)
        logger.info("LOG: %s", entry.strip())

        try:
            current = self._store.get(LOG_KEY, "") or ""
            self._store.set(**{LOG_KEY: (entry + current)[:self._max_chars]})
        except Exception as e:
            logger.error("Failed to save log: %s", e)

    def read(self) -> str:
        """Return the buffer, or a sentinel when it is empty"""
        try:
            return self._store.get(LOG_KEY, "") or EMPTY_LOG_SENTINEL
        except Exception as e:
            logger.error("Failed to read log: %s", e)
            return EMPTY_LOG_SENTINEL

    def write(self, text: str) -> None:
        """Replace the buffer; write("") clears it"""
        self._store.set(**{LOG_KEY: (text or "")[:self._max_chars]})

    def clear(self) -> None:
        self.write("")
