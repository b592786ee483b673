# serialdesk/runtime/log_sink.py
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

from serialdesk.model.log_entry import Direction, LogEntry, decode_text

LogCallback = Callable[[LogEntry], None]


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class LogSink:
    """
    Ordered, append-only record of send/receive events.

    Entries are never evicted; clear() is the only way to drop them.
    Listeners run on the appending thread, after the entry is stored.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], int] = wall_clock_ms,
        logger: Optional[logging.Logger] = None,
    ):
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._entries: List[LogEntry] = []
        self._callbacks: List[LogCallback] = []

    def append(self, direction: Direction, raw: bytes, text: Optional[str] = None) -> LogEntry:
        """Stamp and store one entry; `text` defaults to `raw` decoded."""
        raw = bytes(raw)
        entry = LogEntry(
            direction=direction,
            data=decode_text(raw) if text is None else text,
            timestamp_ms=int(self._clock()),
            raw=raw,
        )

        with self._lock:
            self._entries.append(entry)
            cbs = list(self._callbacks)

        for cb in cbs:
            try:
                cb(entry)
            except Exception:
                self._log.exception("LOG_CALLBACK_ERROR")

        return entry

    def entries(self) -> Tuple[LogEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries = []

    def subscribe(self, cb: LogCallback) -> Callable[[], None]:
        with self._lock:
            self._callbacks.append(cb)

        def _unsubscribe() -> None:
            with self._lock:
                if cb in self._callbacks:
                    self._callbacks.remove(cb)

        return _unsubscribe

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
