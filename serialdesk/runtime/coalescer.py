# serialdesk/runtime/coalescer.py
from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, List, Optional, Tuple

# upper bound for one blocking wait, so stop() is observed promptly
_IDLE_POLL_S = 0.05


class CoalescingWindow:
    """
    Sliding-window aggregation of inbound byte chunks.

    With timeout_ms == 0 every pushed chunk is returned straight back.
    Otherwise chunks are held, and the deadline moves to `now + timeout`
    on every push; once `now` reaches the deadline, poll() returns the
    pending chunks joined in arrival order and resets the window.

    Not thread-safe: owned by a single CoalescingBuffer thread.
    Times are in seconds on whatever clock the caller uses.
    """

    def __init__(self, timeout_ms: int):
        self.timeout_s = max(0, int(timeout_ms)) / 1000.0
        self._pending: List[bytes] = []
        self._deadline: Optional[float] = None

    @property
    def pending(self) -> Tuple[bytes, ...]:
        return tuple(self._pending)

    @property
    def pending_bytes(self) -> int:
        return sum(len(c) for c in self._pending)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def push(self, chunk: bytes, now: float) -> Optional[bytes]:
        if self.timeout_s <= 0:
            return bytes(chunk)

        self._pending.append(bytes(chunk))
        self._deadline = now + self.timeout_s
        return None

    def remaining(self, now: float) -> Optional[float]:
        """Seconds until the deadline, or None when nothing is pending."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - now)

    def poll(self, now: float) -> Optional[bytes]:
        if self._deadline is None or now < self._deadline:
            return None
        return self.flush()

    def flush(self) -> Optional[bytes]:
        if not self._pending:
            self._deadline = None
            return None
        data = b"".join(self._pending)
        self._reset()
        return data

    def discard(self) -> int:
        """Drop pending chunks without emitting; returns the number of bytes dropped."""
        dropped = self.pending_bytes
        self._reset()
        return dropped

    def _reset(self) -> None:
        self._pending = []
        self._deadline = None


class CoalescingBuffer(threading.Thread):
    """Thread that drains the inbound chunk queue through a CoalescingWindow."""

    def __init__(
        self,
        chunks: "queue.Queue[bytes]",
        window: CoalescingWindow,
        emit: Callable[[bytes], None],
        *,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(daemon=True, name="serialdesk-coalescer")
        self.chunks = chunks
        self.window = window
        self._emit = emit
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)
        self._stop_event = stop_event or threading.Event()

    def run(self) -> None:
        while not self._stop_event.is_set():
            remaining = self.window.remaining(self._clock())
            wait_s = _IDLE_POLL_S if remaining is None else min(remaining, _IDLE_POLL_S)

            try:
                chunk: Optional[bytes] = self.chunks.get(timeout=wait_s)
            except queue.Empty:
                chunk = None

            if self._stop_event.is_set():
                break

            if chunk is not None:
                self._deliver(self.window.push(chunk, self._clock()))
            self._deliver(self.window.poll(self._clock()))

        dropped = self.window.discard()
        if dropped:
            self._log.info("COALESCE_DISCARDED bytes=%d", dropped)

    def stop(self) -> None:
        self._stop_event.set()

    def _deliver(self, data: Optional[bytes]) -> None:
        if data is None:
            return
        if self._stop_event.is_set():
            self._log.info("COALESCE_DISCARDED bytes=%d", len(data))
            return
        try:
            self._emit(data)
        except Exception:
            self._log.exception("COALESCE_EMIT_ERROR len=%d", len(data))
