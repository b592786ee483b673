# serialdesk/runtime/read_loop.py
from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional

from serialdesk.core.errors import DeviceReadError
from serialdesk.transport.base import Transport
from serialdesk.transport.errors import TransportError

# how long one blocked put waits before re-checking the stop flag
_PUT_RETRY_S = 0.05


class ReadLoop(threading.Thread):
    """
    Thread that continuously reads chunks from the transport into a bounded queue.

    Exits on stop(), on end-of-stream, or on the first read error; it never
    reopens the transport. A chunk that arrives after stop() is dropped.
    """

    def __init__(
        self,
        transport: Transport,
        chunks: "queue.Queue[bytes]",
        *,
        read_size: int,
        stop_event: Optional[threading.Event] = None,
        on_chunk: Optional[Callable[[bytes], None]] = None,
        on_end: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[DeviceReadError], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(daemon=True, name="serialdesk-reader")
        self.transport = transport
        self.chunks = chunks
        self.read_size = int(read_size)
        self._stop_event = stop_event or threading.Event()
        self._on_chunk = on_chunk
        self._on_end = on_end
        self._on_error = on_error
        self._log = logger or logging.getLogger(__name__)

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                chunk = self.transport.read(self.read_size)
            except TransportError as e:
                if self._stop_event.is_set():
                    break
                self._log.error("READ_LOOP_ERROR transport=%s err=%s", self.transport.label, e)
                self._notify_error(
                    DeviceReadError(
                        "Reading from the device failed.",
                        hint=str(e),
                        details={"transport": self.transport.label},
                    )
                )
                return

            if self._stop_event.is_set():
                if chunk:
                    self._log.debug("READ_LOOP_DROPPED_AFTER_STOP len=%d", len(chunk))
                break

            if chunk is None:
                self._log.info("READ_LOOP_EOF transport=%s", self.transport.label)
                self._notify_end()
                return

            if not chunk:
                continue

            if self._on_chunk is not None:
                self._on_chunk(chunk)
            self._enqueue(chunk)

        self._log.debug("READ_LOOP_STOPPED transport=%s", self.transport.label)

    def stop(self) -> None:
        self._stop_event.set()

    def _enqueue(self, chunk: bytes) -> None:
        while not self._stop_event.is_set():
            try:
                self.chunks.put(chunk, timeout=_PUT_RETRY_S)
                return
            except queue.Full:
                continue

    def _notify_end(self) -> None:
        if self._on_end is None:
            return
        try:
            self._on_end()
        except Exception:
            self._log.exception("READ_LOOP_END_CALLBACK_ERROR")

    def _notify_error(self, error: DeviceReadError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            self._log.exception("READ_LOOP_ERROR_CALLBACK_ERROR")
