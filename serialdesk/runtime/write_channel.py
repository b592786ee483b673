# serialdesk/runtime/write_channel.py
from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future
from typing import Callable, Optional

from serialdesk.core.errors import DeviceWriteError, NotReadyError
from serialdesk.model.log_entry import LogEntry, encode_text
from serialdesk.transport.base import Transport
from serialdesk.transport.errors import TransportError

_POLL_S = 0.05


class PendingWrite:
    """One send request; the Future resolves to the logged entry or a DeviceWriteError."""

    def __init__(self, text: str):
        self.text = str(text)
        self.data = encode_text(self.text)
        self.created_at = time.perf_counter()
        self.future: "Future[LogEntry]" = Future()

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> LogEntry:
        return self.future.result(timeout=timeout)

    def set_result(self, entry: LogEntry) -> None:
        if not self.future.done():
            self.future.set_result(entry)

    def set_exception(self, exc: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(exc)


class WriteChannel(threading.Thread):
    """
    Single writer thread fed by a one-slot request queue.

    Only this thread touches the transport's write side, so at most one write
    is in flight per session. `on_written(text, data)` runs after a complete
    write and returns the entry to hand back to the caller.
    """

    def __init__(
        self,
        transport: Transport,
        on_written: Callable[[str, bytes], LogEntry],
        *,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(daemon=True, name="serialdesk-writer")
        self.transport = transport
        self._on_written = on_written
        self._log = logger or logging.getLogger(__name__)

        self._requests: "queue.Queue[PendingWrite]" = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def submit(self, text: str) -> PendingWrite:
        """Queue a write; blocks while another request occupies the slot."""
        pending = PendingWrite(text)
        while True:
            with self._lock:
                if self._closed.is_set():
                    raise NotReadyError(
                        "Serial port is not ready for writing.",
                        hint="Connect before sending.",
                    )
                try:
                    self._requests.put_nowait(pending)
                    return pending
                except queue.Full:
                    pass
            self._closed.wait(_POLL_S)

    def run(self) -> None:
        while not self._closed.is_set():
            try:
                pending = self._requests.get(timeout=_POLL_S)
            except queue.Empty:
                continue
            self._process(pending)

    def close(self, timeout: Optional[float] = None) -> None:
        """Refuse new requests, wait for the in-flight write, fail anything still queued."""
        with self._lock:
            self._closed.set()

        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout=timeout)

        while True:
            try:
                pending = self._requests.get_nowait()
            except queue.Empty:
                break
            pending.set_exception(
                NotReadyError(
                    "Serial port closed before the write started.",
                    hint="Reconnect and send again.",
                )
            )

    def _process(self, pending: PendingWrite) -> None:
        try:
            written = self.transport.write(pending.data)
            if written is not None and written < len(pending.data):
                raise DeviceWriteError(
                    "Incomplete write to the device.",
                    hint=f"Wrote {written} of {len(pending.data)} bytes.",
                    details={"transport": self.transport.label, "written": written},
                )
            self.transport.flush()
        except TransportError as e:
            self._log.warning("WRITE_FAILED transport=%s len=%d err=%s", self.transport.label, len(pending.data), e)
            pending.set_exception(
                DeviceWriteError(
                    "Writing to the device failed.",
                    hint=str(e),
                    details={"transport": self.transport.label},
                )
            )
            return
        except DeviceWriteError as e:
            self._log.warning("WRITE_FAILED transport=%s %s", self.transport.label, e.hint)
            pending.set_exception(e)
            return

        try:
            entry = self._on_written(pending.text, pending.data)
        except Exception as e:
            self._log.exception("WRITE_LOG_FAILED")
            pending.set_exception(e)
            return

        self._log.debug("WRITE_OK transport=%s len=%d", self.transport.label, len(pending.data))
        pending.set_result(entry)
