# serialdesk/runtime/session_manager.py
from __future__ import annotations

import logging
import queue
import threading
from concurrent import futures
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Tuple

from serialdesk.core.errors import (
    DeviceConnectError,
    DeviceReadError,
    InvalidStateError,
    NotReadyError,
    SendTimeoutError,
)
from serialdesk.model.log_entry import RECEIVE, SEND, LogEntry
from serialdesk.model.settings import SerialSettings
from serialdesk.runtime.coalescer import CoalescingBuffer, CoalescingWindow
from serialdesk.runtime.log_sink import LogCallback, LogSink
from serialdesk.runtime.read_loop import ReadLoop
from serialdesk.runtime.state import SessionState, SessionStatus, TransportState
from serialdesk.runtime.write_channel import WriteChannel
from serialdesk.transport.base import Transport
from serialdesk.transport.errors import TransportError

# inbound chunks buffered between the reader and the coalescer
CHUNK_QUEUE_SIZE = 256


@dataclass
class _Session:
    """Everything owned by one connection; created on connect, torn down on disconnect."""
    transport: Transport
    settings: SerialSettings
    stop_event: threading.Event = field(default_factory=threading.Event)
    chunks: "queue.Queue[bytes]" = field(default_factory=lambda: queue.Queue(maxsize=CHUNK_QUEUE_SIZE))
    opened: bool = False
    reader: Optional[ReadLoop] = None
    coalescer: Optional[CoalescingBuffer] = None
    writer: Optional[WriteChannel] = None
    bytes_received: int = 0
    bytes_sent: int = 0

    @property
    def window(self) -> Optional[CoalescingWindow]:
        return self.coalescer.window if self.coalescer is not None else None


class SessionManager:
    """
    Owns the connection state machine and the per-connection worker threads.

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTING -> DISCONNECTED
    """

    def __init__(
        self,
        settings: Optional[SerialSettings] = None,
        *,
        log_sink: Optional[LogSink] = None,
        join_timeout_s: Optional[float] = 2.0,
        logger: Optional[logging.Logger] = None,
    ):
        self._log = logger or logging.getLogger(__name__)
        self._sink = log_sink if log_sink is not None else LogSink(logger=self._log)
        self._join_timeout_s = join_timeout_s

        self._lock = threading.RLock()
        # serializes whole disconnect() calls, including thread joins
        self._teardown_lock = threading.Lock()

        self._state = SessionState.DISCONNECTED
        self._settings = settings or SerialSettings()
        self._session: Optional[_Session] = None
        self._last_error: Optional[str] = None
        self._last_label: str = ""
        self._last_bytes: Tuple[int, int] = (0, 0)

    # ---------------- properties ----------------
    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    @property
    def settings(self) -> SerialSettings:
        """Settings the next connect() will use."""
        with self._lock:
            return self._settings

    @property
    def active_settings(self) -> Optional[SerialSettings]:
        """Snapshot the current connection was opened with."""
        with self._lock:
            session = self._session
            return session.settings if session is not None else None

    @property
    def logs(self) -> Tuple[LogEntry, ...]:
        return self._sink.entries()

    @property
    def log_sink(self) -> LogSink:
        return self._sink

    @property
    def last_error(self) -> Optional[str]:
        with self._lock:
            return self._last_error

    # ---------------- lifecycle ----------------
    def connect(self, transport: Transport, settings: Optional[SerialSettings | Mapping[str, Any]] = None) -> None:
        with self._lock:
            if self._state is not SessionState.DISCONNECTED:
                raise InvalidStateError(
                    f"Cannot connect while {self._state.value}.",
                    hint="Call disconnect() first.",
                    details={"state": self._state.value},
                )
            if settings is not None:
                self._apply_settings(settings)

            session = _Session(transport=transport, settings=self._settings)
            self._session = session
            self._state = SessionState.CONNECTING
            self._last_error = None

        self._log.info("SESSION_CONNECT transport=%s settings=%s", transport.label, session.settings.as_dict())

        try:
            transport.open(session.settings)
        except TransportError as e:
            self._log.warning("TRANSPORT_OPEN_FAILED transport=%s err=%s", transport.label, e)
            self._abort_connect(session, str(e))
            raise DeviceConnectError(
                "Could not open device transport.",
                hint=str(e),
                details={"transport": transport.label},
            ) from None

        with self._lock:
            aborted = self._session is not session
            if not aborted:
                session.opened = True
                self._start_workers(session)
                self._state = SessionState.CONNECTED

        if aborted:
            self._log.warning("SESSION_CONNECT_ABORTED transport=%s", transport.label)
            self._close_transport(transport)
            raise DeviceConnectError(
                "Connection aborted by disconnect().",
                details={"transport": transport.label},
            )

        self._log.info("SESSION_CONNECTED transport=%s", transport.label)

    def disconnect(self) -> None:
        """Tear down whatever is running; always ends DISCONNECTED."""
        self._disconnect(expected=None)

    def update_settings(self, partial: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> SerialSettings:
        """
        Merge into the stored settings.

        A live connection keeps the snapshot it was opened with; the new
        values apply from the next connect().
        """
        with self._lock:
            self._settings = self._settings.merged(partial, **kwargs)
            settings = self._settings
            connected = self._session is not None
        if connected:
            self._log.info("SETTINGS_UPDATED_DEFERRED settings=%s", settings.as_dict())
        return settings

    # ---------------- data path ----------------
    def send_data(self, text: str, timeout: Optional[float] = None) -> LogEntry:
        """
        Write `text` to the device and return the logged `send` entry.

        Raises NotReadyError (nothing written, nothing logged) unless connected,
        DeviceWriteError if the transport write fails, SendTimeoutError if
        `timeout` runs out first (the write itself is not cancelled).
        """
        with self._lock:
            session = self._session
            if self._state is not SessionState.CONNECTED or session is None or session.writer is None:
                raise NotReadyError(
                    "Serial port is not ready for writing.",
                    hint="Connect before sending.",
                    details={"state": self._state.value},
                )
            writer = session.writer

        pending = writer.submit(text)
        try:
            return pending.result(timeout=timeout)
        except futures.TimeoutError:
            raise SendTimeoutError(
                "Timed out waiting for the write to finish.",
                hint="The write may still complete and be logged.",
                details={"timeout_s": timeout, "len": len(pending.data)},
            ) from None

    def clear_logs(self) -> None:
        self._sink.clear()

    def subscribe(self, cb: LogCallback) -> Callable[[], None]:
        return self._sink.subscribe(cb)

    def status(self) -> SessionStatus:
        with self._lock:
            session = self._session
            if session is not None:
                transport = TransportState(
                    connected=self._state is SessionState.CONNECTED,
                    label=session.transport.label,
                    bytes_received=session.bytes_received,
                    bytes_sent=session.bytes_sent,
                    last_error=self._last_error,
                )
            else:
                rx, tx = self._last_bytes
                transport = TransportState(
                    connected=False,
                    label=self._last_label,
                    bytes_received=rx,
                    bytes_sent=tx,
                    last_error=self._last_error,
                )
            return SessionStatus(
                state=self._state,
                transport=transport,
                settings=self._settings,
                active_settings=session.settings if session is not None else None,
                log_entries=len(self._sink),
            )

    def __enter__(self) -> "SessionManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    # ---------------- internals ----------------
    def _apply_settings(self, settings: SerialSettings | Mapping[str, Any]) -> None:
        if isinstance(settings, SerialSettings):
            settings.validate()
            self._settings = settings
        else:
            self._settings = self._settings.merged(settings)

    def _start_workers(self, session: _Session) -> None:
        settings = session.settings
        window = CoalescingWindow(settings.package_timeout_ms)

        session.coalescer = CoalescingBuffer(
            session.chunks,
            window,
            emit=lambda data: self._sink.append(RECEIVE, data),
            stop_event=session.stop_event,
            logger=self._log,
        )
        session.writer = WriteChannel(
            session.transport,
            on_written=lambda text, data: self._on_written(session, text, data),
            logger=self._log,
        )
        session.reader = ReadLoop(
            session.transport,
            session.chunks,
            read_size=settings.buffer_size,
            stop_event=session.stop_event,
            on_chunk=lambda chunk: self._on_chunk(session, chunk),
            on_end=lambda: self._on_read_stopped(session, "end of stream"),
            on_error=lambda e: self._on_read_stopped(session, e),
            logger=self._log,
        )

        session.coalescer.start()
        session.writer.start()
        session.reader.start()

    def _on_chunk(self, session: _Session, chunk: bytes) -> None:
        with self._lock:
            session.bytes_received += len(chunk)

    def _on_written(self, session: _Session, text: str, data: bytes) -> LogEntry:
        with self._lock:
            session.bytes_sent += len(data)
        return self._sink.append(SEND, data, text=text)

    def _on_read_stopped(self, session: _Session, reason: DeviceReadError | str) -> None:
        """Reader is gone: record why and reconcile state off the reader thread."""
        message = reason.message if isinstance(reason, DeviceReadError) else str(reason)
        with self._lock:
            if self._session is not session:
                return
            self._last_error = message if isinstance(reason, str) else f"{message} ({reason.hint})"

        self._log.warning("SESSION_READER_STOPPED reason=%s; disconnecting", message)
        threading.Thread(
            target=self._disconnect,
            kwargs={"expected": session},
            daemon=True,
            name="serialdesk-reconcile",
        ).start()

    def _abort_connect(self, session: _Session, error: str) -> None:
        with self._lock:
            if self._session is session:
                self._session = None
                self._state = SessionState.DISCONNECTED
            self._last_error = error
            self._last_label = session.transport.label

    def _disconnect(self, expected: Optional[_Session]) -> None:
        with self._teardown_lock:
            with self._lock:
                session = self._session
                if session is None:
                    self._state = SessionState.DISCONNECTED
                    return
                if expected is not None and session is not expected:
                    return
                self._state = SessionState.DISCONNECTING

            self._log.info("SESSION_DISCONNECT transport=%s", session.transport.label)
            try:
                self._teardown(session)
            finally:
                with self._lock:
                    if self._session is session:
                        self._session = None
                    self._last_label = session.transport.label
                    self._last_bytes = (session.bytes_received, session.bytes_sent)
                    self._state = SessionState.DISCONNECTED
            self._log.info("SESSION_DISCONNECTED transport=%s", session.transport.label)

    def _teardown(self, session: _Session) -> None:
        # shared by reader and coalescer: nothing is emitted past this point
        session.stop_event.set()

        if not session.opened:
            # open() still in flight; connect() closes the transport when it returns
            return

        if session.reader is not None:
            session.reader.stop()
            session.transport.cancel_read()
            self._join(session.reader)

        if session.coalescer is not None:
            session.coalescer.stop()
            self._join(session.coalescer)
            window = session.window
            if window is not None and window.pending_bytes:
                self._log.info("COALESCE_DISCARDED bytes=%d", window.discard())

        # chunks the coalescer never picked up
        while True:
            try:
                session.chunks.get_nowait()
            except queue.Empty:
                break

        if session.writer is not None:
            session.writer.close(timeout=self._join_timeout_s)

        self._close_transport(session.transport)

    def _close_transport(self, transport: Transport) -> None:
        try:
            transport.close()
        except TransportError as e:
            self._log.error("TRANSPORT_CLOSE_FAILED transport=%s err=%s", transport.label, e)
            with self._lock:
                self._last_error = f"close failed: {e}"

    def _join(self, thread: threading.Thread) -> None:
        if thread is threading.current_thread() or not thread.is_alive():
            return
        thread.join(timeout=self._join_timeout_s)
        if thread.is_alive():
            self._log.warning("THREAD_JOIN_TIMEOUT name=%s", thread.name)
