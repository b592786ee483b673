from __future__ import annotations

import queue
import threading
import time
from typing import Callable, List, Optional

import pytest

from serialdesk.transport.base import Transport
from serialdesk.transport.errors import TransportIOError, TransportOpenError

_WAKE = object()


class FakeTransport(Transport):
    """
    In-memory Transport double.

    feed(b"..") queues a chunk for read(), feed(None) signals end-of-stream,
    feed(SomeError(...)) makes the next read raise it.
    """

    def __init__(self, *, read_timeout: float = 0.01, name: str = "fake0"):
        self.name = name
        self.read_timeout = read_timeout

        self.opened_with = None
        self.open_calls = 0
        self.close_calls = 0
        self.cancel_calls = 0
        self.flush_calls = 0
        self.writes: List[bytes] = []
        self.read_sizes: List[int] = []

        self.raise_on_open: Optional[Exception] = None
        self.raise_on_write: Optional[Exception] = None
        self.raise_on_close: Optional[Exception] = None
        self.write_ret: Optional[int] = None
        self.write_gate: Optional[threading.Event] = None
        self.open_gate: Optional[threading.Event] = None

        self._inbox: "queue.Queue[object]" = queue.Queue()
        self._is_open = False

    @property
    def label(self) -> str:
        return self.name

    @property
    def is_open(self) -> bool:
        return self._is_open

    def feed(self, item) -> None:
        self._inbox.put(item)

    def open(self, settings) -> None:
        self.open_calls += 1
        if self.open_gate is not None:
            self.open_gate.wait(2.0)
        if self.raise_on_open is not None:
            raise self.raise_on_open
        self.opened_with = settings
        self._is_open = True

    def close(self) -> None:
        self.close_calls += 1
        self._is_open = False
        if self.raise_on_close is not None:
            raise self.raise_on_close

    def read(self, n: int):
        if not self._is_open:
            raise TransportIOError("read while transport not open")
        self.read_sizes.append(n)
        try:
            item = self._inbox.get(timeout=self.read_timeout)
        except queue.Empty:
            return b""
        if item is _WAKE:
            return b""
        if isinstance(item, Exception):
            raise item
        return item

    def write(self, data: bytes) -> int:
        if self.write_gate is not None:
            self.write_gate.wait(2.0)
        if self.raise_on_write is not None:
            raise self.raise_on_write
        self.writes.append(bytes(data))
        return len(data) if self.write_ret is None else self.write_ret

    def flush(self) -> None:
        self.flush_calls += 1

    def cancel_read(self) -> None:
        self.cancel_calls += 1
        self._inbox.put(_WAKE)


def wait_until(predicate: Callable[[], bool], timeout: float = 1.0, interval: float = 0.005) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def failing_open_transport() -> FakeTransport:
    t = FakeTransport()
    t.raise_on_open = TransportOpenError("no such port")
    return t


@pytest.fixture
def wait_for():
    return wait_until


@pytest.fixture
def make_transport():
    return FakeTransport
