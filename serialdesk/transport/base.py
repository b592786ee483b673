from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from serialdesk.model.settings import SerialSettings


class Transport(ABC):
    """
    Abstract device transport (serial port, URL handler, test double).

    Contract:
      - open(settings)/close() manage the underlying connection; close() is idempotent.
      - read(n) returns 0..n bytes. It returns b"" when no data arrived before the
        read timeout, and None once the stream has ended (device gone / closed).
      - write(data) returns the number of bytes written.
      - flush() forces pending output to be transmitted.
      - cancel_read() wakes up a blocked read(), best effort.
    """

    @property
    def label(self) -> str:
        return type(self).__name__

    @abstractmethod
    def open(self, settings: "SerialSettings") -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def read(self, n: int) -> Optional[bytes]: ...

    @abstractmethod
    def write(self, data: bytes) -> int: ...

    @abstractmethod
    def flush(self) -> None: ...

    def cancel_read(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(label='{self.label}')"
