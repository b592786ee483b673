# serialdesk/model/log_entry.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Direction = Literal["send", "receive"]

SEND: Direction = "send"
RECEIVE: Direction = "receive"


def decode_text(raw: bytes) -> str:
    """Decode device bytes for display; invalid UTF-8 becomes U+FFFD."""
    return bytes(raw).decode("utf-8", errors="replace")


def encode_text(text: str) -> bytes:
    return text.encode("utf-8")


@dataclass(frozen=True)
class LogEntry:
    """
    One timestamped, directional record of bytes exchanged with the device.
    """
    direction: Direction
    data: str
    timestamp_ms: int
    raw: bytes = b""

    @property
    def is_send(self) -> bool:
        return self.direction == SEND

    @property
    def is_receive(self) -> bool:
        return self.direction == RECEIVE

    def as_dict(self, include_raw: bool = False) -> dict:
        d = {
            "direction": self.direction,
            "data": self.data,
            "timestamp_ms": self.timestamp_ms,
        }
        if include_raw:
            d["raw"] = self.raw.hex()
        return d
