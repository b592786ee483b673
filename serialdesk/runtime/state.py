# serialdesk/runtime/state.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from serialdesk.model.settings import SerialSettings


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


@dataclass(frozen=True)
class TransportState:
    """
    Runtime state of the transport connection.
    """
    connected: bool
    label: str = ""
    bytes_received: int = 0
    bytes_sent: int = 0
    last_error: Optional[str] = None


@dataclass(frozen=True)
class SessionStatus:
    """
    A snapshot of the full session status, safe to share across threads.
    """
    state: SessionState
    transport: TransportState
    settings: SerialSettings
    active_settings: Optional[SerialSettings]
    log_entries: int
