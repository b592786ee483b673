# serialdesk/core/errors.py
from __future__ import annotations


class SerialDeskError(Exception):
    """
    Base class for all expected operational errors in serialdesk.
    """

    #: Stable machine-readable identifier (for CLI exit mapping, status output, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration errors (no hardware access yet)
# ---------------------------------------------------------------------------

class SettingsError(SerialDeskError):
    """
    Serial settings or configuration file are invalid.

    Examples:
      - data_bits outside {7, 8}
      - package_timeout_ms outside [0, 5000]
      - unknown settings key in an update
      - unreadable / malformed serial.yml
    """
    code = "settings_error"


# ---------------------------------------------------------------------------
# Session lifecycle errors
# ---------------------------------------------------------------------------

class InvalidStateError(SerialDeskError):
    """
    Operation is not valid in the current session state.

    Examples:
      - connect() while already connecting
      - connect() while connected
    """
    code = "invalid_state"


class NotReadyError(SerialDeskError):
    """
    Send attempted while the session is not connected or the sink is gone.
    Raised before anything is written or logged.
    """
    code = "not_ready"


# ---------------------------------------------------------------------------
# Transport / device errors
# ---------------------------------------------------------------------------

class DeviceConnectError(SerialDeskError):
    """
    Transport could not be opened.

    Examples:
      - port not found
      - permission denied
      - device already in use
      - disconnect() raced an in-flight open
    """
    code = "device_connect_error"


class DeviceReadError(SerialDeskError):
    """
    Reading from an open device failed (cable removed, OS-level I/O error).
    """
    code = "device_read_error"


class DeviceWriteError(SerialDeskError):
    """
    Writing to an open device failed or was incomplete.
    """
    code = "device_write_error"


class SendTimeoutError(SerialDeskError):
    """
    send_data() stopped waiting before the write finished.

    The write is not cancelled: it may still complete and log a send entry.
    """
    code = "send_timeout"
