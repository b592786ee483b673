# serialdesk/cli/commands.py
from __future__ import annotations

import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

from serialdesk.app.config import SerialDeskConfig
from serialdesk.app.controller import SerialDeskController
from serialdesk.core.context import Context
from serialdesk.core.errors import NotReadyError
from serialdesk.interfaces.log_listener import LogListener
from serialdesk.model.log_entry import LogEntry
from serialdesk.runtime.state import SessionStatus
from serialdesk.transport.ports import list_ports

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ---------------- Log listener ----------------

def format_entry(entry: LogEntry) -> str:
    ts = datetime.fromtimestamp(entry.timestamp_ms / 1000.0).strftime("%H:%M:%S.%f")[:-3]
    arrow = "TX ->" if entry.is_send else "RX <-"
    return f"[{ts}] {arrow} {entry.data!r}"


class PrintLogListener(LogListener):
    """Print log entries to a stream as they are appended."""
    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream or sys.stdout

    def on_entry(self, entry: LogEntry) -> None:
        print(format_entry(entry), file=self._stream, flush=True)

    def close(self) -> None:
        return None


# ---------------- Logging ----------------

def configure_logging(*, verbose: bool = False, log_file: Optional[str] = None) -> None:
    """
    Attach console / file handlers to the root logger (idempotent).
    Kept in CLI (presentation-layer concern).
    """
    root = logging.getLogger()
    formatter = logging.Formatter(_LOG_FORMAT)

    if verbose and not any(getattr(h, "_serialdesk_console", False) for h in root.handlers):
        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(logging.INFO)
        sh.setFormatter(formatter)
        sh._serialdesk_console = True  # type: ignore[attr-defined]
        root.addHandler(sh)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        target = str(path.resolve())
        if not any(
            isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target
            for h in root.handlers
        ):
            fh = logging.FileHandler(path, encoding="utf-8", delay=True)
            fh.setLevel(logging.INFO)
            fh.setFormatter(formatter)
            root.addHandler(fh)

    if (verbose or log_file) and root.level > logging.INFO:
        root.setLevel(logging.INFO)


# ---------------- Status printing ----------------

def print_status(st: SessionStatus, stream: Optional[TextIO] = None) -> None:
    out = stream or sys.stdout
    t = st.transport
    print(f"Session:   state={st.state.value} port={t.label or '-'}", file=out)
    print(f"Traffic:   rx={t.bytes_received}B tx={t.bytes_sent}B entries={st.log_entries}", file=out)
    s = st.active_settings or st.settings
    print(
        f"Settings:  {s.baud_rate} {s.data_bits}{s.parity[0].upper()}{s.stop_bits} "
        f"flow={s.flow_control} buffer={s.buffer_size} package_timeout_ms={s.package_timeout_ms}",
        file=out,
    )
    if t.last_error:
        print(f"Error:     {t.last_error}", file=out)


# ---------------- Commands ----------------

def cmd_ports() -> int:
    ports = list_ports()
    if not ports:
        print("(no serial ports found)")
        return 0
    print("Available ports:")
    for p in ports:
        print(f"  - {p.describe()}")
    return 0


def cmd_profiles(*, context: Context) -> int:
    print(f"Baud rates: {', '.join(str(b) for b in context.baud_rates)}")
    print(f"Profiles ({context.config_path}):")
    for name in context.profile_names():
        s = context.profiles[name]
        print(
            f"  {name}: baud={s.baud_rate} data_bits={s.data_bits} stop_bits={s.stop_bits} "
            f"parity={s.parity} flow={s.flow_control} buffer={s.buffer_size} "
            f"package_timeout_ms={s.package_timeout_ms}"
        )
    return 0


def cmd_send(cfg: SerialDeskConfig, *, text: str, wait_s: float) -> int:
    controller = SerialDeskController(cfg)
    controller.add_listener(PrintLogListener())

    with controller:
        controller.send(text)

        deadline = time.monotonic() + max(0.0, wait_s)
        while time.monotonic() < deadline and controller.manager.is_connected:
            time.sleep(0.05)

        print_status(controller.status())
    return 0


def cmd_monitor(cfg: SerialDeskConfig, *, stdin: Optional[TextIO] = None) -> int:
    stdin = stdin or sys.stdin
    controller = SerialDeskController(cfg)
    controller.add_listener(PrintLogListener())

    with controller:
        print(f"Connected to {cfg.port}. Type to send, Ctrl-D / Ctrl-C to quit.")
        try:
            for line in stdin:
                if not controller.manager.is_connected:
                    break
                try:
                    controller.send(line.rstrip("\r\n"))
                except NotReadyError:
                    break
        except KeyboardInterrupt:
            pass

        print_status(controller.status())
    return 0
