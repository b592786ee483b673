# serialdesk/app/controller.py
from __future__ import annotations

import logging
from typing import Callable, Optional

from serialdesk.app.config import SerialDeskConfig
from serialdesk.core.context import Context
from serialdesk.interfaces.log_listener import LogListener
from serialdesk.model.log_entry import LogEntry
from serialdesk.model.settings import SerialSettings
from serialdesk.runtime.session_manager import SessionManager
from serialdesk.runtime.state import SessionStatus
from serialdesk.transport.base import Transport
from serialdesk.transport.uart import UARTTransport


class SerialDeskController:
    """
    App-level controller: resolves settings, owns the transport and fans
    log entries out to listeners.
    """

    def __init__(
        self,
        config: SerialDeskConfig,
        *,
        context: Optional[Context] = None,
        transport: Optional[Transport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._log = logger or logging.getLogger(__name__)

        self._context = context or Context.load(config.config_dir)
        self._settings = self._context.settings_for(config.profile, config.settings_overrides)
        self._transport = transport or UARTTransport(config.port, timeout=config.read_timeout_s)

        self._manager = SessionManager(self._settings, logger=self._log)

        self._listeners: list[LogListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def config(self) -> SerialDeskConfig:
        return self._config

    @property
    def context(self) -> Context:
        return self._context

    @property
    def settings(self) -> SerialSettings:
        return self._settings

    @property
    def manager(self) -> SessionManager:
        return self._manager

    def add_listener(self, listener: LogListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: LogListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self) -> None:
        self._subscribe_once()
        try:
            self._manager.connect(self._transport, self._settings)
        except Exception:
            try:
                self.stop()
            except Exception:
                self._log.exception("CONTROLLER_STOP_AFTER_START_FAIL")
            raise

    def stop(self) -> None:
        try:
            self._manager.disconnect()
        except Exception:
            self._log.exception("SESSION_STOP_ERROR")

        if self._unsubscribe:
            try:
                self._unsubscribe()
            finally:
                self._unsubscribe = None

        for listener in list(self._listeners):
            try:
                listener.close()
            except Exception:
                self._log.exception("LISTENER_CLOSE_ERROR")

        self._listeners.clear()

    def send(self, text: str) -> LogEntry:
        """Send `text` with the configured line ending appended."""
        return self._manager.send_data(text + self._config.line_suffix)

    def status(self) -> SessionStatus:
        return self._manager.status()

    def __enter__(self) -> "SerialDeskController":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _subscribe_once(self) -> None:
        if self._unsubscribe is not None:
            return

        def _fanout(entry: LogEntry) -> None:
            for listener in list(self._listeners):
                try:
                    listener.on_entry(entry)
                except Exception:
                    self._log.exception("LISTENER_ON_ENTRY_ERROR")

        self._unsubscribe = self._manager.subscribe(_fanout)
