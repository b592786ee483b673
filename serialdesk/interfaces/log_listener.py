from typing import Protocol

from serialdesk.model.log_entry import LogEntry


class LogListener(Protocol):
    def on_entry(self, entry: LogEntry) -> None: ...
    def close(self) -> None: ...
