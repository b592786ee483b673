from .settings import SerialSettings, BAUD_RATES
from .log_entry import LogEntry, SEND, RECEIVE
from .loader import ConfigLoader

__all__ = ["SerialSettings",
           "BAUD_RATES",
           "LogEntry",
           "SEND",
           "RECEIVE",
           "ConfigLoader"]
