from .state import SessionState, SessionStatus, TransportState
from .log_sink import LogSink
from .session_manager import SessionManager

__all__ = ["SessionManager",
           "SessionState",
           "SessionStatus",
           "TransportState",
           "LogSink"]
