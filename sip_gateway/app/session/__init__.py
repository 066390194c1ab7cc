"""Realtime session supervision for accepted calls."""

from .events import (
    GreetingTrigger,
    SessionEvent,
    SessionEventKind,
    SessionState,
    ToolCallHandler,
    classify_event_type,
    parse_session_frame,
)
from .launcher import SessionLauncher
from .supervisor import SessionSupervisor

__all__ = [
    "GreetingTrigger",
    "SessionEvent",
    "SessionEventKind",
    "SessionLauncher",
    "SessionState",
    "SessionSupervisor",
    "ToolCallHandler",
    "classify_event_type",
    "parse_session_frame",
]
