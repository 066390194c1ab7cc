"""Types for realtime session frames and the supervisor state machine."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import MalformedSessionFrameError

# Maximum number of characters of a dropped frame echoed into logs.
FRAME_LOG_PREVIEW_CHARS = 160


class SessionState(str, Enum):
    CONNECTING = "connecting"
    WAITING_FOR_GREETING_TRIGGER = "waiting_for_greeting_trigger"
    GREETING_SENT = "greeting_sent"
    ACTIVE = "active"
    CLOSED = "closed"


class SessionEventKind(str, Enum):
    SESSION_CREATED = "session_created"
    RESPONSE_DONE = "response_done"
    AUDIO = "audio"
    TEXT = "text"
    TOOL_CALL = "tool_call"
    ERROR = "error"
    OTHER = "other"


class GreetingTrigger(str, Enum):
    SESSION_CREATED = "session.created"
    FALLBACK_TIMER = "fallback_timer"


@dataclass(slots=True, frozen=True)
class SessionEvent:
    """One decoded inbound session frame.

    Attributes:
        event_type: Provider-native `type` discriminator.
        kind: Coarse classification used for dispatch.
        payload: Full decoded frame.
    """

    event_type: str
    kind: SessionEventKind
    payload: dict[str, Any] = field(default_factory=dict)


# Hook invoked for tool-call events: (call_id, event) -> None.
ToolCallHandler = Callable[[str, SessionEvent], Awaitable[None]]


def classify_event_type(event_type: str) -> SessionEventKind:
    """Maps a provider event type onto a dispatch kind."""
    if event_type == "session.created":
        return SessionEventKind.SESSION_CREATED
    if event_type == "response.done":
        return SessionEventKind.RESPONSE_DONE
    if event_type.startswith("response.output_audio."):
        return SessionEventKind.AUDIO
    if event_type.startswith("response.output_text."):
        return SessionEventKind.TEXT
    if event_type.startswith("conversation.tool"):
        return SessionEventKind.TOOL_CALL
    if event_type == "error":
        return SessionEventKind.ERROR
    return SessionEventKind.OTHER


def frame_preview(raw: str | bytes) -> str:
    """Returns a short printable prefix of a raw frame for log lines."""
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    return text[:FRAME_LOG_PREVIEW_CHARS]


def parse_session_frame(raw: str | bytes) -> SessionEvent:
    """Decodes one inbound frame into a classified ``SessionEvent``.

    Raises:
        MalformedSessionFrameError: If the frame is not a JSON object with a
            string ``type``.
    """
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedSessionFrameError("Frame is not valid JSON") from exc
    if not isinstance(decoded, dict):
        raise MalformedSessionFrameError("Frame is not a JSON object")
    event_type = decoded.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedSessionFrameError("Frame has no type discriminator")
    return SessionEvent(event_type=event_type, kind=classify_event_type(event_type), payload=decoded)


def build_greeting_frame(instructions: str) -> str:
    """Serializes the `response.create` frame that speaks the greeting."""
    return json.dumps({"type": "response.create", "response": {"instructions": instructions}})
