"""Supervisor for one realtime duplex session of an accepted call.

The supervisor owns the websocket for exactly one call id. It guarantees the
opening greeting is sent once, as early as possible, by racing two triggers:

1. Receipt of the provider's ``session.created`` event.
2. A fallback timer started when the websocket opens.

Whichever fires first sends the greeting; ``greeting_sent`` is set before the
network write so the other trigger becomes a no-op. Inbound frames are
classified and logged, tool-call frames are handed to an optional hook, and
malformed frames are dropped. Transport errors end the session; there is no
reconnect.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from ..errors import MalformedSessionFrameError, SessionTransportError
from .events import (
    GreetingTrigger,
    SessionEvent,
    SessionEventKind,
    SessionState,
    ToolCallHandler,
    build_greeting_frame,
    frame_preview,
    parse_session_frame,
)

_LOGGER = logging.getLogger(__name__)

# Factory with the `websockets.asyncio.client.connect` calling convention.
SessionConnector = Callable[..., Any]


class SessionSupervisor:
    """Runs the realtime websocket session for one accepted call.

    Usage pattern:
    1. The webhook launcher creates one ``SessionSupervisor`` per admitted call.
    2. ``run()`` is scheduled as a detached task and returns when the
       transport closes or fails.
    """

    def __init__(
        self,
        call_id: str,
        *,
        api_key: str,
        realtime_url: str,
        origin: str,
        greeting_instructions: str,
        greeting_fallback_seconds: float = 1.0,
        connect: SessionConnector = websocket_connect,
        tool_call_handler: ToolCallHandler | None = None,
    ) -> None:
        """Initializes per-call session state.

        Args:
            call_id: Provider call identifier the session is bound to.
            api_key: Bearer credential for the realtime endpoint.
            realtime_url: Websocket endpoint without query string.
            origin: Origin header value required by the provider.
            greeting_instructions: Instructions for the opening prompt.
            greeting_fallback_seconds: Delay before the fallback greeting.
            connect: Websocket connector; injectable for tests.
            tool_call_handler: Optional hook for tool-call events.
        """
        self.call_id = call_id
        self._api_key = api_key
        self._realtime_url = realtime_url
        self._origin = origin
        self._greeting_instructions = greeting_instructions
        self._greeting_fallback_seconds = greeting_fallback_seconds
        self._connect = connect
        self._tool_call_handler = tool_call_handler

        self.state = SessionState.CONNECTING
        self.greeting_sent = False
        self.greeting_trigger: GreetingTrigger | None = None
        self._connection: Any | None = None
        self._fallback_task: asyncio.Task[None] | None = None
        self._event_counts: dict[str, int] = {}
        self._dropped_frames = 0

    def session_url(self) -> str:
        """Builds the realtime websocket URL for this call."""
        return f"{self._realtime_url}?{urlencode({'call_id': self.call_id})}"

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def run(self) -> None:
        """Connects, supervises the session, and returns once it has closed."""
        _LOGGER.debug("Connecting realtime session.", extra={"call_id": self.call_id})
        try:
            async with self._connect(
                self.session_url(),
                additional_headers=self._auth_headers(),
                origin=self._origin,
            ) as connection:
                self._connection = connection
                self._on_open()
                async for raw in connection:
                    await self._handle_frame(raw)
            _LOGGER.info("Realtime session closed.", extra={"call_id": self.call_id})
        except ConnectionClosedOK:
            _LOGGER.info("Realtime session closed by peer.", extra={"call_id": self.call_id})
        except (SessionTransportError, WebSocketException, OSError) as exc:
            _LOGGER.error(
                "Realtime session transport failed for call_id=%s: %s",
                self.call_id,
                exc,
                extra={"call_id": self.call_id, "state": self.state.value},
            )
        finally:
            await self._close()

    async def send_greeting(self, trigger: GreetingTrigger) -> bool:
        """Sends the opening greeting unless another trigger already did.

        Args:
            trigger: Which race participant is attempting the send.

        Raises:
            SessionTransportError: If the websocket write fails.

        Returns:
            True when this call sent the greeting, False when it was a no-op.
        """
        if self.greeting_sent:
            _LOGGER.debug(
                "Greeting already sent; trigger ignored.",
                extra={"call_id": self.call_id, "trigger": trigger.value},
            )
            return False
        connection = self._connection
        if connection is None or self.state is SessionState.CLOSED:
            return False

        # Flag flips before the write so a concurrent trigger cannot double-send.
        self.greeting_sent = True
        self.greeting_trigger = trigger
        self.state = SessionState.GREETING_SENT
        try:
            await connection.send(build_greeting_frame(self._greeting_instructions))
        except (ConnectionClosed, OSError) as exc:
            raise SessionTransportError(f"Failed to send greeting: {exc}") from exc
        if self.state is SessionState.GREETING_SENT:
            self.state = SessionState.ACTIVE
        _LOGGER.info(
            "Sent greeting.",
            extra={"call_id": self.call_id, "trigger": trigger.value},
        )
        return True

    def _on_open(self) -> None:
        """Moves to the greeting race and arms the fallback timer."""
        self.state = SessionState.WAITING_FOR_GREETING_TRIGGER
        self._fallback_task = asyncio.create_task(self._greeting_fallback())
        _LOGGER.info(
            "Realtime session open.",
            extra={"call_id": self.call_id, "greeting_fallback_seconds": self._greeting_fallback_seconds},
        )

    async def _greeting_fallback(self) -> None:
        """Sends the greeting if ``session.created`` has not arrived in time."""
        await asyncio.sleep(self._greeting_fallback_seconds)
        try:
            await self.send_greeting(GreetingTrigger.FALLBACK_TIMER)
        except SessionTransportError:
            _LOGGER.exception("Fallback greeting failed.", extra={"call_id": self.call_id})

    async def _handle_frame(self, raw: str | bytes) -> None:
        """Decodes, classifies, and dispatches one inbound frame."""
        try:
            event = parse_session_frame(raw)
        except MalformedSessionFrameError as exc:
            self._dropped_frames += 1
            _LOGGER.warning(
                "Dropped malformed realtime frame: %s",
                exc.detail,
                extra={"call_id": self.call_id, "preview": frame_preview(raw)},
            )
            return

        self._event_counts[event.event_type] = self._event_counts.get(event.event_type, 0) + 1
        await self._dispatch(event)

    async def _dispatch(self, event: SessionEvent) -> None:
        """Routes one classified event to its handler."""
        if event.kind is SessionEventKind.SESSION_CREATED:
            _LOGGER.info("Realtime session created.", extra={"call_id": self.call_id})
            await self.send_greeting(GreetingTrigger.SESSION_CREATED)
            return
        if event.kind is SessionEventKind.RESPONSE_DONE:
            _LOGGER.info("Assistant response done.", extra={"call_id": self.call_id})
            return
        if event.kind is SessionEventKind.AUDIO:
            _LOGGER.debug("Audio event: %s", event.event_type, extra={"call_id": self.call_id})
            return
        if event.kind is SessionEventKind.TEXT:
            _LOGGER.debug("Text event: %s", event.event_type, extra={"call_id": self.call_id})
            return
        if event.kind is SessionEventKind.TOOL_CALL:
            await self._dispatch_tool_call(event)
            return
        if event.kind is SessionEventKind.ERROR:
            _LOGGER.error(
                "Realtime session error event.",
                extra={"call_id": self.call_id, "error": event.payload.get("error")},
            )
            return
        _LOGGER.debug("Realtime session event: %s", event.event_type, extra={"call_id": self.call_id})

    async def _dispatch_tool_call(self, event: SessionEvent) -> None:
        """Hands a tool-call event to the registered hook, if any."""
        if self._tool_call_handler is None:
            _LOGGER.info(
                "Tool call received; no tool handler registered.",
                extra={"call_id": self.call_id, "event_type": event.event_type},
            )
            return
        try:
            await self._tool_call_handler(self.call_id, event)
        except Exception:
            _LOGGER.exception(
                "Tool call handler failed.",
                extra={"call_id": self.call_id, "event_type": event.event_type},
            )

    async def _close(self) -> None:
        """Cancels the fallback timer and marks the session closed."""
        self.state = SessionState.CLOSED
        self._connection = None
        task = self._fallback_task
        self._fallback_task = None
        if task and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        _LOGGER.debug(
            "Realtime session summary.",
            extra={
                "call_id": self.call_id,
                "greeting_sent": self.greeting_sent,
                "greeting_trigger": self.greeting_trigger.value if self.greeting_trigger else None,
                "event_counts": dict(self._event_counts),
                "dropped_frames": self._dropped_frames,
            },
        )
