"""Detached task management for realtime session supervisors."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from collections.abc import Callable

from .supervisor import SessionSupervisor

_LOGGER = logging.getLogger(__name__)

SupervisorFactory = Callable[[str], SessionSupervisor]


class SessionLauncher:
    """Starts one supervisor task per accepted call without awaiting it.

    Running tasks are referenced here so they are not garbage collected
    mid-call. A task that ends with an exception is logged by the done
    callback; nothing is propagated to the webhook turn that started it.
    """

    def __init__(self, supervisor_factory: SupervisorFactory) -> None:
        self._supervisor_factory = supervisor_factory
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def start(self, call_id: str) -> asyncio.Task[None]:
        """Schedules the session supervisor for ``call_id`` and returns at once."""
        supervisor = self._supervisor_factory(call_id)
        task = asyncio.create_task(supervisor.run(), name=f"realtime-session-{call_id}")
        self._tasks.add(task)
        task.add_done_callback(functools.partial(self._on_task_done, call_id))
        _LOGGER.debug(
            "Realtime session task started.",
            extra={"call_id": call_id, "active_sessions": len(self._tasks)},
        )
        return task

    def _on_task_done(self, call_id: str, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            _LOGGER.debug("Realtime session task cancelled.", extra={"call_id": call_id})
            return
        exc = task.exception()
        if exc is not None:
            _LOGGER.error(
                "Realtime session task failed.",
                exc_info=exc,
                extra={"call_id": call_id},
            )

    async def shutdown(self) -> None:
        """Cancels session tasks still running at process shutdown."""
        tasks = list(self._tasks)
        if not tasks:
            return
        _LOGGER.info("Cancelling running realtime sessions.", extra={"session_count": len(tasks)})
        for task in tasks:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.gather(*tasks, return_exceptions=True)
