"""In-memory ledger enforcing at-most-once acceptance per call id."""

from __future__ import annotations

import logging
import threading

_LOGGER = logging.getLogger(__name__)


class CallAdmissionLedger:
    """Tracks call ids that have already been admitted in this process.

    Entries are never evicted. The ledger only deduplicates within one
    process; a multi-instance deployment needs a shared store instead.
    """

    def __init__(self) -> None:
        self._admitted: set[str] = set()
        self._lock = threading.Lock()

    def try_admit(self, call_id: str) -> bool:
        """Admits ``call_id`` if it has not been seen before.

        The membership test and insert run without yielding to the event loop
        and under a lock, so two deliveries of the same id cannot both win.

        Args:
            call_id: Provider call identifier.

        Returns:
            True for the first caller with this id, False for every later one.
        """
        with self._lock:
            if call_id in self._admitted:
                _LOGGER.debug("Call id already admitted.", extra={"call_id": call_id})
                return False
            self._admitted.add(call_id)
        _LOGGER.debug(
            "Call id admitted.",
            extra={"call_id": call_id, "admitted_count": len(self._admitted)},
        )
        return True

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._admitted

    def __len__(self) -> int:
        return len(self._admitted)
