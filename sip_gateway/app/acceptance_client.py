"""HTTP client that accepts incoming realtime calls with the voice provider."""

from __future__ import annotations

import logging
import time
from urllib.parse import quote

import httpx

from .errors import AcceptanceRejectedError, AcceptanceTransportError
from .schemas import AcceptancePayload

_LOGGER = logging.getLogger(__name__)


class CallAcceptanceClient:
    """Thin async client around the provider's `/realtime/calls/{id}/accept`.

    One request per `accept()` call; the client never retries and never
    touches the admission ledger.
    """

    def __init__(self, base_url: str, api_key: str, *, timeout: float = 15.0) -> None:
        """Initializes the call acceptance client.

        Args:
            base_url: Provider REST API base URL (for example
                `https://api.openai.com/v1`).
            api_key: Bearer credential for the provider.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = httpx.AsyncClient(timeout=timeout)

    def _auth_headers(self) -> dict[str, str]:
        """Builds request headers required by provider auth."""
        return {"Authorization": f"Bearer {self.api_key}"}

    def accept_url(self, call_id: str) -> str:
        """Returns the accept endpoint URL for one call id."""
        return f"{self.base_url}/realtime/calls/{quote(call_id, safe='')}/accept"

    async def accept(self, call_id: str, payload: AcceptancePayload) -> None:
        """Asks the provider to accept a call with the given session payload.

        Args:
            call_id: Provider call identifier from the webhook.
            payload: Model, instructions, and audio settings for the call.

        Raises:
            AcceptanceTransportError: If the request could not be completed.
            AcceptanceRejectedError: If the provider answered with a non-2xx
                status.
        """
        url = self.accept_url(call_id)
        started = time.monotonic()
        _LOGGER.debug(
            "Starting call accept request.",
            extra={"call_id": call_id, "model": payload.model, "voice": payload.voice},
        )
        try:
            response = await self._client.post(
                url,
                json=payload.to_request_json(),
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as exc:
            _LOGGER.debug(
                "Call accept request failed before a response was received.",
                extra={"call_id": call_id, "error_type": type(exc).__name__},
            )
            raise AcceptanceTransportError(call_id, f"Call accept request failed: {exc}") from exc

        latency_ms = int((time.monotonic() - started) * 1000)
        _LOGGER.debug(
            "Call accept response received.",
            extra={"call_id": call_id, "status_code": response.status_code, "latency_ms": latency_ms},
        )
        if not response.is_success:
            raise AcceptanceRejectedError(call_id, response.status_code, response.text)

    async def close(self) -> None:
        """Closes the underlying HTTP client and frees connection resources."""
        _LOGGER.debug("Closing CallAcceptanceClient HTTP session.")
        await self._client.aclose()
