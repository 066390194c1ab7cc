"""Webhook handling for realtime call notifications.

For each delivery the handler:
1. Verifies the webhook signature.
2. Parses the JSON event envelope.
3. For ``realtime.call.incoming``: admits the call id once, accepts the call,
   and starts the session supervisor without waiting for it.
4. Acknowledges every other event type.

Each branch produces exactly one response.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from .admission import CallAdmissionLedger
from .agent.script import get_call_instructions
from .errors import (
    AcceptanceError,
    AcceptanceTransportError,
    DuplicateCallError,
    MissingCallIdError,
    SignatureInvalidError,
    WebhookParseError,
)
from .schemas import AcceptancePayload, WebhookEvent
from .security.signature import DEFAULT_TOLERANCE_SECONDS, verify_webhook_signature

_LOGGER = logging.getLogger(__name__)


class CallAcceptor(Protocol):
    async def accept(self, call_id: str, payload: AcceptancePayload) -> None: ...


class SessionStarter(Protocol):
    def start(self, call_id: str) -> object: ...


@dataclass(slots=True, frozen=True)
class WebhookResponse:
    status_code: int
    body: str


ACKNOWLEDGED = WebhookResponse(status_code=200, body="OK")


class CallWebhookHandler:
    """Drives verifier → ledger → acceptance client → session launcher."""

    def __init__(
        self,
        *,
        ledger: CallAdmissionLedger,
        acceptance_client: CallAcceptor,
        session_launcher: SessionStarter,
        webhook_secret: str | None,
        model: str,
        voice: str,
        instructions_provider: Callable[[], str] = get_call_instructions,
        timestamp_tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    ) -> None:
        self._ledger = ledger
        self._acceptance_client = acceptance_client
        self._session_launcher = session_launcher
        self._webhook_secret = webhook_secret
        self._model = model
        self._voice = voice
        self._instructions_provider = instructions_provider
        self._timestamp_tolerance_seconds = timestamp_tolerance_seconds

    async def handle(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookResponse:
        """Processes one webhook delivery and returns the HTTP response to send.

        Args:
            raw_body: Exact request body bytes, as signed by the provider.
            headers: Request headers.

        Returns:
            The single response for this delivery.
        """
        try:
            self._verify(raw_body, headers)
            event = self._parse(raw_body)
        except (SignatureInvalidError, WebhookParseError) as exc:
            return WebhookResponse(status_code=exc.status_code, body=exc.default_detail)

        if not event.is_call_incoming:
            _LOGGER.info("Webhook event acknowledged.", extra={"event_type": event.type})
            return ACKNOWLEDGED

        try:
            call_id = self._admit(event)
        except (MissingCallIdError, DuplicateCallError) as exc:
            return WebhookResponse(status_code=exc.status_code, body=ACKNOWLEDGED.body)
        except WebhookParseError as exc:
            return WebhookResponse(status_code=exc.status_code, body=exc.default_detail)

        try:
            await self._accept(call_id)
        except AcceptanceError as exc:
            return WebhookResponse(status_code=exc.status_code, body=exc.default_detail)
        except Exception:
            _LOGGER.exception("Call accept error.", extra={"call_id": call_id})
            return WebhookResponse(
                status_code=AcceptanceTransportError.status_code,
                body=AcceptanceTransportError.default_detail,
            )

        _LOGGER.info("Accepted call; connecting realtime session.", extra={"call_id": call_id})
        self._session_launcher.start(call_id)
        return ACKNOWLEDGED

    def _verify(self, raw_body: bytes, headers: Mapping[str, str]) -> None:
        if not verify_webhook_signature(
            raw_body,
            headers,
            self._webhook_secret,
            tolerance_seconds=self._timestamp_tolerance_seconds,
        ):
            _LOGGER.error("Invalid webhook signature.")
            raise SignatureInvalidError()

    def _parse(self, raw_body: bytes) -> WebhookEvent:
        try:
            return WebhookEvent.model_validate_json(raw_body)
        except ValidationError as exc:
            _LOGGER.error("Webhook parse error: %s", exc.errors(include_url=False)[:1])
            raise WebhookParseError() from exc

    def _admit(self, event: WebhookEvent) -> str:
        """Returns the call id when this delivery wins admission.

        Raises:
            WebhookParseError: If the event data has the wrong shape.
            MissingCallIdError: If the notification carries no call id.
            DuplicateCallError: If the call id was already admitted.
        """
        try:
            data = event.call_incoming_data()
        except ValidationError as exc:
            _LOGGER.error("Webhook call data parse error: %s", exc.errors(include_url=False)[:1])
            raise WebhookParseError() from exc

        call_id = data.call_id
        _LOGGER.info(
            "Incoming call.",
            extra={"call_id": call_id, "sip_from": data.sip_header("From")},
        )
        if not call_id:
            _LOGGER.warning("Webhook missing call_id.")
            raise MissingCallIdError()
        if not self._ledger.try_admit(call_id):
            _LOGGER.info("Skip duplicate accept.", extra={"call_id": call_id})
            raise DuplicateCallError()
        return call_id

    async def _accept(self, call_id: str) -> None:
        payload = AcceptancePayload.build(
            model=self._model,
            instructions=self._instructions_provider(),
            voice=self._voice,
        )
        try:
            await self._acceptance_client.accept(call_id, payload)
        except AcceptanceError as exc:
            _LOGGER.error(
                "Call accept failed: %s",
                exc.detail,
                extra={
                    "call_id": call_id,
                    "provider_status": getattr(exc, "provider_status", None),
                    "provider_body": getattr(exc, "body", None),
                },
            )
            raise
