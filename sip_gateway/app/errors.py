"""Error taxonomy for webhook admission, call acceptance, and sessions.

Webhook-level errors carry the HTTP status the endpoint answers with.
Session-level errors never reach an HTTP response; they are logged by the
session supervisor.
"""

from __future__ import annotations


class SipGatewayError(Exception):
    status_code: int = 500
    default_detail: str = "SIP gateway error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class SignatureInvalidError(SipGatewayError):
    status_code = 400
    default_detail = "Invalid signature"


class WebhookParseError(SipGatewayError):
    status_code = 400
    default_detail = "Bad request"


class MissingCallIdError(SipGatewayError):
    """Call-incoming notification without a call id. Acknowledged, not failed."""

    status_code = 200
    default_detail = "Webhook missing call_id"


class DuplicateCallError(SipGatewayError):
    """Call id already admitted. Acknowledged as an idempotent no-op."""

    status_code = 200
    default_detail = "Call already admitted"


class AcceptanceError(SipGatewayError):
    """Base class for failures of the outbound call-accept request."""

    def __init__(self, call_id: str, detail: str | None = None) -> None:
        super().__init__(detail)
        self.call_id = call_id


class AcceptanceTransportError(AcceptanceError):
    status_code = 500
    default_detail = "Call accept error"


class AcceptanceRejectedError(AcceptanceError):
    status_code = 502
    default_detail = "Failed to accept call"

    def __init__(self, call_id: str, provider_status: int, body: str) -> None:
        super().__init__(call_id, f"Provider rejected call accept with status {provider_status}")
        self.provider_status = provider_status
        self.body = body


class SessionTransportError(SipGatewayError):
    default_detail = "Realtime session transport failed"


class MalformedSessionFrameError(SipGatewayError):
    default_detail = "Malformed realtime session frame"
