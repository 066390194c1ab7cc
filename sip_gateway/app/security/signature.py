"""Webhook signature verification for realtime call notifications.

The provider signs webhooks with the Standard Webhooks scheme:

- ``webhook-id``: unique delivery id.
- ``webhook-timestamp``: Unix epoch seconds.
- ``webhook-signature``: one or more space-separated ``v1,<base64>`` entries.

The signed content is ``{webhook_id}.{webhook_timestamp}.{raw_body}`` and the
key is the base64-decoded secret with its optional ``whsec_`` prefix removed.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import time
from collections.abc import Mapping

WEBHOOK_ID_HEADER = "webhook-id"
WEBHOOK_TIMESTAMP_HEADER = "webhook-timestamp"
WEBHOOK_SIGNATURE_HEADER = "webhook-signature"
DEFAULT_TOLERANCE_SECONDS = 300
_SECRET_PREFIX = "whsec_"
_SIGNATURE_VERSION = "v1"


def _get_header(headers: Mapping[str, str], name: str) -> str:
    """Looks up a header case-insensitively, returning ``""`` when absent."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return ""


def _decode_secret(secret: str) -> bytes:
    """Derives HMAC key bytes from a configured webhook secret."""
    if secret.startswith(_SECRET_PREFIX):
        secret = secret[len(_SECRET_PREFIX):]
    try:
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError):
        return secret.encode("utf-8")


def sign_webhook_payload(raw_body: bytes, *, webhook_id: str, timestamp: str, secret: str) -> str:
    """Computes the base64 HMAC-SHA256 signature for a webhook delivery.

    Args:
        raw_body: Exact request body bytes.
        webhook_id: Value of the ``webhook-id`` header.
        timestamp: Value of the ``webhook-timestamp`` header.
        secret: Shared webhook secret (``whsec_`` prefix optional).

    Returns:
        Base64-encoded signature, without the ``v1,`` version prefix.
    """
    signed_content = f"{webhook_id}.{timestamp}.".encode("utf-8") + raw_body
    digest = hmac.new(_decode_secret(secret), signed_content, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def _candidate_signatures(header_value: str) -> list[str]:
    """Splits a signature header into bare signature values for ``v1``."""
    candidates: list[str] = []
    for part in header_value.split():
        version, sep, value = part.partition(",")
        if not sep:
            continue
        if version == _SIGNATURE_VERSION and value:
            candidates.append(value)
    return candidates


def verify_webhook_signature(
    raw_body: bytes,
    headers: Mapping[str, str],
    secret: str | None,
    *,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """Checks whether a webhook delivery was signed with the shared secret.

    Without a secret the check is bypassed and ``True`` is returned; callers
    are responsible for warning about that mode. The function performs no I/O.

    Args:
        raw_body: Exact request body bytes.
        headers: Request headers (any key casing).
        secret: Shared webhook secret, or ``None`` to bypass verification.
        tolerance_seconds: Maximum allowed distance between the signed
            timestamp and ``now``.
        now: Current Unix time; defaults to ``time.time()``.

    Returns:
        True when verification is bypassed or the signature matches.
    """
    if not secret:
        return True

    webhook_id = _get_header(headers, WEBHOOK_ID_HEADER)
    timestamp = _get_header(headers, WEBHOOK_TIMESTAMP_HEADER)
    signature_header = _get_header(headers, WEBHOOK_SIGNATURE_HEADER)
    if not webhook_id or not timestamp or not signature_header:
        return False

    try:
        signed_at = int(timestamp)
    except ValueError:
        return False
    current = time.time() if now is None else now
    if abs(current - signed_at) > tolerance_seconds:
        return False

    expected = sign_webhook_payload(raw_body, webhook_id=webhook_id, timestamp=timestamp, secret=secret)
    # Each candidate is compared in constant time; any match wins.
    return any(
        hmac.compare_digest(expected, candidate)
        for candidate in _candidate_signatures(signature_header)
    )
