from __future__ import annotations

import base64

from sip_gateway.app.security.signature import sign_webhook_payload, verify_webhook_signature

SECRET = "whsec_" + base64.b64encode(b"super-secret-signing-key").decode("utf-8")
BODY = b'{"type":"realtime.call.incoming","data":{"call_id":"rtc_abc"}}'
NOW = 1_760_000_000


def _signed_headers(body: bytes = BODY, *, timestamp: int = NOW, secret: str = SECRET) -> dict[str, str]:
    signature = sign_webhook_payload(body, webhook_id="wh_1", timestamp=str(timestamp), secret=secret)
    return {
        "webhook-id": "wh_1",
        "webhook-timestamp": str(timestamp),
        "webhook-signature": f"v1,{signature}",
    }


def test_missing_secret_bypasses_verification() -> None:
    assert verify_webhook_signature(b"anything", {}, None) is True
    assert verify_webhook_signature(b"anything", {}, "") is True


def test_valid_signature_is_accepted() -> None:
    assert verify_webhook_signature(BODY, _signed_headers(), SECRET, now=NOW + 5)


def test_tampered_body_is_rejected() -> None:
    headers = _signed_headers()
    tampered = BODY.replace(b"rtc_abc", b"rtc_xyz")

    assert not verify_webhook_signature(tampered, headers, SECRET, now=NOW)


def test_wrong_secret_is_rejected() -> None:
    other_secret = "whsec_" + base64.b64encode(b"another-key").decode("utf-8")

    assert not verify_webhook_signature(BODY, _signed_headers(secret=other_secret), SECRET, now=NOW)


def test_missing_headers_are_rejected() -> None:
    headers = _signed_headers()
    for missing in ("webhook-id", "webhook-timestamp", "webhook-signature"):
        partial = {key: value for key, value in headers.items() if key != missing}
        assert not verify_webhook_signature(BODY, partial, SECRET, now=NOW)


def test_timestamp_outside_tolerance_is_rejected() -> None:
    headers = _signed_headers()

    assert not verify_webhook_signature(BODY, headers, SECRET, now=NOW + 301)
    assert not verify_webhook_signature(BODY, headers, SECRET, now=NOW - 301)
    assert verify_webhook_signature(BODY, headers, SECRET, now=NOW + 300)


def test_non_integer_timestamp_is_rejected() -> None:
    headers = _signed_headers()
    headers["webhook-timestamp"] = "yesterday"

    assert not verify_webhook_signature(BODY, headers, SECRET, now=NOW)


def test_header_lookup_is_case_insensitive() -> None:
    headers = {key.title(): value for key, value in _signed_headers().items()}

    assert verify_webhook_signature(BODY, headers, SECRET, now=NOW)


def test_any_listed_signature_may_match() -> None:
    headers = _signed_headers()
    headers["webhook-signature"] = f"v1,bm90LXRoZS1zaWduYXR1cmU= {headers['webhook-signature']}"

    assert verify_webhook_signature(BODY, headers, SECRET, now=NOW)


def test_unversioned_signature_is_rejected() -> None:
    headers = _signed_headers()
    headers["webhook-signature"] = headers["webhook-signature"].removeprefix("v1,")

    assert not verify_webhook_signature(BODY, headers, SECRET, now=NOW)


def test_plain_text_secret_round_trips() -> None:
    secret = "local-dev-secret!"
    headers = _signed_headers(secret=secret)

    assert verify_webhook_signature(BODY, headers, secret, now=NOW)
