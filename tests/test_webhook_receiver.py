"""Tests for the webhook receiver app and signature middleware."""

from starlette.testclient import TestClient

from kycops.common.settings import Settings
from kycops.webhooks.receiver import create_app
from tests.helpers import webhook_signature

PAYLOAD = b'{"type": "applicantPending", "applicantId": "5cb56e8e0a975a35f333cb83"}'


def _app(settings, received):
    async def handler(body: bytes) -> None:
        received.append(body)

    return create_app(settings, handler=handler)


def test_valid_delivery_reaches_handler_with_raw_body(settings):
    received: list[bytes] = []
    with TestClient(_app(settings, received)) as client:
        resp = client.post(
            "/webhooks/kyc",
            content=PAYLOAD,
            headers={"X-Payload-Digest": webhook_signature(PAYLOAD)},
        )

    assert resp.status_code == 200
    assert resp.json() == {"status": "accepted"}
    assert received == [PAYLOAD]


def test_missing_signature_is_rejected(settings):
    received: list[bytes] = []
    with TestClient(_app(settings, received)) as client:
        resp = client.post("/webhooks/kyc", content=PAYLOAD)

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "missing_signature"
    assert received == []


def test_forged_signature_is_rejected(settings):
    received: list[bytes] = []
    tampered = PAYLOAD.replace(b"Pending", b"Reviewed")
    with TestClient(_app(settings, received)) as client:
        resp = client.post(
            "/webhooks/kyc",
            content=tampered,
            headers={"X-Payload-Digest": webhook_signature(PAYLOAD)},
        )

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "invalid_signature"
    assert received == []


def test_non_hex_signature_is_rejected_as_encoding_error(settings):
    received: list[bytes] = []
    with TestClient(_app(settings, received)) as client:
        resp = client.post(
            "/webhooks/kyc",
            content=PAYLOAD,
            headers={"X-Payload-Digest": "invalid_signature"},
        )

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "invalid_encoding"


def test_missing_secret_fails_closed():
    settings = Settings(webhook_secret=None, webhook_path="/webhooks/kyc")
    received: list[bytes] = []
    with TestClient(_app(settings, received)) as client:
        resp = client.post(
            "/webhooks/kyc",
            content=PAYLOAD,
            headers={"X-Payload-Digest": webhook_signature(PAYLOAD)},
        )

    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "webhook_secret_missing"
    assert received == []


def test_custom_signature_header(settings):
    settings = settings.model_copy(update={"webhook_signature_header": "X-Signature"})
    received: list[bytes] = []
    with TestClient(_app(settings, received)) as client:
        resp = client.post(
            "/webhooks/kyc",
            content=PAYLOAD,
            headers={"X-Signature": webhook_signature(PAYLOAD)},
        )

    assert resp.status_code == 200
    assert received == [PAYLOAD]


def test_health_is_not_gated(settings):
    with TestClient(create_app(settings)) as client:
        resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_metrics_count_verifications(settings):
    with TestClient(create_app(settings)) as client:
        client.post(
            "/webhooks/kyc",
            content=PAYLOAD,
            headers={"X-Payload-Digest": webhook_signature(PAYLOAD)},
        )
        resp = client.get("/metrics")

    assert resp.status_code == 200
    assert 'kycops_webhook_verifications_total{outcome="accepted"}' in resp.text
