"""Webhook signature verification."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from kycops.common.errors import WebhookVerificationError
from kycops.common.hexcodec import HexDecodeError, decode_hex
from kycops.common.hmac import SecretKey, constant_time_equals, webhook_digest
from kycops.common.logging import get_logger
from kycops.common.metrics import record_webhook_verification

logger = get_logger(__name__)


class VerificationReason(Enum):
    """Why a webhook delivery was rejected."""

    INVALID_ENCODING = "invalid_encoding"  # signature is not valid hex
    INVALID_SIGNATURE = "invalid_signature"  # digest does not match


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying one webhook delivery."""

    accepted: bool
    reason: VerificationReason | None = None

    @classmethod
    def ok(cls) -> "VerificationResult":
        return cls(accepted=True)

    @classmethod
    def rejected(cls, reason: VerificationReason) -> "VerificationResult":
        return cls(accepted=False, reason=reason)

    def __bool__(self) -> bool:
        return self.accepted


def verify_webhook_signature(
    secret: SecretKey,
    payload: bytes,
    signature_hex: str,
) -> VerificationResult:
    """
    Verify the HMAC-SHA1 digest of a webhook payload.

    The payload must be the raw request body as received. Re-serialized
    JSON is not guaranteed to be byte-identical and will not verify.

    Args:
        secret: Webhook shared secret
        payload: Raw request body
        signature_hex: Hex digest from the signature header

    Returns:
        Accepted result, or a rejection with its reason
    """
    try:
        provided = decode_hex(signature_hex)
    except HexDecodeError:
        logger.warning("Webhook signature is not valid hex", payload_length=len(payload))
        record_webhook_verification(VerificationReason.INVALID_ENCODING.value)
        return VerificationResult.rejected(VerificationReason.INVALID_ENCODING)

    if not constant_time_equals(webhook_digest(secret, payload), provided):
        logger.warning("Webhook signature mismatch", payload_length=len(payload))
        record_webhook_verification(VerificationReason.INVALID_SIGNATURE.value)
        return VerificationResult.rejected(VerificationReason.INVALID_SIGNATURE)

    record_webhook_verification("accepted")
    return VerificationResult.ok()


def ensure_valid_webhook(secret: SecretKey, payload: bytes, signature_hex: str) -> None:
    """
    Verify a webhook payload, raising on rejection.

    Raises:
        WebhookVerificationError: With the rejection reason
    """
    result = verify_webhook_signature(secret, payload, signature_hex)
    if not result.accepted:
        raise WebhookVerificationError(result.reason)
