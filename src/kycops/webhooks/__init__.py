"""Webhook signature verification and receiver."""

from kycops.webhooks.verify import (
    VerificationReason,
    VerificationResult,
    ensure_valid_webhook,
    verify_webhook_signature,
)

__all__ = [
    "VerificationReason",
    "VerificationResult",
    "ensure_valid_webhook",
    "verify_webhook_signature",
]
