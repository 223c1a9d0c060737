"""Pytest configuration and fixtures."""

import pytest

from kycops.client.signer import RequestSigner
from kycops.common.settings import Settings
from tests.helpers import APP_TOKEN, FIXED_TS, SECRET_KEY, WEBHOOK_SECRET


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        base_url="https://api.example.test",
        app_token=APP_TOKEN,
        secret_key=SECRET_KEY,
        webhook_secret=WEBHOOK_SECRET,
        webhook_path="/webhooks/kyc",
    )


@pytest.fixture
def signer() -> RequestSigner:
    """Signer with a frozen clock."""
    return RequestSigner(APP_TOKEN, SECRET_KEY, clock=lambda: FIXED_TS + 0.75)
