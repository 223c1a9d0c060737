"""API client and request signing."""

from kycops.client.api import CheckType, KycClient
from kycops.client.signer import (
    AuthHeaders,
    RequestSigner,
    SignedRequest,
    encode_json_body,
    encode_ndjson_body,
)

__all__ = [
    "AuthHeaders",
    "CheckType",
    "KycClient",
    "RequestSigner",
    "SignedRequest",
    "encode_json_body",
    "encode_ndjson_body",
]
