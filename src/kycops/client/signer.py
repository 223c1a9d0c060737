"""Request signing for the verification API."""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from kycops.common.errors import PayloadEncodingError
from kycops.common.hmac import SecretKey, build_message, sign
from kycops.common.logging import get_logger
from kycops.common.metrics import record_signed_request

logger = get_logger(__name__)

APP_TOKEN_HEADER = "X-App-Token"
ACCESS_SIGNATURE_HEADER = "X-App-Access-Sig"
ACCESS_TIMESTAMP_HEADER = "X-App-Access-Ts"

JSON_CONTENT_TYPE = "application/json"
NDJSON_CONTENT_TYPE = "application/x-ndjson"


@dataclass(frozen=True)
class AuthHeaders:
    """Authentication headers for a single request. Never reuse across requests."""

    app_token: str
    access_signature: str
    access_timestamp: str

    def as_dict(self) -> dict[str, str]:
        return {
            APP_TOKEN_HEADER: self.app_token,
            ACCESS_SIGNATURE_HEADER: self.access_signature,
            ACCESS_TIMESTAMP_HEADER: self.access_timestamp,
        }


@dataclass(frozen=True)
class SignedRequest:
    """A request whose method, path and body are bound to its signature."""

    method: str
    path: str
    body: bytes | None
    content_type: str | None
    auth: AuthHeaders

    @property
    def headers(self) -> dict[str, str]:
        headers = self.auth.as_dict()
        if self.content_type:
            headers["Content-Type"] = self.content_type
        return headers


def encode_json_body(payload: Any) -> bytes:
    """
    Serialize a payload to the exact bytes that get signed and sent.

    Raises:
        PayloadEncodingError: If the payload is not JSON serializable
    """
    try:
        return json.dumps(
            payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False
        ).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise PayloadEncodingError(f"Payload could not be encoded: {e}") from e


def encode_ndjson_body(records: Iterable[Any]) -> bytes:
    """
    Serialize records as newline-delimited JSON.

    One compact JSON document per line, joined by ``\\n`` with no trailing
    newline. A record that fails to encode fails the whole body.

    Raises:
        PayloadEncodingError: If any record is not JSON serializable
    """
    lines: list[bytes] = []
    for index, record in enumerate(records):
        try:
            lines.append(encode_json_body(record))
        except PayloadEncodingError as e:
            raise PayloadEncodingError(f"Record {index} could not be encoded: {e.__cause__}") from e
    return b"\n".join(lines)


class RequestSigner:
    """
    Signs outbound API requests with HMAC-SHA256.

    The signature covers timestamp, method, path (with query string) and
    body, concatenated without separators. A fresh timestamp is taken on
    every call, so a repeated request is always re-signed.

    Requests without a body, including multipart uploads, are signed over
    timestamp, method and path only. The multipart framing and file content
    are not covered by the signature.
    """

    def __init__(
        self,
        app_token: str,
        secret_key: SecretKey,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the signer.

        Args:
            app_token: App token sent alongside every signature
            secret_key: Shared secret for the HMAC
            clock: Returns the current Unix time in seconds
        """
        self._app_token = app_token
        self._secret_key = secret_key
        self._clock = clock

    @property
    def app_token(self) -> str:
        return self._app_token

    def sign(self, method: str, path: str, body: bytes | None = None) -> AuthHeaders:
        """
        Sign one request.

        Args:
            method: Uppercase HTTP method, as sent
            path: Path and query string exactly as sent, starting with "/"
            body: Body bytes exactly as sent, or None when there is no body

        Returns:
            Headers to attach to this request only
        """
        if not path.startswith("/"):
            raise ValueError(f"Request path must start with '/': {path!r}")

        timestamp = str(int(self._clock()))
        signature = sign(self._secret_key, build_message(timestamp, method, path, body))

        logger.debug(
            "Signed request",
            method=method,
            path=path,
            timestamp=timestamp,
            body_length=None if body is None else len(body),
        )
        return AuthHeaders(
            app_token=self._app_token,
            access_signature=signature,
            access_timestamp=timestamp,
        )

    def sign_json(self, method: str, path: str, payload: Any = None) -> SignedRequest:
        """Sign a request with a JSON body. A payload of None means no body."""
        if payload is None:
            return self.sign_empty(method, path)

        method = method.upper()
        body = encode_json_body(payload)
        auth = self.sign(method, path, body)
        record_signed_request("json")
        return SignedRequest(method, path, body, JSON_CONTENT_TYPE, auth)

    def sign_empty(self, method: str, path: str) -> SignedRequest:
        """Sign a request that carries no signed body (GET, DELETE, multipart)."""
        method = method.upper()
        auth = self.sign(method, path)
        record_signed_request("empty")
        return SignedRequest(method, path, None, None, auth)

    def sign_ndjson(self, method: str, path: str, records: Iterable[Any]) -> SignedRequest:
        """Sign a bulk request carrying newline-delimited JSON records."""
        method = method.upper()
        body = encode_ndjson_body(records)
        auth = self.sign(method, path, body)
        record_signed_request("ndjson")
        return SignedRequest(method, path, body, NDJSON_CONTENT_TYPE, auth)
