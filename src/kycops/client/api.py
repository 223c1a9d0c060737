"""HTTP client for the KYC/AML verification API."""

import asyncio
import re
import time
from collections.abc import Iterable
from enum import Enum
from typing import Any
from urllib.parse import quote, urlencode

import aiohttp
from yarl import URL

from kycops.client.signer import RequestSigner, SignedRequest, encode_json_body
from kycops.common.errors import (
    ApiError,
    MimeTypeError,
    ResponseDecodingError,
    TransportError,
)
from kycops.common.logging import get_logger
from kycops.common.metrics import record_api_request
from kycops.common.settings import Settings
from kycops.common.tracing import span

logger = get_logger(__name__)

_MIME_TYPE = re.compile(r"^[\w!#$&^.+-]+/[\w!#$&^.+-]+(\s*;.*)?$")


class CheckType(Enum):
    """Check types accepted by the latest-check-result endpoint."""

    POA = "POA"
    SIMILAR_SEARCH = "SIMILAR_SEARCH"
    TIN = "TIN"
    COMPANY = "COMPANY"
    BANK_CARD = "BANK_CARD"
    EMAIL_CONFIRMATION = "EMAIL_CONFIRMATION"
    PHONE_CONFIRMATION = "PHONE_CONFIRMATION"
    IP_CHECK = "IP_CHECK"
    NFC = "NFC"


def _q(value: str) -> str:
    """Percent-encode a single path segment."""
    return quote(value, safe="")


def _with_query(path: str, **params: Any) -> str:
    """Append query parameters, skipping None values."""
    present = {key: value for key, value in params.items() if value is not None}
    if not present:
        return path
    return f"{path}?{urlencode(present, quote_via=quote, safe='')}"


def _check_mime_type(mime_type: str) -> None:
    if not _MIME_TYPE.match(mime_type):
        raise MimeTypeError(f"Invalid MIME type: {mime_type!r}")


class KycClient:
    """
    HTTP client for the verification API.

    Every call is signed right before it is sent, and the exact signed path
    and body bytes are what goes on the wire.
    """

    def __init__(
        self,
        settings: Settings,
        signer: RequestSigner | None = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Application settings
            signer: Optional request signer (defaults to one built from settings)
        """
        self._base_url = settings.base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=settings.http_timeout)
        self._session: aiohttp.ClientSession | None = None
        self._signer = signer or RequestSigner(settings.app_token, settings.secret_key)

    @property
    def signer(self) -> RequestSigner:
        return self._signer

    async def __aenter__(self) -> "KycClient":
        """Enter async context."""
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session exists."""
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    # === Transport ===

    async def _send(
        self,
        signed: SignedRequest,
        operation: str,
        form: aiohttp.FormData | None = None,
    ) -> aiohttp.ClientResponse:
        """
        Send a signed request.

        Args:
            signed: Signed request (method, path, body and auth headers)
            operation: Operation name for metrics and traces
            form: Multipart form for uploads; never part of the signature

        Raises:
            TransportError: If the request could not be sent
        """
        session = self._ensure_session()
        url = URL(f"{self._base_url}{signed.path}", encoded=True)
        data: Any = form if form is not None else signed.body

        start = time.perf_counter()
        with span(
            "kyc_api_request",
            {"http.method": signed.method, "kyc.operation": operation},
        ) as current_span:
            try:
                response = await session.request(
                    signed.method,
                    url,
                    headers=signed.headers,
                    data=data,
                )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                record_api_request(
                    signed.method, operation, "transport_error", time.perf_counter() - start
                )
                raise TransportError(f"Request failed: {e}") from e
            current_span.set_attribute("http.status_code", response.status)

        record_api_request(signed.method, operation, response.status, time.perf_counter() - start)
        logger.debug(
            "Sent request",
            method=signed.method,
            path=signed.path,
            operation=operation,
            status=response.status,
        )
        return response

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        payload: Any = None,
    ) -> aiohttp.ClientResponse:
        return await self._send(self._signer.sign_json(method, path, payload), operation)

    async def _request_ndjson(
        self,
        path: str,
        operation: str,
        records: Iterable[Any],
    ) -> aiohttp.ClientResponse:
        return await self._send(self._signer.sign_ndjson("POST", path, records), operation)

    async def _request_multipart(
        self,
        path: str,
        operation: str,
        form: aiohttp.FormData,
    ) -> aiohttp.ClientResponse:
        return await self._send(self._signer.sign_empty("POST", path), operation, form=form)

    # === Response handling ===

    @staticmethod
    async def _raise_for_status(response: aiohttp.ClientResponse) -> None:
        if 200 <= response.status < 300:
            return
        try:
            message = await response.text()
        except (aiohttp.ClientError, UnicodeDecodeError):
            message = "Could not read error body"
        raise ApiError(response.status, message)

    async def _read_json(self, response: aiohttp.ClientResponse) -> Any:
        async with response:
            await self._raise_for_status(response)
            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise ResponseDecodingError(f"Invalid JSON response: {e}") from e
            except aiohttp.ClientError as e:
                raise TransportError(f"Failed to read response: {e}") from e

    async def _read_empty(self, response: aiohttp.ClientResponse) -> None:
        async with response:
            await self._raise_for_status(response)

    async def _read_bytes(self, response: aiohttp.ClientResponse) -> bytes:
        async with response:
            await self._raise_for_status(response)
            try:
                return await response.read()
            except aiohttp.ClientError as e:
                raise TransportError(f"Failed to read response: {e}") from e

    # === Applicants ===

    async def create_applicant(self, request: dict[str, Any], level_name: str) -> dict[str, Any]:
        """
        Create an applicant.

        Args:
            request: Applicant data (externalUserId, fixedInfo, ...)
            level_name: Verification level to assign

        Returns:
            Created applicant
        """
        path = _with_query("/resources/applicants", levelName=level_name)
        response = await self._request("POST", path, "create_applicant", request)
        return await self._read_json(response)

    async def get_applicant_data(self, applicant_id: str) -> dict[str, Any]:
        """Get applicant data by applicant ID."""
        path = f"/resources/applicants/{_q(applicant_id)}/one"
        response = await self._request("GET", path, "get_applicant_data")
        return await self._read_json(response)

    async def get_applicant_data_by_external_user_id(self, external_user_id: str) -> dict[str, Any]:
        """Get applicant data by the caller's own user ID."""
        path = f"/resources/applicants/-;externalUserId={_q(external_user_id)}/one"
        response = await self._request("GET", path, "get_applicant_data_by_external_user_id")
        return await self._read_json(response)

    async def get_applicant_status(self, applicant_id: str) -> dict[str, Any]:
        """Get the review status of an applicant."""
        path = f"/resources/applicants/{_q(applicant_id)}/status"
        response = await self._request("GET", path, "get_applicant_status")
        return await self._read_json(response)

    async def move_applicant_to_level(self, applicant_id: str, level_name: str) -> None:
        """Move an applicant to another verification level."""
        path = _with_query(
            f"/resources/applicants/{_q(applicant_id)}/moveToLevel",
            levelName=level_name,
        )
        response = await self._request("POST", path, "move_applicant_to_level")
        await self._read_empty(response)

    async def update_applicant_fixed_info(
        self,
        applicant_id: str,
        fixed_info: dict[str, Any],
    ) -> None:
        """Update the fixed info of an applicant."""
        path = f"/resources/applicants/{_q(applicant_id)}/fixedInfo"
        response = await self._request("PATCH", path, "update_applicant_fixed_info", fixed_info)
        await self._read_empty(response)

    async def change_applicant_data(
        self,
        applicant_id: str,
        info: dict[str, Any],
    ) -> dict[str, Any]:
        """Change the extracted ``info`` of an applicant."""
        path = f"/resources/applicants/{_q(applicant_id)}/info"
        response = await self._request("PATCH", path, "change_applicant_data", info)
        return await self._read_json(response)

    async def reset_applicant(self, applicant_id: str) -> None:
        """Reset an applicant to its initial state."""
        path = f"/resources/applicants/{_q(applicant_id)}/reset"
        response = await self._request("POST", path, "reset_applicant")
        await self._read_empty(response)

    async def request_applicant_recheck(self, applicant_id: str) -> None:
        """Send an applicant back to review."""
        path = f"/resources/applicants/{_q(applicant_id)}/status/pending"
        response = await self._request("POST", path, "request_applicant_recheck")
        await self._read_empty(response)

    async def deactivate_applicant_profile(
        self,
        applicant_id: str,
        moderation_comment: str | None = None,
    ) -> None:
        review: dict[str, Any] = {}
        if moderation_comment is not None:
            review["moderationComment"] = moderation_comment
        path = f"/resources/applicants/{_q(applicant_id)}/deactivated"
        response = await self._request(
            "PATCH", path, "deactivate_applicant_profile", {"review": review}
        )
        await self._read_empty(response)

    async def add_applicant_tags(self, applicant_id: str, tags: list[str]) -> None:
        path = f"/resources/applicants/{_q(applicant_id)}/tags"
        response = await self._request("POST", path, "add_applicant_tags", tags)
        await self._read_empty(response)

    # === Access tokens ===

    async def generate_token_for_new_applicant(
        self,
        level_name: str,
        external_user_id: str | None = None,
        ttl_in_secs: int | None = None,
    ) -> dict[str, Any]:
        """
        Generate a WebSDK access token.

        Args:
            level_name: Verification level
            external_user_id: Optional caller-side user ID
            ttl_in_secs: Optional token lifetime

        Returns:
            Token response (token, userId)
        """
        path = _with_query(
            "/resources/accessTokens",
            levelName=level_name,
            externalUserId=external_user_id,
            ttlInSecs=ttl_in_secs,
        )
        response = await self._request("POST", path, "generate_token_for_new_applicant")
        return await self._read_json(response)

    async def generate_token_for_existing_applicant(
        self,
        applicant_id: str,
        level_name: str,
    ) -> str:
        """Generate a WebSDK access token for an existing applicant."""
        path = _with_query(
            f"/resources/applicants/{_q(applicant_id)}/accessTokens",
            levelName=level_name,
        )
        response = await self._request("POST", path, "generate_token_for_existing_applicant")
        data = await self._read_json(response)
        try:
            return data["token"]
        except (KeyError, TypeError) as e:
            raise ResponseDecodingError("Token response has no 'token' field") from e

    # === Checks ===

    async def get_latest_check_result(
        self,
        applicant_id: str,
        check_type: CheckType,
    ) -> dict[str, Any]:
        """Get the latest result of a check of the given type."""
        path = _with_query(
            "/resources/checks/latest",
            type=check_type.value,
            applicantId=applicant_id,
        )
        response = await self._request("GET", path, "get_latest_check_result")
        return await self._read_json(response)

    # === Misc ===

    async def get_api_health_status(self) -> dict[str, Any]:
        """Get the API health status."""
        response = await self._request("GET", "/resources/status/api", "get_api_health_status")
        return await self._read_json(response)

    async def get_available_levels(self) -> list[dict[str, Any]]:
        """List the verification levels configured for the app."""
        response = await self._request(
            "GET", "/resources/sdkIntegrations/levels", "get_available_levels"
        )
        data = await self._read_json(response)
        try:
            return data["levels"]
        except (KeyError, TypeError) as e:
            raise ResponseDecodingError("Levels response has no 'levels' field") from e

    async def get_audit_trail_events(self) -> list[dict[str, Any]]:
        response = await self._request(
            "GET", "/resources/auditTrailEvents/", "get_audit_trail_events"
        )
        return await self._read_json(response)

    # === Binary downloads ===

    async def get_liveness_video(self, applicant_id: str) -> bytes:
        """Download the liveness video of an applicant."""
        path = f"/resources/applicants/{_q(applicant_id)}/info/facemap/video"
        response = await self._request("GET", path, "get_liveness_video")
        return await self._read_bytes(response)

    async def get_verification_pdf_report(self, applicant_id: str) -> bytes:
        path = f"/resources/applicants/{_q(applicant_id)}/requiredIdDocsStatus.pdf"
        response = await self._request("GET", path, "get_verification_pdf_report")
        return await self._read_bytes(response)

    async def get_verification_zip_report(self, applicant_id: str) -> bytes:
        path = f"/resources/applicants/{_q(applicant_id)}/requiredIdDocsStatus.zip"
        response = await self._request("GET", path, "get_verification_zip_report")
        return await self._read_bytes(response)

    # === Uploads ===
    # Multipart bodies are not signed: only timestamp, method and path are.

    async def add_verification_document(
        self,
        applicant_id: str,
        metadata: dict[str, Any],
        content: bytes,
        file_name: str,
        mime_type: str,
    ) -> None:
        """
        Upload an identity document image.

        Args:
            applicant_id: Applicant ID
            metadata: Document metadata (idDocType, country, ...)
            content: File content
            file_name: File name reported to the service
            mime_type: MIME type of the content
        """
        _check_mime_type(mime_type)
        metadata_json = encode_json_body(metadata).decode("utf-8")

        form = aiohttp.FormData()
        form.add_field("metadata", metadata_json)
        form.add_field("content", content, filename=file_name, content_type=mime_type)

        path = f"/resources/applicants/{_q(applicant_id)}/docsets/-"
        response = await self._request_multipart(path, "add_verification_document", form)
        await self._read_empty(response)

    async def add_note_attachment(
        self,
        applicant_id: str,
        note_id: str,
        content: bytes,
        file_name: str,
        mime_type: str,
    ) -> dict[str, Any]:
        """Attach a file to an applicant note."""
        _check_mime_type(mime_type)

        form = aiohttp.FormData()
        form.add_field("content", content, filename=file_name, content_type=mime_type)

        path = f"/resources/applicants/{_q(applicant_id)}/notes/{_q(note_id)}/attachments"
        response = await self._request_multipart(path, "add_note_attachment", form)
        return await self._read_json(response)

    async def import_applicant_profile_from_archive(self, content: bytes, file_name: str) -> None:
        """Import an applicant profile from a zip archive."""
        form = aiohttp.FormData()
        form.add_field("content", content, filename=file_name, content_type="application/zip")

        response = await self._request_multipart(
            "/resources/applicants/-/ingest", "import_applicant_profile_from_archive", form
        )
        await self._read_empty(response)

    # === Transactions ===

    async def submit_transaction(
        self,
        applicant_id: str,
        transaction: dict[str, Any],
    ) -> dict[str, Any]:
        """Submit a transaction for an existing applicant."""
        path = f"/resources/applicants/{_q(applicant_id)}/kyt/txns/-/data"
        response = await self._request("POST", path, "submit_transaction", transaction)
        return await self._read_json(response)

    async def get_transaction_data(self, txn_id: str) -> dict[str, Any]:
        path = f"/resources/kyt/txns/{_q(txn_id)}"
        response = await self._request("GET", path, "get_transaction_data")
        return await self._read_json(response)

    async def delete_transaction(self, txn_id: str) -> dict[str, Any]:
        path = f"/resources/kyt/txns/{_q(txn_id)}"
        response = await self._request("DELETE", path, "delete_transaction")
        return await self._read_json(response)

    async def find_transactions(self, expression: str) -> dict[str, Any]:
        """Search transactions with a filter expression."""
        path = _with_query("/resources/kyt/txns/search", expression=expression)
        response = await self._request("GET", path, "find_transactions")
        return await self._read_json(response)

    async def bulk_transaction_import(self, transactions: Iterable[dict[str, Any]]) -> dict[str, Any]:
        """
        Import many transactions in one newline-delimited JSON request.

        Args:
            transactions: Transaction records, one JSON line each

        Returns:
            Import summary
        """
        response = await self._request_ndjson(
            "/resources/kyt/misc/txns/import", "bulk_transaction_import", transactions
        )
        return await self._read_json(response)

    async def import_wallet_addresses(self, addresses: Iterable[dict[str, Any]]) -> dict[str, Any]:
        """Import wallet addresses in one newline-delimited JSON request."""
        response = await self._request_ndjson(
            "/resources/kyt/txns/-/importAddress", "import_wallet_addresses", addresses
        )
        return await self._read_json(response)
