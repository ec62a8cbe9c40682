"""HTTP client for the relay storage service."""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from common.constants import (
    DELETE_TIMEOUT_SECONDS,
    HEALTH_CHECK_ENDPOINT,
    HEALTH_CHECK_TIMEOUT_SECONDS,
    ITEM_ENDPOINT,
    LIST_ENDPOINT,
    LIST_TIMEOUT_SECONDS,
    NO_CACHE_HEADERS,
    PIN_ENDPOINT,
    PIN_STATUS_ENDPOINT,
    PIN_TIMEOUT_SECONDS,
    REMOTE_STATUS_ENDPOINT,
    SEARCH_ENDPOINT,
    STATUS_TIMEOUT_SECONDS,
    UNPIN_ENDPOINT,
    UPLOAD_BASE_TIMEOUT_SECONDS,
    UPLOAD_ENDPOINT,
    UPLOAD_EXISTING_ENDPOINT,
    UPLOAD_TIMEOUT_SECONDS_PER_MB,
)
from common.exceptions import RelayRejectedError, RelayResponseError, RelayUnavailableError
from common.types import FileRecord, UploadSource
from engine.schemas import (
    FileRecordPayload,
    HealthCheckResponse,
    ListFilesResponse,
    OperationResponse,
    PinStatusResponse,
    RelayModel,
    RemoteStatusDetails,
    RemoteStatusResponse,
    UploadExistingResponse,
    UploadResponse,
)

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]
ModelT = TypeVar("ModelT", bound=RelayModel)


@dataclass(frozen=True)
class UploadResult:
    """What the relay said about an accepted upload (informational only)."""
    record: Optional[FileRecord]
    is_duplicate: bool = False


class RelayClient:
    """
    Async HTTP client for the relay API.

    Every call carries the bearer credential and no-cache directives and runs
    under a fixed per-call deadline. A timed-out call is a failure. There is
    no automatic retry: callers re-invoke on user action or schedule.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize relay client.

        Args:
            base_url: Relay base URL (e.g., "http://localhost:8765")
            token_provider: Callable returning the current bearer token
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url
        self._token_provider = token_provider or (lambda: None)
        self.session = httpx.AsyncClient(base_url=base_url, transport=transport)
        logger.info(f"Initialized RelayClient [base_url={base_url}]")

    @staticmethod
    def calculate_upload_timeout(file_size: int) -> float:
        """
        Calculate timeout for upload based on file size.

        Returns:
            Timeout in seconds (30s base + 0.1s per MB)
        """
        size_mb = file_size / (1024 * 1024)
        return UPLOAD_BASE_TIMEOUT_SECONDS + size_mb * UPLOAD_TIMEOUT_SECONDS_PER_MB

    def _headers(self, request_id: str) -> Dict[str, str]:
        headers = dict(NO_CACHE_HEADERS)
        headers['X-Request-ID'] = request_id
        token = self._token_provider()
        if token:
            headers['Authorization'] = f'Bearer {token}'
        return headers

    async def _request(self, method: str, endpoint: str, timeout: float, **kwargs) -> httpx.Response:
        """
        Make a single HTTP request under a deadline.

        Raises:
            RelayUnavailableError: On connection failure or timeout
            RelayResponseError: On any other request failure (bad encoding, redirect loops)
        """
        request_id = str(uuid.uuid4())
        headers = self._headers(request_id)
        headers.update(kwargs.pop('headers', {}))

        logger.debug(f"Making request: {method} {endpoint} [request_id={request_id}]")

        try:
            response = await self.session.request(method, endpoint, headers=headers, timeout=timeout, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"Request timed out: {method} {endpoint} after {timeout}s [request_id={request_id}]")
            raise RelayUnavailableError(f"Request timed out after {timeout:.0f}s") from e
        except httpx.TransportError as e:
            logger.warning(f"Network error: {method} {endpoint} error={type(e).__name__} [request_id={request_id}]")
            raise RelayUnavailableError("Cannot connect to relay server. Is it running?") from e
        except httpx.HTTPError as e:
            logger.warning(f"Request failed: {method} {endpoint} error={type(e).__name__} [request_id={request_id}]")
            raise RelayResponseError(f"Invalid response from relay: {e}") from e

        logger.debug(f"Response received: {method} {endpoint} status={response.status_code} [request_id={request_id}]")
        return response

    def _parse(self, response: httpx.Response, model: Type[ModelT]) -> ModelT:
        """
        Validate a JSON response body against a schema.

        Raises:
            RelayResponseError: On HTTP error status or malformed body
        """
        if response.status_code >= 400:
            raise RelayResponseError(self._format_error(response), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise RelayResponseError("Malformed response from relay", status_code=response.status_code) from e

        if not isinstance(data, dict):
            raise RelayResponseError(
                f"Unexpected response type: {type(data).__name__}",
                status_code=response.status_code,
            )

        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RelayResponseError(
                f"Invalid response shape: {e.error_count()} error(s)",
                status_code=response.status_code,
            ) from e

    def _format_error(self, response: httpx.Response) -> str:
        """Map an HTTP error response to a readable message."""
        detail = None
        try:
            error_data = response.json()
            if isinstance(error_data, dict):
                detail = error_data.get('error') or error_data.get('message') or error_data.get('detail')
        except ValueError:
            detail = None

        status_messages = {
            400: 'Bad request',
            401: 'Not authenticated',
            403: 'Access forbidden',
            404: 'Not found',
            413: 'File too large',
            415: 'Unsupported file type',
            429: 'Too many requests',
            500: 'Server error',
            503: 'Service unavailable',
            507: 'Insufficient storage',
        }
        message = status_messages.get(response.status_code, f'HTTP {response.status_code}')
        return f"{message}: {detail}" if detail else message

    @staticmethod
    def _raise_if_rejected(success: bool, error: Optional[str], status_code: int, default: str) -> None:
        if not success:
            raise RelayRejectedError(error or default, status_code=status_code)

    async def list_files(self, filter_params: Optional[Dict[str, Any]] = None, force: bool = False) -> List[FileRecord]:
        """
        Fetch the authoritative file list.

        Args:
            filter_params: Optional search filters (empty values are dropped)
            force: Add the relay's force/no-cache markers

        Returns:
            Parsed records; entries that fail validation are skipped

        Raises:
            RelayUnavailableError, RelayResponseError, RelayRejectedError
        """
        params: Dict[str, Any] = {
            key: value for key, value in (filter_params or {}).items()
            if value not in (None, '')
        }
        endpoint = SEARCH_ENDPOINT if params else LIST_ENDPOINT

        cache_buster = int(time.time() * 1000)
        if force and not params:
            params['_nocache'] = cache_buster
            params['_force'] = 'true'
        else:
            params['_t'] = cache_buster

        response = await self._request('GET', endpoint, LIST_TIMEOUT_SECONDS, params=params)
        payload = self._parse(response, ListFilesResponse)
        self._raise_if_rejected(payload.success, payload.error, response.status_code, "Relay returned success: false")

        records: List[FileRecord] = []
        for index, entry in enumerate(payload.entries()):
            if not isinstance(entry, dict):
                logger.warning(f"Skipping invalid file entry at index {index}")
                continue
            try:
                records.append(FileRecordPayload.model_validate(entry).to_record())
            except ValidationError as e:
                logger.warning(f"Skipping malformed file entry at index {index}: {e.error_count()} error(s)")

        logger.debug(f"Fetched {len(records)} file(s) from {endpoint}")
        return records

    async def upload_file(
        self,
        source: UploadSource,
        data: bytes,
        custom_name: Optional[str],
        idempotency_key: str,
    ) -> UploadResult:
        """
        Upload one file as multipart form data.

        Args:
            source: File metadata
            data: File content
            custom_name: Optional display name override
            idempotency_key: Unique key for this submission

        Raises:
            RelayUnavailableError, RelayResponseError, RelayRejectedError
        """
        files = {'file': (source.name, data, source.mime_type)}
        form = {'uploadId': idempotency_key, 'customName': custom_name or source.name}

        response = await self._request(
            'POST',
            UPLOAD_ENDPOINT,
            self.calculate_upload_timeout(source.size_bytes),
            files=files,
            data=form,
        )
        payload = self._parse(response, UploadResponse)
        self._raise_if_rejected(payload.success, payload.error, response.status_code, "Upload failed")

        record = None
        if payload.file:
            try:
                record = FileRecordPayload.model_validate(payload.file).to_record()
            except ValidationError as e:
                logger.warning(f"Upload response carried an unparseable file record: {e.error_count()} error(s)")

        return UploadResult(record=record, is_duplicate=payload.reports_duplicate())

    async def delete_file(self, file_id: str) -> None:
        """
        Delete a file by id.

        Raises:
            RelayUnavailableError, RelayResponseError, RelayRejectedError
        """
        endpoint = f"{ITEM_ENDPOINT}/{quote(file_id, safe='')}"
        response = await self._request('DELETE', endpoint, DELETE_TIMEOUT_SECONDS)
        payload = self._parse(response, OperationResponse)
        self._raise_if_rejected(payload.success, payload.error, response.status_code, "Unknown error")

    async def pin(self, remote_hash: str) -> None:
        await self._pin_operation(PIN_ENDPOINT, remote_hash)

    async def unpin(self, remote_hash: str) -> None:
        await self._pin_operation(UNPIN_ENDPOINT, remote_hash)

    async def _pin_operation(self, endpoint: str, remote_hash: str) -> None:
        response = await self._request('POST', endpoint, PIN_TIMEOUT_SECONDS, json={'hash': remote_hash})
        payload = self._parse(response, OperationResponse)
        self._raise_if_rejected(payload.success, payload.error, response.status_code, "Unknown error")

    async def upload_existing(self, file_id: str, file_name: str) -> Optional[str]:
        """
        Ask the relay to add an already stored file to the content network.

        Args:
            file_id: Id of the stored file
            file_name: Display name of the file

        Returns:
            Content hash reported by the relay, if any

        Raises:
            RelayUnavailableError, RelayResponseError, RelayRejectedError
        """
        response = await self._request(
            'POST',
            UPLOAD_EXISTING_ENDPOINT,
            UPLOAD_BASE_TIMEOUT_SECONDS,
            json={'fileId': file_id, 'fileName': file_name},
        )
        payload = self._parse(response, UploadExistingResponse)
        self._raise_if_rejected(payload.success, payload.error, response.status_code, "Upload failed")
        return payload.ipfs_hash or None

    async def pin_status(self, remote_hash: str) -> bool:
        endpoint = f"{PIN_STATUS_ENDPOINT}/{quote(remote_hash, safe='')}"
        response = await self._request('GET', endpoint, PIN_TIMEOUT_SECONDS)
        payload = self._parse(response, PinStatusResponse)
        return payload.success and payload.is_pinned

    async def remote_status(self) -> RemoteStatusDetails:
        """
        Read the content-addressed network configuration.

        Raises:
            RelayUnavailableError, RelayResponseError, RelayRejectedError
        """
        response = await self._request('GET', REMOTE_STATUS_ENDPOINT, STATUS_TIMEOUT_SECONDS)
        payload = self._parse(response, RemoteStatusResponse)
        self._raise_if_rejected(payload.success, payload.error, response.status_code, "Status unavailable")
        return payload.status or RemoteStatusDetails()

    async def health_check(self) -> HealthCheckResponse:
        response = await self._request('GET', HEALTH_CHECK_ENDPOINT, HEALTH_CHECK_TIMEOUT_SECONDS)
        return self._parse(response, HealthCheckResponse)

    async def close(self) -> None:
        """Close the HTTP session."""
        await self.session.aclose()
