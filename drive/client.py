"""Remote catalog client: typed documents in Google Drive over the v3 REST API."""

import json
import time
import uuid
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Protocol

import httpx

from common.constants import (
    DEFAULT_PAGE_SIZE,
    DRIVE_API_BASE_URL,
    DRIVE_FILE_FIELDS,
    DRIVE_LIST_FIELDS,
    DRIVE_UPLOAD_BASE_URL,
    RESUMABLE_PIECE_SIZE_BYTES,
)
from common.exceptions import NotFoundError, RemoteTransportError
from common.logging_config import get_logger
from common.types import TypeTag, UploadStrategy
from drive.models import FileList, RemoteDocument
from drive.query import build_query
from store.progress import TransferProgress

logger = get_logger(__name__)


class CatalogClient(Protocol):
    """Operations the object store needs from the remote document store."""

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        ...

    def create_document(
        self,
        parent_id: str,
        name: str,
        type_tag: TypeTag,
        content: bytes,
        content_type: str,
        properties: Optional[Mapping[str, str]] = None,
        strategy: UploadStrategy = UploadStrategy.DIRECT,
        progress: Optional[TransferProgress] = None,
    ) -> str:
        ...

    def get_document(self, document_id: str) -> RemoteDocument:
        ...

    def export_document_body(
        self,
        document_id: str,
        content_type: str,
        progress: Optional[TransferProgress] = None,
    ) -> bytes:
        ...

    def download_document_media(self, document_id: str) -> bytes:
        ...

    def list_documents(
        self,
        parent_id: Optional[str] = None,
        type_tags: Iterable[TypeTag] = (),
        query: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        limit: int = -1,
    ) -> Iterator[RemoteDocument]:
        ...

    def delete_document(self, document_id: str) -> None:
        ...

    def clone_document(
        self,
        document_id: str,
        new_parent_id: str,
        name: Optional[str] = None,
        properties: Optional[Mapping[str, str]] = None,
    ) -> str:
        ...


def build_session(access_token: str, timeout: float = 60.0) -> httpx.Client:
    """
    Create an authorized HTTP session for the Drive API.

    Args:
        access_token: OAuth 2.0 bearer token with Drive scope
        timeout: Request timeout in seconds

    Returns:
        httpx.Client sending the Authorization header on every request
    """
    return httpx.Client(
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=timeout,
    )


class DriveCatalogClient:
    """HTTP client for Drive file operations with retry logic and error mapping."""

    def __init__(
        self,
        session: httpx.Client,
        api_base_url: str = DRIVE_API_BASE_URL,
        upload_base_url: str = DRIVE_UPLOAD_BASE_URL,
        max_retries: int = 3,
        retry_backoff_multiplier: float = 2,
        upload_chunk_size: int = RESUMABLE_PIECE_SIZE_BYTES,
    ):
        """
        Initialize Drive catalog client.

        Args:
            session: Authorized httpx.Client (see build_session)
            api_base_url: Base URL for metadata endpoints
            upload_base_url: Base URL for media upload endpoints
            max_retries: Retries on 5xx responses and network failures (0 disables)
            retry_backoff_multiplier: Base of the exponential backoff in seconds
            upload_chunk_size: Piece size for resumable uploads
        """
        self.session = session
        self.api_base_url = api_base_url.rstrip("/")
        self.upload_base_url = upload_base_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_backoff_multiplier = retry_backoff_multiplier
        self.upload_chunk_size = upload_chunk_size
        logger.info(f"Initialized DriveCatalogClient [api_base_url={self.api_base_url}]")

    def _request_with_retry(
        self,
        method: str,
        url: str,
        operation: str,
        object_id: Optional[str] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method
            url: Absolute URL
            operation: Operation name used in errors and logs
            object_id: Remote id the request concerns, if any
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response with a status below 400 (or 308 for resumable uploads)

        Raises:
            NotFoundError: On 404
            RemoteTransportError: On other errors once retries are exhausted
        """
        request_id = str(uuid.uuid4())
        headers = dict(kwargs.pop("headers", None) or {})
        headers["X-Request-ID"] = request_id

        logger.debug(f"Making request: {method} {url} [operation={operation} request_id={request_id}]")

        last_exception: Optional[Exception] = None
        response: Optional[httpx.Response] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.request(method, url, headers=headers, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self.retry_backoff_multiplier ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{self.max_retries + 1}): "
                        f"{operation} error={type(e).__name__}, retrying in {delay}s [request_id={request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(f"Network error (max retries exceeded): {operation} error={e} [request_id={request_id}]")
                raise RemoteTransportError(str(e), operation, object_id) from e
            except httpx.HTTPError as e:
                raise RemoteTransportError(str(e), operation, object_id) from e

            logger.debug(f"Response received: {operation} status={response.status_code} [request_id={request_id}]")

            if response.status_code >= 500 and attempt < self.max_retries:
                delay = self.retry_backoff_multiplier ** attempt
                logger.warning(
                    f"Server error (attempt {attempt + 1}/{self.max_retries + 1}): "
                    f"{operation} status={response.status_code}, retrying in {delay}s [request_id={request_id}]"
                )
                time.sleep(delay)
                continue
            break

        if response is None:
            raise RemoteTransportError(str(last_exception or "no response"), operation, object_id)

        self._raise_for_status(response, operation, object_id)
        return response

    def _raise_for_status(self, response: httpx.Response, operation: str, object_id: Optional[str]) -> None:
        """Map Drive error responses to store exceptions."""
        if response.status_code < 400:
            return

        message = self._format_error(response)
        if response.status_code == 404:
            raise NotFoundError(f"{operation}: {object_id or 'document'} not found ({message})")

        logger.warning(f"Drive error: {operation} status={response.status_code} message={message}")
        raise RemoteTransportError(message, operation, object_id, response.status_code)

    def _format_error(self, response: httpx.Response) -> str:
        """
        Extract the error message from a Drive error body.

        Args:
            response: HTTP response object

        Returns:
            Human-readable message
        """
        try:
            error = response.json().get("error", {})
            if isinstance(error, dict):
                return error.get("message") or f"HTTP {response.status_code}"
            return str(error)
        except (ValueError, AttributeError):
            return response.text or f"HTTP {response.status_code}"

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        """
        Create a folder.

        Returns:
            Id of the new folder
        """
        metadata: Dict[str, Any] = {"name": name, "mimeType": TypeTag.CONTAINER.value}
        if parent_id:
            metadata["parents"] = [parent_id]

        response = self._request_with_retry(
            "POST",
            f"{self.api_base_url}/files",
            "create_folder",
            params={"fields": "id"},
            json=metadata,
        )
        folder_id = response.json()["id"]
        logger.info(f"Created folder {name} [id={folder_id}]")
        return folder_id

    def create_document(
        self,
        parent_id: str,
        name: str,
        type_tag: TypeTag,
        content: bytes,
        content_type: str,
        properties: Optional[Mapping[str, str]] = None,
        strategy: UploadStrategy = UploadStrategy.DIRECT,
        progress: Optional[TransferProgress] = None,
    ) -> str:
        """
        Upload content as a new typed document.

        Args:
            parent_id: Folder receiving the document
            name: Document name
            type_tag: Remote type the content is converted to
            content: Media bytes
            content_type: MIME type of the media bytes
            properties: String properties attached to the document
            strategy: DIRECT (single request) or MULTIPART (resumable session)
            progress: Receives byte deltas as pieces are sent

        Returns:
            Id of the created document

        Raises:
            RemoteTransportError: If the upload fails
        """
        metadata: Dict[str, Any] = {
            "name": name,
            "mimeType": TypeTag(type_tag).value,
            "parents": [parent_id],
        }
        if properties:
            metadata["properties"] = dict(properties)

        if UploadStrategy(strategy) is UploadStrategy.MULTIPART:
            document_id = self._upload_resumable(metadata, content, content_type, progress)
        else:
            document_id = self._upload_direct(metadata, content, content_type, progress)

        logger.debug(f"Created document {name} [id={document_id} bytes={len(content)} strategy={strategy}]")
        return document_id

    def _upload_direct(
        self,
        metadata: Dict[str, Any],
        content: bytes,
        content_type: str,
        progress: Optional[TransferProgress],
    ) -> str:
        boundary = uuid.uuid4().hex
        body = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            f"Content-Type: {content_type}\r\n\r\n"
        ).encode("utf-8") + content + f"\r\n--{boundary}--".encode("utf-8")

        response = self._request_with_retry(
            "POST",
            f"{self.upload_base_url}/files",
            "create_document",
            params={"uploadType": "multipart", "fields": "id"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            content=body,
        )
        if progress is not None:
            progress.add(len(content))
        return response.json()["id"]

    def _upload_resumable(
        self,
        metadata: Dict[str, Any],
        content: bytes,
        content_type: str,
        progress: Optional[TransferProgress],
    ) -> str:
        total = len(content)
        start = self._request_with_retry(
            "POST",
            f"{self.upload_base_url}/files",
            "create_document",
            params={"uploadType": "resumable", "fields": "id"},
            headers={
                "X-Upload-Content-Type": content_type,
                "X-Upload-Content-Length": str(total),
            },
            json=metadata,
        )
        session_uri = start.headers.get("Location")
        if not session_uri:
            raise RemoteTransportError("no resumable session URI returned", "create_document")

        if total == 0:
            response = self._request_with_retry(
                "PUT", session_uri, "create_document",
                headers={"Content-Range": "bytes */0"},
                content=b"",
            )
            return response.json()["id"]

        response = None
        for offset in range(0, total, self.upload_chunk_size):
            piece = content[offset:offset + self.upload_chunk_size]
            end = offset + len(piece) - 1
            response = self._request_with_retry(
                "PUT", session_uri, "create_document",
                headers={"Content-Range": f"bytes {offset}-{end}/{total}"},
                content=piece,
            )
            if progress is not None:
                progress.add(len(piece))

        if response is None or response.status_code == 308:
            raise RemoteTransportError("resumable upload did not complete", "create_document")
        return response.json()["id"]

    def get_document(self, document_id: str) -> RemoteDocument:
        """
        Fetch document metadata.

        Raises:
            NotFoundError: If the document does not exist
        """
        response = self._request_with_retry(
            "GET",
            f"{self.api_base_url}/files/{document_id}",
            "get_document",
            document_id,
            params={"fields": DRIVE_FILE_FIELDS},
        )
        return RemoteDocument.model_validate(response.json())

    def export_document_body(
        self,
        document_id: str,
        content_type: str,
        progress: Optional[TransferProgress] = None,
    ) -> bytes:
        """
        Export a converted document back to media bytes.

        Args:
            document_id: Remote id
            content_type: Export MIME type (e.g. text/tab-separated-values)
            progress: Receives the exported byte count

        Returns:
            Exported bytes
        """
        response = self._request_with_retry(
            "GET",
            f"{self.api_base_url}/files/{document_id}/export",
            "export_document_body",
            document_id,
            params={"mimeType": content_type},
        )
        body = response.content
        if progress is not None:
            progress.add(len(body))
        return body

    def download_document_media(self, document_id: str) -> bytes:
        """Download the raw media of a non-converted document."""
        response = self._request_with_retry(
            "GET",
            f"{self.api_base_url}/files/{document_id}",
            "download_document_media",
            document_id,
            params={"alt": "media"},
        )
        return response.content

    def list_documents(
        self,
        parent_id: Optional[str] = None,
        type_tags: Iterable[TypeTag] = (),
        query: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        limit: int = -1,
    ) -> Iterator[RemoteDocument]:
        """
        Lazily list documents, fetching pages on demand.

        Every call starts a fresh pagination, so the result can be iterated
        again to re-run the listing.

        Args:
            parent_id: Restrict to direct children of this folder
            type_tags: Accepted type tags (OR); empty accepts any type
            query: Extra predicate combined with AND
            page_size: Records requested per page
            limit: Maximum matching records to yield (-1 for unbounded)

        Yields:
            RemoteDocument records whose type tag was re-checked client-side
        """
        type_tags = tuple(TypeTag(tag) for tag in type_tags)
        return self._iter_documents(
            build_query(type_tags, query, parent_id),
            {tag.value for tag in type_tags},
            page_size,
            limit,
        )

    def _iter_documents(
        self,
        q: Optional[str],
        accepted_mimes: set,
        page_size: int,
        limit: int,
    ) -> Iterator[RemoteDocument]:
        remaining = limit
        if remaining == 0:
            return

        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"pageSize": page_size, "fields": DRIVE_LIST_FIELDS}
            if q:
                params["q"] = q
            if page_token:
                params["pageToken"] = page_token

            response = self._request_with_retry(
                "GET", f"{self.api_base_url}/files", "list_documents", params=params
            )
            page = FileList.model_validate(response.json())
            if not page.files:
                return

            for document in page.files:
                if accepted_mimes and document.mime_type not in accepted_mimes:
                    continue
                yield document
                if remaining > 0:
                    remaining -= 1
                    if remaining == 0:
                        return

            page_token = page.next_page_token
            if not page_token:
                return

    def delete_document(self, document_id: str) -> None:
        """
        Permanently delete a document.

        Raises:
            NotFoundError: If the document does not exist
        """
        self._request_with_retry(
            "DELETE",
            f"{self.api_base_url}/files/{document_id}",
            "delete_document",
            document_id,
        )
        logger.debug(f"Deleted document {document_id}")

    def clone_document(
        self,
        document_id: str,
        new_parent_id: str,
        name: Optional[str] = None,
        properties: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Server-side copy of a document into a folder.

        Returns:
            Id of the copy
        """
        metadata: Dict[str, Any] = {"parents": [new_parent_id]}
        if name is not None:
            metadata["name"] = name
        if properties:
            metadata["properties"] = dict(properties)

        response = self._request_with_retry(
            "POST",
            f"{self.api_base_url}/files/{document_id}/copy",
            "clone_document",
            document_id,
            params={"fields": "id"},
            json=metadata,
        )
        return response.json()["id"]

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
