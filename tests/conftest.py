"""Shared pytest fixtures for all tests."""

import itertools
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

import pytest

from cli.config import Config
from common.exceptions import NotFoundError, RemoteTransportError
from common.types import ContainerHandle, TypeTag, UploadStrategy
from drive.models import RemoteDocument
from store.object_store import ObjectStore
from store.progress import TransferProgress


class FakeCatalog:
    """
    In-memory catalog client.

    Filters listings by parent and type only; callers re-check every other
    predicate client-side, so query strings are ignored here.
    """

    def __init__(self):
        self.documents: Dict[str, RemoteDocument] = {}
        self.bodies: Dict[str, bytes] = {}
        self.calls: List[tuple] = []
        self.fail_delete: set = set()
        self.fail_export: set = set()
        self.fail_create: set = set()
        self.fail_clone: set = set()
        self._ids = itertools.count(1)
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def _record(self, operation: str, target: Optional[str]) -> None:
        with self._lock:
            self.calls.append((operation, target))

    def calls_of(self, operation: str) -> List[Optional[str]]:
        return [target for op, target in self.calls if op == operation]

    def _store(
        self,
        name: str,
        type_tag: TypeTag,
        parent_id: Optional[str],
        properties: Optional[Mapping[str, str]],
        body: bytes = b"",
    ) -> str:
        with self._lock:
            document_id = f"doc{next(self._ids):05d}"
            self._clock += timedelta(minutes=1)
            self.documents[document_id] = RemoteDocument(
                id=document_id,
                name=name,
                mime_type=TypeTag(type_tag).value,
                parents=[parent_id] if parent_id else [],
                properties=dict(properties or {}),
                modified_time=self._clock,
            )
            self.bodies[document_id] = bytes(body)
        return document_id

    def add_external(self, name: str, type_tag: TypeTag, content: bytes, parent_id: Optional[str] = None) -> str:
        """Place a document that was not written by the store."""
        return self._store(name, type_tag, parent_id, None, content)

    def chunk_documents(self) -> List[RemoteDocument]:
        return [doc for doc in self.documents.values() if doc.type_tag is TypeTag.CHUNK]

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        self._record("create_folder", name)
        return self._store(name, TypeTag.CONTAINER, parent_id, None)

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
        self._record("create_document", name)
        if name in self.fail_create:
            raise RemoteTransportError("quota exceeded", "create_document", status_code=403)
        document_id = self._store(name, type_tag, parent_id, properties, content)
        if progress is not None:
            progress.add(len(content))
        return document_id

    def get_document(self, document_id: str) -> RemoteDocument:
        self._record("get_document", document_id)
        try:
            return self.documents[document_id]
        except KeyError:
            raise NotFoundError(f"get_document: {document_id} not found")

    def export_document_body(
        self,
        document_id: str,
        content_type: str,
        progress: Optional[TransferProgress] = None,
    ) -> bytes:
        self._record("export_document_body", document_id)
        if document_id in self.fail_export:
            raise RemoteTransportError("backend error", "export_document_body", document_id, 500)
        if document_id not in self.bodies:
            raise NotFoundError(f"export_document_body: {document_id} not found")
        body = self.bodies[document_id]
        if progress is not None:
            progress.add(len(body))
        return body

    def download_document_media(self, document_id: str) -> bytes:
        self._record("download_document_media", document_id)
        if document_id not in self.bodies:
            raise NotFoundError(f"download_document_media: {document_id} not found")
        return self.bodies[document_id]

    def list_documents(
        self,
        parent_id: Optional[str] = None,
        type_tags: Iterable[TypeTag] = (),
        query: Optional[str] = None,
        page_size: int = 50,
        limit: int = -1,
    ) -> Iterator[RemoteDocument]:
        self._record("list_documents", query)
        accepted = {TypeTag(tag) for tag in type_tags}
        with self._lock:
            snapshot = list(self.documents.values())
        matches = [
            doc for doc in snapshot
            if (parent_id is None or parent_id in doc.parents)
            and (not accepted or doc.type_tag in accepted)
        ]
        if limit >= 0:
            matches = matches[:limit]
        return iter(matches)

    def delete_document(self, document_id: str) -> None:
        self._record("delete_document", document_id)
        if document_id in self.fail_delete:
            raise RemoteTransportError("permission denied", "delete_document", document_id, 403)
        with self._lock:
            if document_id not in self.documents:
                raise NotFoundError(f"delete_document: {document_id} not found")
            del self.documents[document_id]
            self.bodies.pop(document_id, None)

    def clone_document(
        self,
        document_id: str,
        new_parent_id: str,
        name: Optional[str] = None,
        properties: Optional[Mapping[str, str]] = None,
    ) -> str:
        self._record("clone_document", document_id)
        if document_id in self.fail_clone:
            raise RemoteTransportError("rate limit exceeded", "clone_document", document_id, 403)
        source = self.get_document(document_id)
        return self._store(
            name if name is not None else source.name,
            source.type_tag,
            new_parent_id,
            properties if properties is not None else source.properties,
            self.bodies[document_id],
        )


@pytest.fixture
def fake_catalog():
    """In-memory catalog client."""
    return FakeCatalog()


@pytest.fixture
def container(fake_catalog):
    """
    Container folder created in the fake catalog.

    Returns:
        ContainerHandle for the folder
    """
    folder_id = fake_catalog.create_folder("sheetstore")
    return ContainerHandle(id=folder_id, name="sheetstore")


@pytest.fixture
def store(fake_catalog, container):
    """
    ObjectStore with tiny chunks and cells so small payloads span several sheets.

    Yields:
        ObjectStore bound to the fake catalog
    """
    with ObjectStore(fake_catalog, container, max_workers=3, default_chunk_size=16, cell_width=8) as object_store:
        yield object_store


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .sheetstore directory
    """
    config_dir = tmp_path / '.sheetstore'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def multiple_sample_files(tmp_path):
    """
    Create multiple sample files for testing bulk operations.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        List of Paths to sample files
    """
    files = []
    for i in range(3):
        file_path = tmp_path / f'test{i}.txt'
        file_path.write_text(f'Sample content {i}')
        files.append(file_path)
    return files
