"""Object store: files kept as chunked, text-encoded sheets in one Drive folder."""

from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import BinaryIO, Callable, Deque, Dict, Iterable, Iterator, List, Optional, Tuple, TypeVar, Union

from common.constants import (
    DEFAULT_BASE_PATH,
    DEFAULT_CONTAINER_NAME,
    DEFAULT_MAX_WORKERS,
    DEFAULT_SHEET_SIZE_BYTES,
    DOCX_CONTENT_TYPE,
    PROP_CHUNK_SIZE,
    PROP_COMPRESSION,
    PROP_INDEX,
    PROP_PATH,
    PROP_PRIMARY,
    PROP_SHEETS,
    PROP_SIZE,
    PROP_STARRED,
    SHEET_CELL_WIDTH,
    TSV_CONTENT_TYPE,
)
from common.exceptions import (
    CodecError,
    IncompleteObjectError,
    InvalidConfigurationError,
    NotFoundError,
    ObjectNotFoundError,
    PartialCloneError,
    PartialDeleteError,
    SheetStoreError,
    SourceSizeMismatchError,
)
from common.logging_config import get_logger
from common.types import (
    BatchResult,
    ChunkDescriptor,
    CompressionPolicy,
    ContainerHandle,
    StoredObject,
    TypeTag,
    UploadStrategy,
)
from drive import query as q
from drive.client import CatalogClient
from drive.models import RemoteDocument
from store import chunking, codec
from store.name_resolver import NameResolver, is_remote_id
from store.progress import TransferProgress

logger = get_logger(__name__)

T = TypeVar("T")


def ensure_container(catalog: CatalogClient, name: str = DEFAULT_CONTAINER_NAME) -> ContainerHandle:
    """
    Find the container folder by name, creating it if absent.

    Args:
        catalog: Remote catalog client
        name: Folder name

    Returns:
        Immutable handle to the container
    """
    logger.info(f"Finding {name} folder...")
    matches = catalog.list_documents(
        type_tags=(TypeTag.CONTAINER,),
        query=q.all_of(q.name_equals(name), q.not_trashed()),
    )
    for folder in matches:
        if folder.name == name:
            logger.info(f"{name} id: {folder.id}")
            return ContainerHandle(id=folder.id, name=name)

    folder_id = catalog.create_folder(name)
    logger.info(f"Created {name} folder [id={folder_id}]")
    return ContainerHandle(id=folder_id, name=name)


def _within_declared_size(name: str, chunks: Iterator[bytes], size: int) -> Iterator[bytes]:
    """
    Pass chunks through while checking the bytes read against the declared size.

    Raises:
        SourceSizeMismatchError: As soon as the source overruns the declared
            size, or once it ends short of it
    """
    read = 0
    for data in chunks:
        read += len(data)
        if read > size:
            raise SourceSizeMismatchError(f"Source for {name} is larger than the declared {size} bytes")
        yield data
    if read != size:
        raise SourceSizeMismatchError(f"Source for {name} ended after {read} of the declared {size} bytes")


def _check_compression(compression) -> CompressionPolicy:
    try:
        return CompressionPolicy(compression)
    except ValueError as e:
        raise InvalidConfigurationError(f"Unknown compression policy: {compression!r}") from e


class ObjectStore:
    """
    Uploads, downloads, deletes and clones files stored as chunk sheets.

    Chunk 0 of every object carries the object name and its id identifies the
    object. Every chunk records its explicit index, the chunk count and the
    original size as document properties, so reassembly never depends on
    listing order.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        container: ContainerHandle,
        max_workers: int = DEFAULT_MAX_WORKERS,
        default_chunk_size: int = DEFAULT_SHEET_SIZE_BYTES,
        cell_width: int = SHEET_CELL_WIDTH,
    ):
        if max_workers <= 0:
            raise InvalidConfigurationError(f"max_workers must be positive, got {max_workers}")
        chunking.check_chunk_size(default_chunk_size)

        self.catalog = catalog
        self.container = container
        self.default_chunk_size = default_chunk_size
        self.cell_width = cell_width
        self.max_workers = max_workers
        self.resolver = NameResolver(catalog, container)
        self._chunk_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sheetstore-chunk")
        self._batch_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sheetstore-batch")

    @classmethod
    def open(
        cls,
        catalog: CatalogClient,
        container_name: str = DEFAULT_CONTAINER_NAME,
        **kwargs
    ) -> "ObjectStore":
        """Resolve (or create) the container once and build a store bound to it."""
        return cls(catalog, ensure_container(catalog, container_name), **kwargs)

    def close(self) -> None:
        self._chunk_pool.shutdown(wait=True)
        self._batch_pool.shutdown(wait=True)

    def __enter__(self) -> "ObjectStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def upload(
        self,
        name: str,
        source: Union[bytes, bytearray, BinaryIO],
        size: Optional[int] = None,
        base_path: str = DEFAULT_BASE_PATH,
        max_chunk_bytes: Optional[int] = None,
        compression: CompressionPolicy = CompressionPolicy.NONE,
        strategy: UploadStrategy = UploadStrategy.DIRECT,
        progress: Optional[TransferProgress] = None,
    ) -> StoredObject:
        """
        Store a file as one or more chunk sheets.

        Chunk 0 is created first so its id can be recorded on the other
        chunks, which are then uploaded in parallel. A failure aborts the
        upload and leaves already-created chunks in place; their ids are
        logged.

        Args:
            name: Object name
            source: Bytes or a readable binary stream
            size: Byte length of a stream source (read fully when omitted)
            base_path: Free-form path tag stored with the object
            max_chunk_bytes: Chunk capacity before encoding
            compression: Compression applied to each chunk
            strategy: Transfer mechanics for each chunk
            progress: Receives uploaded byte deltas

        Returns:
            Descriptor of the stored object

        Raises:
            InvalidConfigurationError: On bad chunk size or compression
            SourceSizeMismatchError: If a stream yields more or fewer bytes than size
            RemoteTransportError: If a chunk upload fails
        """
        if max_chunk_bytes is None:
            max_chunk_bytes = self.default_chunk_size
        chunking.check_chunk_size(max_chunk_bytes)
        compression = _check_compression(compression)
        strategy = UploadStrategy(strategy)

        if isinstance(source, (bytes, bytearray, memoryview)):
            size = len(source)
        elif size is None:
            source = source.read()
            size = len(source)

        expected = chunking.chunk_count(size, max_chunk_bytes)
        base_properties = {
            PROP_SHEETS: str(expected),
            PROP_SIZE: str(size),
            PROP_CHUNK_SIZE: str(max_chunk_bytes),
            PROP_COMPRESSION: compression.value,
            PROP_PATH: base_path,
            PROP_STARRED: "false",
        }
        logger.info(
            f"Uploading {name} [size={size} sheets={expected} compression={compression.value} "
            f"strategy={strategy.value}]"
        )

        chunks = _within_declared_size(name, chunking.split(source, max_chunk_bytes), size)
        primary_id = self._create_chunk(
            name, next(chunks), {**base_properties, PROP_INDEX: "0"}, compression, strategy, progress
        )
        created: List[str] = [primary_id]

        pending: Deque[Future] = deque()
        try:
            for index, data in enumerate(chunks, start=1):
                properties = {**base_properties, PROP_INDEX: str(index), PROP_PRIMARY: primary_id}
                pending.append(self._chunk_pool.submit(
                    self._create_chunk, f"{name}.part{index}", data, properties, compression, strategy, progress
                ))
                # Bound buffered chunk data to a couple of pool rounds
                if len(pending) >= self.max_workers * 2:
                    created.append(pending.popleft().result())
            while pending:
                created.append(pending.popleft().result())
        except SheetStoreError:
            for future in pending:
                future.cancel()
            for future in pending:
                if not future.cancelled() and future.exception() is None:
                    created.append(future.result())
            logger.error(f"Upload of {name} failed, leaving {len(created)} orphaned chunk(s): {created}")
            raise

        logger.info(f"Uploaded {name} [id={primary_id} sheets={expected}]")
        return StoredObject(
            id=primary_id,
            name=name,
            size=size,
            chunk_count=expected,
            compression=compression,
            chunk_size=max_chunk_bytes,
            path=base_path,
            starred=False,
        )

    def _create_chunk(
        self,
        name: str,
        data: bytes,
        properties: Dict[str, str],
        compression: CompressionPolicy,
        strategy: UploadStrategy,
        progress: Optional[TransferProgress],
    ) -> str:
        body = codec.to_sheet_body(codec.encode(data, compression), self.cell_width)
        return self.catalog.create_document(
            self.container.id,
            name,
            TypeTag.CHUNK,
            body,
            TSV_CONTENT_TYPE,
            properties=properties,
            strategy=strategy,
            progress=progress,
        )

    def _resolve_document(self, id_or_name: str, require_sheet_type: bool = True) -> RemoteDocument:
        """
        Resolve a token to a document, falling back to a name lookup when an
        id-like token is not a known id.
        """
        document_id = self.resolver.resolve(id_or_name, require_sheet_type)
        if document_id is None:
            raise ObjectNotFoundError(f"No stored object matches {id_or_name!r}")
        try:
            return self.catalog.get_document(document_id)
        except NotFoundError as e:
            fallback = self.resolver.get_id_of_name(id_or_name, require_sheet_type) if is_remote_id(id_or_name) else None
            if fallback is None:
                raise ObjectNotFoundError(f"No stored object matches {id_or_name!r}") from e
            return self.catalog.get_document(fallback)

    def _resolve_primary(self, id_or_name: str) -> RemoteDocument:
        document = self._resolve_document(id_or_name)
        if document.is_primary:
            return document
        if document.is_managed and document.primary_id:
            try:
                return self.catalog.get_document(document.primary_id)
            except NotFoundError as e:
                raise ObjectNotFoundError(
                    f"Primary chunk {document.primary_id} of {id_or_name!r} is gone"
                ) from e
        raise ObjectNotFoundError(f"{id_or_name!r} is not a stored object")

    def _list_chunks(self, primary: RemoteDocument) -> List[ChunkDescriptor]:
        """All chunk documents of an object, sorted by index, without completeness checks."""
        descriptors = [ChunkDescriptor(id=primary.id, index=0, name=primary.name)]
        if primary.chunk_count <= 1:
            return descriptors

        documents = self.catalog.list_documents(
            parent_id=self.container.id,
            type_tags=(TypeTag.CHUNK,),
            query=q.all_of(q.has_property(PROP_PRIMARY, primary.id), q.not_trashed()),
        )
        for document in documents:
            if document.primary_id == primary.id and document.chunk_index is not None:
                descriptors.append(ChunkDescriptor(id=document.id, index=document.chunk_index, name=document.name))
        descriptors.sort(key=lambda d: d.index)
        return descriptors

    def _complete_chunks(self, primary: RemoteDocument) -> List[ChunkDescriptor]:
        descriptors = self._list_chunks(primary)
        indexes = [d.index for d in descriptors]
        expected = max(primary.chunk_count, 1)
        if indexes != list(range(expected)):
            raise IncompleteObjectError(
                f"Object {primary.name} [id={primary.id}] expects {expected} chunks, found indexes {indexes}"
            )
        return descriptors

    def _fetch_chunk(self, descriptor: ChunkDescriptor, progress: Optional[TransferProgress]) -> Tuple[int, bytes]:
        body = self.catalog.export_document_body(descriptor.id, TSV_CONTENT_TYPE, progress=progress)
        return descriptor.index, codec.decode(codec.from_sheet_body(body))

    def download(self, id_or_name: str, progress: Optional[TransferProgress] = None) -> bytes:
        """
        Download and reassemble a stored object.

        Args:
            id_or_name: Object id or name fragment
            progress: Receives exported byte deltas

        Returns:
            Original bytes

        Raises:
            ObjectNotFoundError: If nothing resolves
            IncompleteObjectError: If a chunk is missing or cannot be exported
            CodecError: If a chunk body is corrupt
        """
        primary = self._resolve_primary(id_or_name)
        descriptors = self._complete_chunks(primary)
        logger.info(f"Downloading {primary.name} [id={primary.id} sheets={len(descriptors)}]")

        futures = [self._chunk_pool.submit(self._fetch_chunk, d, progress) for d in descriptors]
        parts = []
        failure: Optional[Tuple[ChunkDescriptor, SheetStoreError]] = None
        for descriptor, future in zip(descriptors, futures):
            try:
                parts.append(future.result())
            except SheetStoreError as e:
                failure = failure or (descriptor, e)

        if failure is not None:
            descriptor, error = failure
            if isinstance(error, CodecError):
                raise error
            raise IncompleteObjectError(
                f"Chunk {descriptor.index} of {primary.name} [id={descriptor.id}] could not be exported: {error}"
            ) from error

        data = chunking.join_sorted(parts, len(descriptors))
        if primary.original_size and len(data) != primary.original_size:
            raise IncompleteObjectError(
                f"Reassembled {len(data)} bytes for {primary.name}, expected {primary.original_size}"
            )
        return data

    def download_to(self, id_or_name: str, directory: Union[str, Path] = ".") -> Path:
        """
        Download an object into a directory under its stored name.

        Returns:
            Path of the written file
        """
        primary = self._resolve_primary(id_or_name)
        data = self.download(primary.id)
        target = Path(directory) / Path(primary.name).name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info(f"Saved {primary.name} to {target}")
        return target

    def delete(self, id_or_name: str, cascade: bool = True) -> None:
        """
        Delete a stored object.

        Every chunk deletion is attempted even when some fail. No retry.

        Args:
            id_or_name: Object id or name fragment
            cascade: Remove every chunk (True) or only the primary document

        Raises:
            ObjectNotFoundError: If nothing resolves
            PartialDeleteError: If some chunks survived, with their ids
        """
        primary = self._resolve_primary(id_or_name)
        descriptors = self._list_chunks(primary) if cascade else [ChunkDescriptor(primary.id, 0, primary.name)]

        # Secondary chunks first; chunk 0 keeps the object listable meanwhile
        secondary = [d for d in descriptors if d.index != 0]
        outcomes = list(self._chunk_pool.map(self._try_delete, secondary))
        outcomes.append(self._try_delete(descriptors[0]))

        surviving = [descriptor.id for descriptor, ok in zip(secondary + [descriptors[0]], outcomes) if not ok]
        if surviving:
            raise PartialDeleteError(
                f"Deleted {len(descriptors) - len(surviving)} of {len(descriptors)} chunks of {primary.name}",
                surviving,
            )
        logger.info(f"Deleted {primary.name} [id={primary.id} sheets={len(descriptors)}]")

    def _try_delete(self, descriptor: ChunkDescriptor) -> bool:
        try:
            self.catalog.delete_document(descriptor.id)
            return True
        except NotFoundError:
            logger.debug(f"Chunk {descriptor.id} already gone")
            return True
        except SheetStoreError as e:
            logger.error(f"Failed to delete chunk {descriptor.index} [id={descriptor.id}]: {e}")
            return False

    def clone(
        self,
        id_or_name: str,
        max_chunk_bytes: Optional[int] = None,
        compression: CompressionPolicy = CompressionPolicy.NONE,
        strategy: UploadStrategy = UploadStrategy.DIRECT,
    ) -> StoredObject:
        """
        Duplicate a stored object or import an external document.

        Stored objects whose chunk size and compression already match are
        copied server-side chunk by chunk. Anything else is downloaded and
        uploaded again with the requested policy.

        Raises:
            NameResolutionError: If the name matches nothing
            ObjectNotFoundError: If the id does not exist
            IncompleteObjectError: If the source object is missing chunks
            PartialCloneError: If a server-side chunk copy fails, with the ids left behind
        """
        if max_chunk_bytes is None:
            max_chunk_bytes = self.default_chunk_size
        chunking.check_chunk_size(max_chunk_bytes)
        compression = _check_compression(compression)

        source_id = self.resolver.resolve(id_or_name) or self.resolver.require(id_or_name, require_sheet_type=False)
        try:
            source = self.catalog.get_document(source_id)
        except NotFoundError as e:
            fallback = None
            if is_remote_id(id_or_name):
                fallback = self.resolver.get_id_of_name(id_or_name) or self.resolver.get_id_of_name(
                    id_or_name, require_sheet_type=False
                )
            if fallback is None:
                raise ObjectNotFoundError(f"No document with id {source_id}") from e
            source = self.catalog.get_document(fallback)

        if source.is_managed:
            primary = source if source.is_primary else self._resolve_primary(source.id)
            if primary.chunk_size == max_chunk_bytes and primary.compression is compression:
                return self._clone_server_side(primary)
            logger.info(f"Re-encoding {primary.name} for clone [compression={compression.value}]")
            data = self.download(primary.id)
            return self.upload(
                primary.name, data, base_path=primary.path or DEFAULT_BASE_PATH,
                max_chunk_bytes=max_chunk_bytes, compression=compression, strategy=strategy,
            )

        name = source.name
        if source.type_tag is TypeTag.DOCUMENT:
            data = self.catalog.export_document_body(source.id, DOCX_CONTENT_TYPE)
            name = f"{name}.docx"
        else:
            data = self.catalog.download_document_media(source.id)
        logger.info(f"Importing external document {source.name} [id={source.id} bytes={len(data)}]")
        return self.upload(name, data, max_chunk_bytes=max_chunk_bytes, compression=compression, strategy=strategy)

    def _clone_server_side(self, primary: RemoteDocument) -> StoredObject:
        descriptors = self._complete_chunks(primary)
        base = {k: v for k, v in primary.properties.items() if k != PROP_PRIMARY}

        new_primary = self.catalog.clone_document(
            primary.id, self.container.id, name=primary.name, properties={**base, PROP_INDEX: "0"}
        )
        copies = [
            (d, self._chunk_pool.submit(
                self.catalog.clone_document,
                d.id,
                self.container.id,
                d.name,
                {**base, PROP_INDEX: str(d.index), PROP_PRIMARY: new_primary},
            ))
            for d in descriptors[1:]
        ]
        created: List[str] = [new_primary]
        failure: Optional[Tuple[ChunkDescriptor, SheetStoreError]] = None
        for descriptor, future in copies:
            try:
                created.append(future.result())
            except SheetStoreError as e:
                failure = failure or (descriptor, e)

        if failure is not None:
            descriptor, error = failure
            logger.error(f"Clone of {primary.name} failed, leaving {len(created)} orphaned document(s): {created}")
            raise PartialCloneError(
                f"Copy of chunk {descriptor.index} of {primary.name} [id={descriptor.id}] failed: {error}",
                created,
            ) from error

        logger.info(f"Cloned {primary.name} server-side [id={primary.id} -> {new_primary}]")
        return replace(primary.to_stored_object(), id=new_primary, modified_time=None)

    def list_uploads(self) -> List[StoredObject]:
        """
        List every stored object in the container.

        Returns:
            One descriptor per object, in server listing order
        """
        documents = self.catalog.list_documents(
            parent_id=self.container.id,
            type_tags=(TypeTag.CHUNK,),
            query=q.all_of(q.has_property(PROP_INDEX, "0"), q.not_trashed()),
        )
        return [doc.to_stored_object() for doc in documents if doc.is_primary]

    def get_id_of_name(self, name: str, require_sheet_type: bool = True) -> Optional[str]:
        return self.resolver.get_id_of_name(name, require_sheet_type)

    def _run_batch(self, label: str, operation: Callable[[str], T], targets: Iterable[str]) -> List[BatchResult[T]]:
        targets = list(targets)
        futures = [self._batch_pool.submit(operation, target) for target in targets]
        results: List[BatchResult[T]] = []
        for target, future in zip(targets, futures):
            try:
                results.append(BatchResult(target=target, value=future.result()))
            except (SheetStoreError, OSError, ValueError) as e:
                logger.error(f"{label} failed for {target}: {e}")
                results.append(BatchResult(target=target, error=e))
        return results

    def download_many(self, targets: Iterable[str]) -> List[BatchResult[bytes]]:
        """
        Download several objects concurrently.

        Returns:
            One result per target, in input order; failures do not stop the batch
        """
        return self._run_batch("download", self.download, targets)

    def download_to_many(self, targets: Iterable[str], directory: Union[str, Path] = ".") -> List[BatchResult[Path]]:
        """Concurrent download_to() of several objects into one directory."""
        return self._run_batch("download", lambda target: self.download_to(target, directory), targets)

    def delete_many(self, targets: Iterable[str]) -> List[BatchResult[None]]:
        """
        Delete several objects concurrently.

        Returns:
            One result per target, in input order; failures do not stop the batch
        """
        return self._run_batch("delete", self.delete, targets)
