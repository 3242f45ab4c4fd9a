"""Shared data type definitions (StoredObject, ChunkDescriptor, enums)."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, Optional, Tuple, TypeVar

T = TypeVar("T")


class TypeTag(str, Enum):
    """
    Marker distinguishing the roles of remote documents.
    """
    CONTAINER = "application/vnd.google-apps.folder"
    CHUNK = "application/vnd.google-apps.spreadsheet"
    DOCUMENT = "application/vnd.google-apps.document"

    @classmethod
    def from_mime(cls, mime_type: Optional[str]) -> Optional["TypeTag"]:
        for tag in cls:
            if tag.value == mime_type:
                return tag
        return None


class CompressionPolicy(str, Enum):
    """Compression applied to a chunk before text encoding."""
    NONE = "none"
    ZIP = "zip"
    ZSTD = "zstd"


class UploadStrategy(str, Enum):
    """Transfer mechanics used for one chunk upload."""
    DIRECT = "direct"
    MULTIPART = "multipart"


@dataclass(frozen=True)
class ContainerHandle:
    """
    Resolved root folder holding every managed object.
    """
    id: str
    name: str


@dataclass(frozen=True)
class ChunkDescriptor:
    """
    One remote chunk document as seen in a listing.
    """
    id: str
    index: int
    name: str


@dataclass(frozen=True)
class StoredObject:
    """
    Logical uploaded file, backed by one or more chunk documents.
    """
    id: str
    name: str
    size: int
    chunk_count: int
    compression: CompressionPolicy = CompressionPolicy.NONE
    chunk_size: int = 0
    owners: Tuple[str, ...] = field(default_factory=tuple)
    modified_time: Optional[datetime] = None
    path: str = "/"
    starred: bool = False


@dataclass(frozen=True)
class BatchResult(Generic[T]):
    """
    Outcome of one item in a multi-target operation.
    """
    target: str
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
