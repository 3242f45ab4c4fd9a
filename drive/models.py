"""Pydantic models for Drive file resources."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from common.constants import (
    PROP_CHUNK_SIZE,
    PROP_COMPRESSION,
    PROP_INDEX,
    PROP_PATH,
    PROP_PRIMARY,
    PROP_SHEETS,
    PROP_SIZE,
    PROP_STARRED,
)
from common.types import CompressionPolicy, StoredObject, TypeTag


def _as_int(value: Optional[str], default: int = 0) -> int:
    if value is None or not value.isdigit():
        return default
    return int(value)


class Owner(BaseModel):
    """Owner entry of a Drive file."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    display_name: str = Field(default="", alias="displayName")


class RemoteDocument(BaseModel):
    """Drive file resource as returned by files.get / files.list."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = ""
    mime_type: str = Field(default="", alias="mimeType")
    parents: List[str] = Field(default_factory=list)
    properties: Dict[str, str] = Field(default_factory=dict)
    owners: List[Owner] = Field(default_factory=list)
    modified_time: Optional[datetime] = Field(default=None, alias="modifiedTime")
    size: Optional[int] = None

    @property
    def type_tag(self) -> Optional[TypeTag]:
        return TypeTag.from_mime(self.mime_type)

    @property
    def chunk_index(self) -> Optional[int]:
        value = self.properties.get(PROP_INDEX)
        if value is None or not value.isdigit():
            return None
        return int(value)

    @property
    def primary_id(self) -> Optional[str]:
        return self.properties.get(PROP_PRIMARY)

    @property
    def is_managed(self) -> bool:
        """True for chunk documents written by this store."""
        return self.type_tag is TypeTag.CHUNK and self.chunk_index is not None

    @property
    def is_primary(self) -> bool:
        return self.is_managed and self.chunk_index == 0

    @property
    def chunk_count(self) -> int:
        return _as_int(self.properties.get(PROP_SHEETS))

    @property
    def original_size(self) -> int:
        return _as_int(self.properties.get(PROP_SIZE))

    @property
    def chunk_size(self) -> int:
        return _as_int(self.properties.get(PROP_CHUNK_SIZE))

    @property
    def path(self) -> str:
        return self.properties.get(PROP_PATH, "")

    @property
    def starred(self) -> bool:
        return self.properties.get(PROP_STARRED) == "true"

    @property
    def compression(self) -> CompressionPolicy:
        try:
            return CompressionPolicy(self.properties.get(PROP_COMPRESSION, "none"))
        except ValueError:
            return CompressionPolicy.NONE

    def to_stored_object(self) -> StoredObject:
        return StoredObject(
            id=self.id,
            name=self.name,
            size=self.original_size,
            chunk_count=self.chunk_count,
            compression=self.compression,
            chunk_size=self.chunk_size,
            owners=tuple(owner.display_name for owner in self.owners),
            modified_time=self.modified_time,
            path=self.path,
            starred=self.starred,
        )


class FileList(BaseModel):
    """One page of files.list results."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    files: Optional[List[RemoteDocument]] = None
    next_page_token: Optional[str] = Field(default=None, alias="nextPageToken")
