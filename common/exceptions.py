"""Custom exception classes for the object store."""

from typing import Iterable, Optional, Tuple


class SheetStoreError(Exception):
    """
    Base exception class for all SheetStore errors.
    """
    pass


class CodecError(SheetStoreError):
    """
    Raised when an encoded payload is malformed, truncated or corrupt.
    """
    pass


class InvalidConfigurationError(SheetStoreError):
    """
    Raised when chunk size or compression settings are invalid.
    """
    pass


class NotFoundError(SheetStoreError):
    """
    Raised when a remote document does not exist.
    """
    pass


class ObjectNotFoundError(NotFoundError):
    """
    Raised when no chunk resolves for a given id or name.
    """
    pass


class IncompleteObjectError(SheetStoreError):
    """
    Raised when a chunk is missing or chunks cannot be ordered during reassembly.
    """
    pass


class PartialDeleteError(SheetStoreError):
    """
    Raised when a cascading delete left some chunks behind.
    """

    def __init__(self, message: str, surviving_ids: Iterable[str]):
        super().__init__(message)
        self.surviving_ids: Tuple[str, ...] = tuple(surviving_ids)


class PartialCloneError(SheetStoreError):
    """
    Raised when a server-side clone failed after creating some documents.
    """

    def __init__(self, message: str, orphaned_ids: Iterable[str]):
        super().__init__(message)
        self.orphaned_ids: Tuple[str, ...] = tuple(orphaned_ids)


class SourceSizeMismatchError(SheetStoreError):
    """
    Raised when an upload stream yields more or fewer bytes than declared.
    """
    pass


class RemoteTransportError(SheetStoreError):
    """
    Raised when the remote store fails or cannot be reached.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        object_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        detail = f"{operation} failed"
        if object_id:
            detail += f" for {object_id}"
        super().__init__(f"{detail}: {message}")
        self.operation = operation
        self.object_id = object_id
        self.status_code = status_code


class NameResolutionError(SheetStoreError):
    """
    Raised when a name matches no stored object where a match is required.
    """
    pass
