"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional

from common.types import CompressionPolicy, UploadStrategy


@dataclass(frozen=True)
class LoginCommand:
    """Store a Drive access token in the config file."""

    access_token: str
    command: Literal["login"] = "login"


@dataclass(frozen=True)
class ListCommand:
    """List stored objects."""

    command: Literal["list"] = "list"


@dataclass(frozen=True)
class UploadCommand:
    """Upload local files."""

    file_list: tuple[str, ...]
    compression: CompressionPolicy = CompressionPolicy.NONE
    sheet_size: Optional[int] = None
    base_path: str = "/"
    strategy: UploadStrategy = UploadStrategy.MULTIPART
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class DownloadCommand:
    """Download stored objects by id or name."""

    targets: tuple[str, ...]
    output_dir: Optional[str] = None
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class DeleteCommand:
    """Permanently remove stored objects by id or name."""

    targets: tuple[str, ...]
    command: Literal["delete"] = "delete"


@dataclass(frozen=True)
class CloneCommand:
    """Clone stored objects or external documents into the store."""

    targets: tuple[str, ...]
    compression: CompressionPolicy = CompressionPolicy.NONE
    sheet_size: Optional[int] = None
    command: Literal["clone"] = "clone"


CommandRequest = (
    LoginCommand
    | ListCommand
    | UploadCommand
    | DownloadCommand
    | DeleteCommand
    | CloneCommand
)
