"""Command handler functions for CLI operations."""

import os
import time
from pathlib import Path
from typing import Optional

from cli.config import Config
from cli.models import (
    CloneCommand,
    DeleteCommand,
    DownloadCommand,
    ListCommand,
    LoginCommand,
    UploadCommand,
)
from cli.utils import ProgressPrinter, format_file_size, format_uploads
from common.exceptions import PartialCloneError, PartialDeleteError, SheetStoreError
from common.logging_config import get_logger
from drive.client import DriveCatalogClient, build_session
from store.object_store import ObjectStore
from store.progress import TransferProgress

logger = get_logger(__name__)


_config: Optional[Config] = None
_store: Optional[ObjectStore] = None


def get_config() -> Config:
    """Get or create the global Config instance."""
    global _config
    if _config is None:
        _config = Config(Path.home() / '.sheetstore' / 'config.json')
    return _config


def get_store() -> ObjectStore:
    """
    Get or create global ObjectStore instance.

    Returns:
        ObjectStore bound to the configured container

    Raises:
        ValueError: If no access token is configured
    """
    global _store
    if _store is None:
        config = get_config()
        token = config.get_access_token()
        if not token:
            raise ValueError(
                "No access token configured. Set SHEETSTORE_ACCESS_TOKEN or access_token in "
                f"{config.config_path}"
            )
        logger.debug("Creating new ObjectStore instance")
        retry = config.get_retry_config()
        catalog = DriveCatalogClient(
            build_session(token, timeout=config.get_timeout()),
            api_base_url=config.get_api_base_url(),
            upload_base_url=config.get_upload_base_url(),
            max_retries=retry['max_retries'],
            retry_backoff_multiplier=retry['retry_backoff_multiplier'],
        )
        _store = ObjectStore.open(
            catalog,
            config.get_container_name(),
            max_workers=config.get_max_workers(),
            default_chunk_size=config.get_sheet_size(),
        )
    return _store


def handle_login(cmd: LoginCommand, config: Optional[Config] = None) -> str:
    """
    Handle 'login' command.

    Saves the access token and drops the cached store so the next command
    connects with the new token.

    Args:
        cmd: LoginCommand with access_token
        config: Optional Config for dependency injection (testing)

    Returns:
        Result message
    """
    global _store
    logger.info("Executing login command")
    if config is None:
        config = get_config()
    config.set_access_token(cmd.access_token)

    if _store is not None:
        _store.catalog.close()
        _store.close()
        _store = None

    message = f"Login successful!\nAccess token saved to {config.config_path}."
    if os.environ.get('SHEETSTORE_ACCESS_TOKEN'):
        message += "\nNote: SHEETSTORE_ACCESS_TOKEN is set and takes precedence over the saved token."
    return message


def handle_list(cmd: ListCommand, store: Optional[ObjectStore] = None) -> str:
    """
    Handle 'list' command.

    Args:
        cmd: ListCommand
        store: Optional ObjectStore for dependency injection (testing)

    Returns:
        Formatted list of stored files
    """
    logger.info("Executing list command")
    try:
        if store is None:
            store = get_store()
        return format_uploads(store.list_uploads())
    except (ValueError, SheetStoreError) as e:
        return f"Error: {e}"


def handle_upload(cmd: UploadCommand, store: Optional[ObjectStore] = None) -> str:
    """
    Handle 'upload' command.

    Files are uploaded one after another; a failing file does not stop the rest.

    Args:
        cmd: UploadCommand with file_list and upload options
        store: Optional ObjectStore for dependency injection (testing)

    Returns:
        Result line per file
    """
    logger.info(f"Executing upload command: {len(cmd.file_list)} files")
    try:
        if store is None:
            store = get_store()
    except (ValueError, SheetStoreError) as e:
        return f"Error: {e}"

    results = []
    start = time.monotonic()
    for file_path in cmd.file_list:
        if not os.path.isfile(file_path):
            results.append(f"Error: File not found: {file_path}")
            continue

        name = os.path.basename(file_path)
        size = os.path.getsize(file_path)
        progress = TransferProgress(name)
        printer = ProgressPrinter("Uploading")
        progress.subscribe(printer)

        try:
            with open(file_path, 'rb') as f:
                stored = store.upload(
                    name,
                    f,
                    size=size,
                    base_path=cmd.base_path,
                    max_chunk_bytes=cmd.sheet_size,
                    compression=cmd.compression,
                    strategy=cmd.strategy,
                    progress=progress,
                )
            printer.finish()
            results.append(
                f"Uploaded: {stored.name} (ID: {stored.id}, "
                f"Size: {format_file_size(stored.size)}, Sheets: {stored.chunk_count})"
            )
        except (OSError, SheetStoreError) as e:
            printer.finish()
            logger.error(f"Error reading and uploading file {file_path}: {e}")
            results.append(f"Error uploading {file_path}: {e}")

    elapsed_ms = int((time.monotonic() - start) * 1000)
    count = len(cmd.file_list)
    results.append(f"Finished the uploading of {count} file{'' if count == 1 else 's'} in {elapsed_ms}ms")
    return '\n'.join(results)


def handle_download(cmd: DownloadCommand, store: Optional[ObjectStore] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with targets and optional output_dir
        store: Optional ObjectStore for dependency injection (testing)

    Returns:
        Result line per target
    """
    logger.info(f"Executing download command: targets={list(cmd.targets)}")
    try:
        if store is None:
            store = get_store()
        output_dir = Path(cmd.output_dir) if cmd.output_dir else get_config().get_download_dir()
    except (ValueError, SheetStoreError) as e:
        return f"Error: {e}"

    results = []
    for result in store.download_to_many(cmd.targets, output_dir):
        if result.ok:
            results.append(f"Downloaded: {result.target} -> {result.value}")
        else:
            results.append(f"Error downloading {result.target}: {result.error}")
    return '\n'.join(results)


def handle_delete(cmd: DeleteCommand, store: Optional[ObjectStore] = None) -> str:
    """
    Handle 'delete' command.

    Args:
        cmd: DeleteCommand with targets
        store: Optional ObjectStore for dependency injection (testing)

    Returns:
        Result line per target
    """
    logger.info(f"Executing delete command: targets={list(cmd.targets)}")
    try:
        if store is None:
            store = get_store()
    except (ValueError, SheetStoreError) as e:
        return f"Error: {e}"

    results = []
    for result in store.delete_many(cmd.targets):
        if result.ok:
            results.append(f"Deleted: {result.target}")
        elif isinstance(result.error, PartialDeleteError):
            survivors = ', '.join(result.error.surviving_ids)
            results.append(f"Partially deleted {result.target}: {result.error}\nSurviving sheets: {survivors}")
        else:
            results.append(f"Error deleting {result.target}: {result.error}")
    return '\n'.join(results)


def handle_clone(cmd: CloneCommand, store: Optional[ObjectStore] = None) -> str:
    """
    Handle 'clone' command.

    Args:
        cmd: CloneCommand with targets and encoding options
        store: Optional ObjectStore for dependency injection (testing)

    Returns:
        Result line per target
    """
    logger.info(f"Executing clone command: targets={list(cmd.targets)}")
    try:
        if store is None:
            store = get_store()
    except (ValueError, SheetStoreError) as e:
        return f"Error: {e}"

    results = []
    for target in cmd.targets:
        try:
            stored = store.clone(target, max_chunk_bytes=cmd.sheet_size, compression=cmd.compression)
            results.append(f"Cloned: {target} -> {stored.name} (ID: {stored.id}, Sheets: {stored.chunk_count})")
        except PartialCloneError as e:
            logger.error(f"Clone of {target} left orphaned sheets: {e}")
            orphans = ', '.join(e.orphaned_ids)
            results.append(f"Partially cloned {target}: {e}\nOrphaned sheets: {orphans}")
        except SheetStoreError as e:
            logger.error(f"An error occurred while cloning {target}: {e}")
            results.append(f"Error cloning {target}: {e}")
    return '\n'.join(results)
