"""Utility functions for CLI operations."""

import sys
from typing import Iterable

from cli.constants import DATE_FORMAT, GREEN, RESET
from common.types import StoredObject
from store.progress import TransferProgress


class ProgressPrinter:
    """Progress listener that redraws a single status line on stdout."""

    def __init__(self, verb: str):
        """
        Initialize the progress printer.

        Args:
            verb: Action shown in front of the label (e.g. "Uploading")
        """
        self.verb = verb
        self._finished = False

    def __call__(self, progress: TransferProgress, delta: int) -> None:
        """Display current transfer progress."""
        transferred = progress.transferred
        if progress.total:
            percent = min(100.0, (transferred / progress.total) * 100)
            sys.stdout.write(
                f"\r{self.verb} {progress.label}: {format_file_size(transferred)} / "
                f"{format_file_size(progress.total)} ({GREEN}{percent:.1f}%{RESET})"
            )
        else:
            sys.stdout.write(f"\r{self.verb} {progress.label}: {format_file_size(transferred)}")
        sys.stdout.flush()

    def finish(self) -> None:
        """Finalize progress display with newline."""
        if not self._finished:
            self._finished = True
            sys.stdout.write('\n')
            sys.stdout.flush()


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_uploads(uploads: Iterable[StoredObject]) -> str:
    """
    Render stored objects as plain text lines with a total.

    Args:
        uploads: Stored objects to render

    Returns:
        Formatted listing
    """
    uploads = list(uploads)
    if not uploads:
        return "No files uploaded."

    output = [f"Found {len(uploads)} file(s):\n"]
    for item in uploads:
        modified = item.modified_time.strftime(DATE_FORMAT) if item.modified_time else "-"
        owners = ", ".join(item.owners) if item.owners else "-"
        output.append(
            f"  - {item.name} (ID: {item.id})\n"
            f"    Size: {format_file_size(item.size)}  Sheets: {item.chunk_count}  "
            f"Compression: {item.compression.value}\n"
            f"    Owner: {owners}  Date: {modified}  Path: {item.path or '/'}"
        )

    total_size = sum(item.size for item in uploads)
    total_sheets = sum(item.chunk_count for item in uploads)
    output.append(f"\nTotal: {format_file_size(total_size)} in {total_sheets} sheet(s)")
    return '\n'.join(output)
