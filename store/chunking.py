"""Splits payloads into capacity-bounded chunks and joins them back in order."""

from typing import BinaryIO, Iterable, Iterator, List, Optional, Tuple, Union

from common.exceptions import IncompleteObjectError, InvalidConfigurationError

Source = Union[bytes, bytearray, memoryview, BinaryIO]


def check_chunk_size(max_chunk_bytes: int) -> None:
    if not isinstance(max_chunk_bytes, int) or max_chunk_bytes <= 0:
        raise InvalidConfigurationError(
            f"max_chunk_bytes must be a positive integer, got {max_chunk_bytes!r}"
        )


def chunk_count(total_size: int, max_chunk_bytes: int) -> int:
    """
    Number of chunks needed for a payload.

    An empty payload still occupies one (empty) chunk so it stays addressable.
    """
    check_chunk_size(max_chunk_bytes)
    if total_size < 0:
        raise InvalidConfigurationError(f"total_size must not be negative, got {total_size}")
    if total_size == 0:
        return 1
    return -(-total_size // max_chunk_bytes)


def plan(total_size: int, max_chunk_bytes: int) -> List[range]:
    """
    Compute the byte ranges covered by each chunk.

    Args:
        total_size: Payload length in bytes
        max_chunk_bytes: Capacity of a single chunk

    Returns:
        Ordered list of ranges, one per chunk

    Raises:
        InvalidConfigurationError: If max_chunk_bytes is not positive
    """
    count = chunk_count(total_size, max_chunk_bytes)
    return [
        range(i * max_chunk_bytes, min((i + 1) * max_chunk_bytes, total_size))
        for i in range(count)
    ]


def split(source: Source, max_chunk_bytes: int) -> Iterator[bytes]:
    """
    Lazily split bytes or a binary stream into chunks.

    Args:
        source: Bytes-like object or readable binary stream
        max_chunk_bytes: Capacity of a single chunk

    Yields:
        Buffers no larger than max_chunk_bytes, in original order

    Raises:
        InvalidConfigurationError: If max_chunk_bytes is not positive
    """
    check_chunk_size(max_chunk_bytes)
    return _split(source, max_chunk_bytes)


def _split(source: Source, max_chunk_bytes: int) -> Iterator[bytes]:
    if isinstance(source, (bytes, bytearray, memoryview)):
        view = memoryview(source)
        if len(view) == 0:
            yield b""
            return
        for start in range(0, len(view), max_chunk_bytes):
            yield bytes(view[start:start + max_chunk_bytes])
        return

    emitted = False
    while True:
        buffer = _read_exactly(source, max_chunk_bytes)
        if not buffer:
            break
        emitted = True
        yield buffer
        if len(buffer) < max_chunk_bytes:
            break
    if not emitted:
        yield b""


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    """Read up to size bytes, looping over short reads until EOF."""
    parts = []
    remaining = size
    while remaining > 0:
        piece = stream.read(remaining)
        if not piece:
            break
        parts.append(piece)
        remaining -= len(piece)
    return b"".join(parts)


def join(indexed_buffers: Iterable[Tuple[int, bytes]], expected_count: Optional[int] = None) -> bytes:
    """
    Concatenate chunks that are already in original order.

    Args:
        indexed_buffers: (index, buffer) pairs, expected as 0..n-1 in order
        expected_count: Number of chunks the object should have, if known

    Returns:
        Reassembled payload

    Raises:
        IncompleteObjectError: On out-of-order, duplicate or missing chunks
    """
    parts = []
    for position, (index, buffer) in enumerate(indexed_buffers):
        if index != position:
            raise IncompleteObjectError(
                f"Chunk out of order or missing: expected index {position}, got {index}"
            )
        parts.append(buffer)

    if not parts:
        raise IncompleteObjectError("No chunks to join")
    if expected_count is not None and len(parts) != expected_count:
        raise IncompleteObjectError(
            f"Expected {expected_count} chunks, got {len(parts)}"
        )
    return b"".join(parts)


def join_sorted(indexed_buffers: Iterable[Tuple[int, bytes]], expected_count: Optional[int] = None) -> bytes:
    """Sort chunks by their captured index, then join()."""
    return join(sorted(indexed_buffers, key=lambda item: item[0]), expected_count)
