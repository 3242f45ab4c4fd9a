"""
Reversible transform between raw bytes and sheet-safe printable text.

Write path: bytes -> optional compression -> framed payload -> radix-91 text.
Read path is the exact inverse. The frame carries the compression policy, the
payload length and a CRC-32 so truncated or corrupted text fails loudly
instead of decoding to shorter data.

Frame layout (big-endian)::

    +--------+----------------+-----------------+---------+
    | policy | payload length | payload         | crc32   |
    | 1 byte | 4 bytes        | <length> bytes  | 4 bytes |
    +--------+----------------+-----------------+---------+
"""

import struct
import zlib
from typing import Dict, Union

import zstandard

from common.constants import SHEET_CELL_WIDTH
from common.exceptions import CodecError
from common.types import CompressionPolicy

# Printable ASCII minus the quote and escape characters the sheet treats specially
ALPHABET = "".join(chr(c) for c in range(0x21, 0x7F) if chr(c) not in "\"'\\")

_DECODE_TABLE: Dict[str, int] = {ch: i for i, ch in enumerate(ALPHABET)}

_HEADER = struct.Struct(">BI")
_TRAILER = struct.Struct(">I")

_POLICY_CODES: Dict[CompressionPolicy, int] = {
    CompressionPolicy.NONE: 0,
    CompressionPolicy.ZIP: 1,
    CompressionPolicy.ZSTD: 2,
}
_CODE_POLICIES: Dict[int, CompressionPolicy] = {v: k for k, v in _POLICY_CODES.items()}

CELL_PREFIX = "'"


def compress(data: bytes, policy: CompressionPolicy) -> bytes:
    """
    Compress data with the given policy.

    Args:
        data: Raw bytes
        policy: Compression policy

    Returns:
        Compressed bytes (unchanged for NONE)
    """
    policy = CompressionPolicy(policy)
    if policy is CompressionPolicy.ZIP:
        return zlib.compress(data, 9)
    if policy is CompressionPolicy.ZSTD:
        return zstandard.ZstdCompressor(level=10).compress(data)
    return bytes(data)


def decompress(data: bytes, policy: CompressionPolicy) -> bytes:
    """
    Reverse compress().

    Raises:
        CodecError: If the compressed data is corrupt
    """
    policy = CompressionPolicy(policy)
    try:
        if policy is CompressionPolicy.ZIP:
            return zlib.decompress(data)
        if policy is CompressionPolicy.ZSTD:
            return zstandard.ZstdDecompressor().decompress(data)
    except (zlib.error, zstandard.ZstdError) as e:
        raise CodecError(f"Corrupt {policy.value} payload: {e}") from e
    return bytes(data)


def radix91_encode(data: bytes) -> str:
    """Encode bytes with the basE91 scheme over ALPHABET."""
    out = []
    b = 0
    n = 0
    for byte in data:
        b |= byte << n
        n += 8
        if n > 13:
            v = b & 8191
            if v > 88:
                b >>= 13
                n -= 13
            else:
                v = b & 16383
                b >>= 14
                n -= 14
            out.append(ALPHABET[v % 91])
            out.append(ALPHABET[v // 91])
    if n:
        out.append(ALPHABET[b % 91])
        if n > 7 or b > 90:
            out.append(ALPHABET[b // 91])
    return "".join(out)


def radix91_decode(text: str) -> bytes:
    """
    Decode basE91 text produced by radix91_encode().

    Raises:
        CodecError: If the text contains a character outside ALPHABET
    """
    out = bytearray()
    v = -1
    b = 0
    n = 0
    for position, ch in enumerate(text):
        c = _DECODE_TABLE.get(ch)
        if c is None:
            raise CodecError(f"Invalid character {ch!r} at position {position}")
        if v < 0:
            v = c
            continue
        v += c * 91
        b |= v << n
        n += 13 if (v & 8191) > 88 else 14
        while True:
            out.append(b & 0xFF)
            b >>= 8
            n -= 8
            if n <= 7:
                break
        v = -1
    if v >= 0:
        out.append((b | v << n) & 0xFF)
    return bytes(out)


def encode(data: bytes, policy: CompressionPolicy = CompressionPolicy.NONE) -> str:
    """
    Encode raw bytes into sheet-safe text.

    Args:
        data: Raw bytes (may be empty)
        policy: Compression applied before text encoding

    Returns:
        Text over ALPHABET with no whitespace, quotes or delimiters
    """
    policy = CompressionPolicy(policy)
    payload = compress(data, policy)
    frame = (
        _HEADER.pack(_POLICY_CODES[policy], len(payload))
        + payload
        + _TRAILER.pack(zlib.crc32(payload) & 0xFFFFFFFF)
    )
    return radix91_encode(frame)


def decode(text: str) -> bytes:
    """
    Decode text produced by encode() back to the original bytes.

    Raises:
        CodecError: If the text is malformed, truncated or fails its checksum
    """
    frame = radix91_decode(text)
    minimum = _HEADER.size + _TRAILER.size
    if len(frame) < minimum:
        raise CodecError(f"Encoded frame too short ({len(frame)} bytes)")

    code, length = _HEADER.unpack_from(frame)
    policy = _CODE_POLICIES.get(code)
    if policy is None:
        raise CodecError(f"Unknown compression code {code}")

    if len(frame) != minimum + length:
        raise CodecError(
            f"Frame length mismatch: header says {length} payload bytes, "
            f"got {len(frame) - minimum}"
        )

    payload = frame[_HEADER.size:_HEADER.size + length]
    (crc,) = _TRAILER.unpack_from(frame, _HEADER.size + length)
    if zlib.crc32(payload) & 0xFFFFFFFF != crc:
        raise CodecError("Checksum mismatch in encoded payload")

    return decompress(payload, policy)


def to_sheet_body(text: str, cell_width: int = SHEET_CELL_WIDTH) -> bytes:
    """
    Lay encoded text out as a one-column TSV document.

    Each cell is prefixed with an apostrophe so the sheet keeps it as literal
    text instead of parsing numbers or formulas.

    Args:
        text: Output of encode()
        cell_width: Maximum characters per cell

    Returns:
        ASCII TSV body
    """
    if cell_width <= 0:
        raise CodecError(f"cell_width must be positive, got {cell_width}")
    rows = [CELL_PREFIX + text[i:i + cell_width] for i in range(0, len(text), cell_width)]
    return "\n".join(rows or [CELL_PREFIX]).encode("ascii")


def from_sheet_body(body: Union[bytes, str]) -> str:
    """
    Reverse to_sheet_body() on an exported TSV document.

    Tolerates CRLF line endings, empty trailing cells and the export dropping
    the apostrophe prefix.
    """
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise CodecError(f"Sheet body is not valid UTF-8: {e}") from e

    parts = []
    for line in body.splitlines():
        for cell in line.split("\t"):
            cell = cell.strip()
            if cell.startswith(CELL_PREFIX):
                cell = cell[1:]
            if cell:
                parts.append(cell)
    return "".join(parts)
