"""
PNG chunk handling for print resolution metadata.

A PNG stream is the 8-byte signature followed by chunks laid out as

    [length: u32 BE][type: 4 ASCII bytes][payload: length bytes][crc: u32 BE]

where the CRC-32 covers type + payload (never the length). The pHYs chunk
carries pixels-per-unit for X and Y plus a unit byte, and must come before the
first IDAT chunk.
"""

from __future__ import annotations

import logging
import struct
import zlib
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
IDAT = b"IDAT"
PHYS = b"pHYs"
UNIT_UNKNOWN = 0
UNIT_METER = 1

_U32_MAX = 0xFFFFFFFF


def encode_uint32_be(value: int) -> bytes:
    if not (0 <= value <= _U32_MAX):
        raise ValueError(f"{value} does not fit in an unsigned 32-bit integer")
    return struct.pack(">I", value)


def chunk_crc(chunk_type: bytes, payload: bytes) -> int:
    return zlib.crc32(payload, zlib.crc32(chunk_type, 0)) & _U32_MAX


@dataclass(frozen=True)
class Chunk:
    chunk_type: bytes
    payload: bytes

    def __post_init__(self) -> None:
        if len(self.chunk_type) != 4:
            raise ValueError(f"Chunk type must be 4 bytes, got {self.chunk_type!r}")

    @property
    def crc(self) -> int:
        return chunk_crc(self.chunk_type, self.payload)

    def to_bytes(self) -> bytes:
        return (
            encode_uint32_be(len(self.payload))
            + self.chunk_type
            + self.payload
            + encode_uint32_be(self.crc)
        )


@dataclass(frozen=True)
class ChunkRecord:
    """A chunk found in a stream. `offset` is where its length field starts."""
    offset: int
    chunk_type: bytes
    payload: bytes
    crc: int

    @property
    def size(self) -> int:
        return 12 + len(self.payload)


def iter_chunks(stream: bytes) -> Iterator[ChunkRecord]:
    """Walk the chunk sequence; stops at the first truncated chunk."""
    pos = len(PNG_SIGNATURE) if stream.startswith(PNG_SIGNATURE) else 0
    end = len(stream)
    while pos + 12 <= end:
        (length,) = struct.unpack_from(">I", stream, pos)
        data_start = pos + 8
        data_end = data_start + length
        if data_end + 4 > end:
            logger.debug("Truncated chunk at offset %d (length %d)", pos, length)
            return
        chunk_type = bytes(stream[pos + 4:pos + 8])
        (crc,) = struct.unpack_from(">I", stream, data_end)
        yield ChunkRecord(pos, chunk_type, bytes(stream[data_start:data_end]), crc)
        pos = data_end + 4


def find_chunk_offset(stream: bytes, chunk_type: bytes) -> Optional[int]:
    for record in iter_chunks(stream):
        if record.chunk_type == chunk_type:
            return record.offset
    return None


def build_phys_chunk(resolution_ppmm: float) -> Chunk:
    """pHYs chunk with isotropic pixels-per-meter derived from pixels-per-millimeter."""
    ppu = encode_uint32_be(int(round(resolution_ppmm * 1000)))
    return Chunk(PHYS, ppu + ppu + bytes([UNIT_METER]))


def set_resolution_metadata(stream: bytes, resolution_ppmm: float) -> bytes:
    """
    Insert a pHYs chunk right before the first IDAT chunk.

    Returns the stream unchanged when it holds no IDAT chunk. Existing pHYs
    chunks are left alone, so every call adds one more.
    """
    offset = find_chunk_offset(stream, IDAT)
    if offset is None:
        logger.warning("No IDAT chunk found; resolution metadata not written")
        return bytes(stream)
    chunk = build_phys_chunk(resolution_ppmm).to_bytes()
    return bytes(stream[:offset]) + chunk + bytes(stream[offset:])


def read_resolution(stream: bytes) -> Optional[Tuple[int, int, int]]:
    """(x_ppu, y_ppu, unit) from the first pHYs chunk, or None."""
    for record in iter_chunks(stream):
        if record.chunk_type == PHYS and len(record.payload) == 9:
            x, y, unit = struct.unpack(">IIB", record.payload)
            return x, y, unit
    return None
