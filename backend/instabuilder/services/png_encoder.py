"""
Minimal PNG encoder for 8-bit grayscale rasters.

Signature, IHDR, one zlib-compressed IDAT of filter-0 scanlines, IEND.
Every chunk is length-prefixed and closed with a CRC32 over its type and data.
"""

import struct
import zlib

PNG_SIGNATURE = bytes([137, 80, 78, 71, 13, 10, 26, 10])

COLOR_TYPE_GRAYSCALE = 0
BIT_DEPTH = 8
FILTER_NONE = 0


def _make_crc_table() -> list[int]:
    table = []
    for n in range(256):
        c = n
        for _ in range(8):
            c = 0xEDB88320 ^ (c >> 1) if c & 1 else c >> 1
        table.append(c)
    return table


CRC_TABLE = _make_crc_table()


def crc32(data: bytes) -> int:
    """Table-driven CRC32 (reflected polynomial 0xEDB88320)."""
    crc = 0xFFFFFFFF
    for byte in data:
        crc = CRC_TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ 0xFFFFFFFF


def chunk(chunk_type: bytes, data: bytes) -> bytes:
    """One PNG chunk: length, type, data, CRC32(type + data)."""
    if len(chunk_type) != 4:
        raise ValueError(f"Chunk type must be 4 bytes, got {chunk_type!r}")
    return (
        struct.pack(">I", len(data))
        + chunk_type
        + data
        + struct.pack(">I", crc32(chunk_type + data))
    )


def scanlines(pixels: bytes, width: int, height: int) -> bytes:
    """Raw image data with a 'no filter' byte in front of every row."""
    if len(pixels) != width * height:
        raise ValueError(f"Expected {width * height} pixel bytes, got {len(pixels)}")
    raw = bytearray()
    for y in range(height):
        raw.append(FILTER_NONE)
        raw += pixels[y * width:(y + 1) * width]
    return bytes(raw)


def encode_grayscale_png(pixels: bytes, width: int, height: int, level: int = 6) -> bytes:
    """Encode row-major 8-bit gray pixels as a PNG file."""
    if width <= 0 or height <= 0:
        raise ValueError("PNG dimensions must be positive")

    # width, height, bit depth, color type, compression, filter, interlace
    ihdr = struct.pack(">IIBBBBB", width, height, BIT_DEPTH, COLOR_TYPE_GRAYSCALE, 0, 0, 0)
    idat = zlib.compress(scanlines(pixels, width, height), level)

    return b"".join([
        PNG_SIGNATURE,
        chunk(b"IHDR", ihdr),
        chunk(b"IDAT", idat),
        chunk(b"IEND", b""),
    ])
