"""
GLB Container Codec

Splits a binary glTF container into its JSON and BIN chunks and reassembles
a container from a (possibly rewritten) JSON chunk plus a BIN chunk.

Layout:
    header  magic (u32) | version (u32) | total length (u32)
    chunk   length (u32) | type (u32) | payload, padded to 4 bytes

The JSON chunk is padded with ASCII spaces and the BIN chunk with zeros.
"""

import struct
from typing import Tuple

from vrm_bridge.converter.types import VRMConversionError

GLB_MAGIC = 0x46546C67  # "glTF"
GLB_VERSION = 2
CHUNK_JSON = 0x4E4F534A  # "JSON"
CHUNK_BIN = 0x004E4942  # "BIN\0"

HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8


class MalformedContainer(VRMConversionError):
    """Raised when a buffer is not a well-formed GLB container."""


def _padding(length: int) -> int:
    return (4 - length % 4) % 4


def parse_container(data: bytes) -> Tuple[str, bytes]:
    """
    Parse a GLB container into its JSON text and binary chunk.

    Args:
        data: Raw container bytes

    Returns:
        Tuple of (JSON chunk text, BIN chunk bytes). The BIN chunk is empty
        when the container has none.

    Raises:
        MalformedContainer: On bad magic, a truncated buffer, or a first
            chunk that is not JSON.
    """
    data = bytes(data)
    if len(data) < 4 or struct.unpack_from("<I", data, 0)[0] != GLB_MAGIC:
        raise MalformedContainer("Invalid GLB: bad magic bytes")
    if len(data) < HEADER_SIZE + CHUNK_HEADER_SIZE:
        raise MalformedContainer("Invalid GLB: buffer too short for header and JSON chunk")

    json_length, json_type = struct.unpack_from("<II", data, HEADER_SIZE)
    if json_type != CHUNK_JSON:
        raise MalformedContainer("Invalid GLB: first chunk is not JSON")

    json_start = HEADER_SIZE + CHUNK_HEADER_SIZE
    json_end = json_start + json_length
    if json_end > len(data):
        raise MalformedContainer("Invalid GLB: JSON chunk extends past end of buffer")

    try:
        json_text = data[json_start:json_end].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedContainer(f"Invalid GLB: JSON chunk is not UTF-8 ({exc})") from exc
    json_text = json_text.rstrip(" ")

    # BIN chunk is optional
    bin_chunk = b""
    if json_end + CHUNK_HEADER_SIZE <= len(data):
        bin_length = struct.unpack_from("<I", data, json_end)[0]
        bin_start = json_end + CHUNK_HEADER_SIZE
        if bin_start + bin_length > len(data):
            raise MalformedContainer("Invalid GLB: BIN chunk extends past end of buffer")
        bin_chunk = data[bin_start:bin_start + bin_length]

    return json_text, bin_chunk


def assemble_container(json_text: str, bin_chunk: bytes = b"") -> bytes:
    """
    Assemble a GLB container from JSON text and an optional binary chunk.

    The BIN chunk is only written when it is non-empty. The total length in
    the header always equals the number of bytes returned.
    """
    json_bytes = json_text.encode("utf-8")
    json_bytes += b" " * _padding(len(json_bytes))

    bin_bytes = bytes(bin_chunk)
    bin_bytes += b"\x00" * _padding(len(bin_bytes))
    has_bin = len(bin_bytes) > 0

    total_length = HEADER_SIZE + CHUNK_HEADER_SIZE + len(json_bytes)
    if has_bin:
        total_length += CHUNK_HEADER_SIZE + len(bin_bytes)

    out = bytearray()
    out += struct.pack("<III", GLB_MAGIC, GLB_VERSION, total_length)
    out += struct.pack("<II", len(json_bytes), CHUNK_JSON)
    out += json_bytes
    if has_bin:
        out += struct.pack("<II", len(bin_bytes), CHUNK_BIN)
        out += bin_bytes

    return bytes(out)
