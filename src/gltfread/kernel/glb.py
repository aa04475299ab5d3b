"""Binary glTF (GLB) container: header validation, chunk splitting and writing.

Layout (little endian)::

    magic "glTF" | version (2) | total length
    chunk: length | type "JSON" | payload (space padded to 4 bytes)
    chunk: length | type "BIN\\0" | payload (zero padded to 4 bytes)   (optional)

Chunks of other types are skipped. A BIN chunk that is not the second chunk
is still used, with a warning; any further BIN chunk is ignored with a warning.
"""

import json
import logging
import struct
from typing import Any, List, NamedTuple, Optional, Tuple, Union

logger = logging.getLogger(__name__)

GLB_MAGIC = b"glTF"
GLB_VERSION = 2
CHUNK_TYPE_JSON = 0x4E4F534A
CHUNK_TYPE_BIN = 0x004E4942

_HEADER = struct.Struct("<4sII")
_CHUNK_HEADER = struct.Struct("<II")


class GlbError(ValueError):
    """Raised when a GLB container is malformed."""
    pass


class GlbChunks(NamedTuple):
    json_chunk: bytes
    binary_chunk: Optional[bytes]
    warnings: Tuple[str, ...] = ()


def is_glb(data: Union[bytes, bytearray, memoryview]) -> bool:
    """True if the stream starts with the GLB magic."""
    return bytes(data[:4]) == GLB_MAGIC


def read_glb(data: Union[bytes, bytearray, memoryview]) -> GlbChunks:
    """Split a GLB container into its JSON chunk and optional binary chunk.

    Args:
        data: Whole container bytes

    Returns:
        GlbChunks with the JSON chunk, the BIN chunk (None if absent) and
        warnings about misplaced or repeated BIN chunks

    Raises:
        GlbError: On bad magic, unsupported version, truncated data, or a
            missing JSON chunk
    """
    data = memoryview(data)
    if len(data) < _HEADER.size:
        raise GlbError("Too short to be a valid GLB.")

    magic, version, length = _HEADER.unpack_from(data, 0)
    if magic != GLB_MAGIC:
        raise GlbError("GLB does not start with the expected magic value 'glTF'.")
    if version != GLB_VERSION:
        raise GlbError(f"Only binary glTF version 2 is supported, found version {version}.")
    if length > len(data):
        raise GlbError(
            f"GLB extends past the end of the buffer: declared length {length}, actual {len(data)}."
        )
    if length < _HEADER.size + _CHUNK_HEADER.size:
        raise GlbError(f"GLB declared length {length} is too short to hold a JSON chunk.")

    data = data[:length]
    offset = _HEADER.size

    json_length, json_type = _CHUNK_HEADER.unpack_from(data, offset)
    offset += _CHUNK_HEADER.size
    if json_type != CHUNK_TYPE_JSON:
        raise GlbError("GLB JSON chunk does not have the expected chunkType 'JSON'.")
    if offset + json_length > length:
        raise GlbError("GLB JSON chunk extends past the end of the buffer.")
    json_chunk = bytes(data[offset:offset + json_length])
    offset += json_length

    binary_chunk: Optional[bytes] = None
    warnings: List[str] = []
    chunk_index = 1
    while offset + _CHUNK_HEADER.size <= length:
        chunk_length, chunk_type = _CHUNK_HEADER.unpack_from(data, offset)
        offset += _CHUNK_HEADER.size
        if offset + chunk_length > length:
            raise GlbError("GLB chunk extends past the end of the buffer.")
        if chunk_type != CHUNK_TYPE_BIN:
            logger.debug("Skipping GLB chunk of type 0x%08x (%d bytes)", chunk_type, chunk_length)
        elif binary_chunk is not None:
            warnings.append(f"GLB chunk {chunk_index} is a second BIN chunk and was ignored.")
        else:
            if chunk_index != 1:
                warnings.append(f"GLB BIN chunk is chunk {chunk_index}, expected it directly after the JSON chunk.")
            binary_chunk = bytes(data[offset:offset + chunk_length])
        offset += chunk_length
        chunk_index += 1

    return GlbChunks(json_chunk=json_chunk, binary_chunk=binary_chunk, warnings=tuple(warnings))


def _pad(payload: bytes, fill: bytes) -> bytes:
    return payload + fill * (-len(payload) % 4)


def write_glb(document: Union[bytes, str, Any], binary: Optional[bytes] = None) -> bytes:
    """Wrap a JSON document and an optional binary blob in a GLB container.

    Args:
        document: JSON bytes, JSON text, or a JSON-serializable value
        binary: Payload of the BIN chunk; omitted when None

    Returns:
        GLB bytes
    """
    if isinstance(document, bytes):
        json_bytes = document
    elif isinstance(document, str):
        json_bytes = document.encode("utf-8")
    else:
        json_bytes = json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    chunks = [_CHUNK_HEADER.pack(len(_pad(json_bytes, b" ")), CHUNK_TYPE_JSON) + _pad(json_bytes, b" ")]
    if binary is not None:
        padded = _pad(bytes(binary), b"\x00")
        chunks.append(_CHUNK_HEADER.pack(len(padded), CHUNK_TYPE_BIN) + padded)

    body = b"".join(chunks)
    return _HEADER.pack(GLB_MAGIC, GLB_VERSION, _HEADER.size + len(body)) + body
