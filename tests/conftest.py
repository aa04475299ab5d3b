"""Pytest configuration and binary fixture builders (GLB, KTX2, PNG).

No sys.path hacks - tests import from the installed gltfread package.
"""

import base64
import io
import struct
import zlib

import pytest
from PIL import Image as PILImage

KTX2_IDENTIFIER = b"\xabKTX 20\xbb\r\n\x1a\n"


def build_ktx2(
    width,
    height,
    level_count,
    vk_format=37,
    bytes_per_pixel=4,
    scheme=0,
    compress=None,
    dfd=b"",
    level_payloads=None,
):
    """Build a KTX2 container with the given header and a level per mip.

    Level i is filled with the byte value i. ``compress`` (if given) is
    applied to each level's bytes before they are stored.
    """
    stored = max(1, level_count)
    if level_payloads is None:
        level_payloads = [
            bytes([i % 256]) * (max(1, width >> i) * max(1, height >> i) * bytes_per_pixel)
            for i in range(stored)
        ]

    index_end = 80 + stored * 24
    data_start = index_end + len(dfd)
    entries = []
    blob = b""
    for raw in level_payloads:
        stored_bytes = compress(raw) if compress else raw
        entries.append((data_start + len(blob), len(stored_bytes), len(raw)))
        blob += stored_bytes

    header = struct.pack(
        "<12s9I", KTX2_IDENTIFIER, vk_format, 1, width, height, 0, 0, 1, level_count, scheme
    )
    index = struct.pack("<4I2Q", index_end if dfd else 0, len(dfd), 0, 0, 0, 0)
    level_index = b"".join(struct.pack("<3Q", *entry) for entry in entries)
    return header + index + level_index + dfd + blob


def build_basis_dfd(color_model, channel_ids):
    """Data format descriptor with one basic block and a sample per channel id."""
    block_size = 24 + 16 * len(channel_ids)
    block = struct.pack("<IHH", 0, 2, block_size) + bytes([color_model, 1, 2, 0]) + bytes(12)
    for channel_id in channel_ids:
        block += struct.pack("<HBB", 0, 127, channel_id) + bytes(12)
    return struct.pack("<I", 4 + len(block)) + block


def png_bytes(width=2, height=2, color=(255, 0, 0, 255)):
    img = PILImage.new("RGBA", (width, height), color)
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


def data_uri(payload, mime_type="application/octet-stream"):
    return f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}"


def png_header_bytes(width, height):
    """A PNG whose IHDR declares ``width`` x ``height`` but carries almost no pixel data."""
    def chunk(kind, payload):
        return (struct.pack(">I", len(payload)) + kind + payload
                + struct.pack(">I", zlib.crc32(kind + payload) & 0xFFFFFFFF))

    ihdr = struct.pack(">2I5B", width, height, 8, 6, 0, 0, 0)
    return (b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr)
            + chunk(b"IDAT", zlib.compress(b"\x00")) + chunk(b"IEND", b""))


@pytest.fixture
def rgba_png():
    return png_bytes()


@pytest.fixture
def triangle_bin():
    """Three float32 VEC3 positions followed by three uint16 indices (+2 pad)."""
    positions = struct.pack("<9f", 0, 0, 0, 1, 0, 0, 0, 1, 0)
    indices = struct.pack("<3H", 0, 1, 2) + b"\x00\x00"
    return positions + indices


@pytest.fixture
def triangle_document():
    """Document describing ``triangle_bin`` with buffers[0] left for the caller to fill."""
    return {
        "asset": {"version": "2.0"},
        "buffers": [{"byteLength": 44}],
        "bufferViews": [
            {"buffer": 0, "byteOffset": 0, "byteLength": 36},
            {"buffer": 0, "byteOffset": 36, "byteLength": 6},
        ],
        "accessors": [
            {"bufferView": 0, "componentType": 5126, "count": 3, "type": "VEC3",
             "min": [0, 0, 0], "max": [1, 1, 0]},
            {"bufferView": 1, "componentType": 5123, "count": 3, "type": "SCALAR"},
        ],
        "meshes": [{"primitives": [{"attributes": {"POSITION": 0}, "indices": 1}]}],
        "nodes": [{"mesh": 0}],
        "scenes": [{"nodes": [0]}],
        "scene": 0,
    }
