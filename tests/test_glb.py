"""Tests for the GLB container reader/writer and BIN chunk binding."""

import json
import struct

import pytest

from gltfread import GltfReader
from gltfread.kernel.glb import (
    CHUNK_TYPE_BIN,
    CHUNK_TYPE_JSON,
    GlbError,
    is_glb,
    read_glb,
    write_glb,
)


class TestReadGlb:
    """Tests for read_glb."""

    def test_write_then_read(self):
        """Chunks written by write_glb come back (JSON space padded)."""
        glb = write_glb(b'{"asset":{"version":"2.0"}}', b"\x01\x02\x03")
        assert is_glb(glb)
        assert len(glb) % 4 == 0
        chunks = read_glb(glb)
        assert json.loads(chunks.json_chunk) == {"asset": {"version": "2.0"}}
        assert chunks.binary_chunk == b"\x01\x02\x03\x00"

    def test_json_only(self):
        """A GLB without a BIN chunk has no binary chunk."""
        chunks = read_glb(write_glb({"asset": {"version": "2.0"}}))
        assert chunks.binary_chunk is None

    def test_header_fields(self):
        """Magic, version 2 and total length are written little endian."""
        glb = write_glb("{}", b"abcd")
        magic, version, length = struct.unpack_from("<4sII", glb, 0)
        assert (magic, version, length) == (b"glTF", 2, len(glb))
        assert struct.unpack_from("<II", glb, 12) == (4, CHUNK_TYPE_JSON)
        assert struct.unpack_from("<II", glb, 24) == (4, CHUNK_TYPE_BIN)

    def test_unknown_chunks_skipped(self):
        """Chunks of other types are ignored; a BIN chunk after them is used with a warning."""
        glb = bytearray(write_glb("{}"))
        glb += struct.pack("<II", 4, 0x12345678) + b"zzzz"
        glb += struct.pack("<II", 4, CHUNK_TYPE_BIN) + b"data"
        struct.pack_into("<I", glb, 8, len(glb))
        chunks = read_glb(bytes(glb))
        assert chunks.binary_chunk == b"data"
        assert chunks.warnings == (
            "GLB BIN chunk is chunk 2, expected it directly after the JSON chunk.",
        )

    def test_second_bin_chunk_ignored(self):
        """Only the first BIN chunk is used; a repeated one is reported."""
        glb = bytearray(write_glb("{}", b"firs"))
        glb += struct.pack("<II", 4, CHUNK_TYPE_BIN) + b"next"
        struct.pack_into("<I", glb, 8, len(glb))
        chunks = read_glb(bytes(glb))
        assert chunks.binary_chunk == b"firs"
        assert chunks.warnings == ("GLB chunk 2 is a second BIN chunk and was ignored.",)

    def test_well_formed_container_has_no_warnings(self):
        """JSON followed by one BIN chunk reads without warnings."""
        assert read_glb(write_glb("{}", b"abcd")).warnings == ()

    def test_bad_magic(self):
        """Anything not starting with glTF is rejected."""
        with pytest.raises(GlbError, match="magic"):
            read_glb(b"gltf" + bytes(16))

    def test_bad_version(self):
        """Only version 2 is supported."""
        glb = bytearray(write_glb("{}"))
        struct.pack_into("<I", glb, 4, 1)
        with pytest.raises(GlbError, match="version 1"):
            read_glb(bytes(glb))

    def test_declared_length_too_long(self):
        """A declared length beyond the data is fatal."""
        glb = bytearray(write_glb("{}"))
        struct.pack_into("<I", glb, 8, len(glb) + 4)
        with pytest.raises(GlbError, match="declared length"):
            read_glb(bytes(glb))

    def test_first_chunk_must_be_json(self):
        """The first chunk has to be the JSON chunk."""
        body = struct.pack("<II", 4, CHUNK_TYPE_BIN) + b"abcd"
        glb = struct.pack("<4sII", b"glTF", 2, 12 + len(body)) + body
        with pytest.raises(GlbError, match="JSON"):
            read_glb(glb)

    def test_too_short(self):
        """Truncated headers are rejected."""
        with pytest.raises(GlbError):
            read_glb(b"glTF\x02\x00")


class TestReadGltfFromGlb:
    """Tests for GltfReader on GLB input."""

    def test_round_trip_binds_buffer(self, triangle_document, triangle_bin):
        """The BIN chunk becomes buffers[0] with the original bytes."""
        result = GltfReader().read_gltf(write_glb(triangle_document, triangle_bin))
        assert result.errors == []
        assert result.warnings == []
        assert result.model.buffers[0].data == triangle_bin

    def test_padding_trimmed_to_byte_length(self, triangle_document):
        """Up to 3 bytes of chunk padding are dropped."""
        triangle_document["buffers"][0]["byteLength"] = 5
        result = GltfReader().read_gltf(write_glb(triangle_document, b"12345"))
        assert result.errors == []
        assert result.model.buffers[0].data == b"12345"

    def test_byte_length_larger_than_chunk(self, triangle_document):
        """A buffer longer than the chunk is an error and stays empty."""
        triangle_document["buffers"][0]["byteLength"] = 100
        result = GltfReader().read_gltf(write_glb(triangle_document, bytes(44)))
        assert result.model is not None
        assert result.model.buffers[0].data is None
        assert any("larger than" in e for e in result.errors)

    def test_byte_length_much_smaller_than_chunk(self, triangle_document):
        """More than 3 bytes of slack is an error."""
        triangle_document["buffers"][0]["byteLength"] = 8
        result = GltfReader().read_gltf(write_glb(triangle_document, bytes(44)))
        assert result.model.buffers[0].data is None
        assert any("more than 3 bytes" in e for e in result.errors)

    def test_first_buffer_with_uri(self, triangle_document):
        """The BIN chunk only binds to a first buffer without a uri."""
        triangle_document["buffers"][0]["uri"] = "external.bin"
        result = GltfReader().read_gltf(write_glb(triangle_document, bytes(44)))
        assert result.model.buffers[0].data is None
        assert any("has a uri" in e for e in result.errors)

    def test_no_buffers(self):
        """A BIN chunk with no buffers declared is an error."""
        result = GltfReader().read_gltf(write_glb({"asset": {"version": "2.0"}}, b"abcd"))
        assert result.model is not None
        assert result.errors == ["GLB has a BIN chunk but the document declares no buffers"]

    def test_container_warnings_reach_result(self, triangle_document, triangle_bin):
        """A repeated BIN chunk shows up in the read result's warnings."""
        glb = bytearray(write_glb(triangle_document, triangle_bin))
        glb += struct.pack("<II", 4, CHUNK_TYPE_BIN) + b"next"
        struct.pack_into("<I", glb, 8, len(glb))
        result = GltfReader().read_gltf(bytes(glb))
        assert result.errors == []
        assert result.warnings == ["GLB chunk 2 is a second BIN chunk and was ignored."]
        assert result.model.buffers[0].data == triangle_bin

    def test_bad_container_is_fatal(self):
        """Container errors return no model."""
        result = GltfReader().read_gltf(b"glTF" + struct.pack("<II", 2, 1000))
        assert result.model is None
        assert len(result.errors) == 1

    def test_invalid_json_chunk_is_fatal(self):
        """A JSON syntax error inside the container returns no model."""
        result = GltfReader().read_gltf(write_glb(b'{"asset": '))
        assert result.model is None
        assert "could not be parsed" in result.errors[0]
