"""KTX2 container inspection: header, level index and mip layout arithmetic.

The inspector works out where each mip level will sit in the decoded pixel
buffer for the chosen target format. It does not decode or transcode pixels.

Mip layout shapes:

- ``levelCount == 0``: only a base image is stored and mips may be generated
  at runtime; the layout is empty
- ``levelCount == N``: N entries, largest level first, packed back to back
"""

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Tuple, Union

from pydantic import BaseModel

from gltfread.kernel.model import GpuCompressedPixelFormat, MipPosition

logger = logging.getLogger(__name__)

KTX2_IDENTIFIER = b"\xabKTX 20\xbb\r\n\x1a\n"

_HEADER = struct.Struct("<12s9I")
_INDEX = struct.Struct("<4I2Q")
_LEVEL = struct.Struct("<3Q")

VK_FORMAT_UNDEFINED = 0

# Uncompressed 8-bit vkFormats -> bytes per pixel (== channel count)
RAW_VK_FORMATS: Dict[int, int] = {
    9: 1,    # R8_UNORM
    15: 1,   # R8_SRGB
    16: 2,   # R8G8_UNORM
    22: 2,   # R8G8_SRGB
    23: 3,   # R8G8B8_UNORM
    29: 3,   # R8G8B8_SRGB
    37: 4,   # R8G8B8A8_UNORM
    43: 4,   # R8G8B8A8_SRGB
}

# Target format -> (block width, block height, bytes per block, channels)
FORMAT_BLOCKS: Dict[GpuCompressedPixelFormat, Tuple[int, int, int, int]] = {
    GpuCompressedPixelFormat.NONE: (1, 1, 4, 4),
    GpuCompressedPixelFormat.ETC1_RGB: (4, 4, 8, 3),
    GpuCompressedPixelFormat.ETC2_RGBA: (4, 4, 16, 4),
    GpuCompressedPixelFormat.BC1_RGB: (4, 4, 8, 3),
    GpuCompressedPixelFormat.BC3_RGBA: (4, 4, 16, 4),
    GpuCompressedPixelFormat.BC4_R: (4, 4, 8, 1),
    GpuCompressedPixelFormat.BC5_RG: (4, 4, 16, 2),
    GpuCompressedPixelFormat.BC7_RGBA: (4, 4, 16, 4),
    GpuCompressedPixelFormat.PVRTC1_4_RGB: (4, 4, 8, 3),
    GpuCompressedPixelFormat.PVRTC1_4_RGBA: (4, 4, 8, 4),
    GpuCompressedPixelFormat.ASTC_4x4_RGBA: (4, 4, 16, 4),
    GpuCompressedPixelFormat.ETC2_EAC_R11: (4, 4, 8, 1),
    GpuCompressedPixelFormat.ETC2_EAC_RG11: (4, 4, 16, 2),
}

# Data format descriptor color models
KHR_DF_MODEL_ETC1S = 163
KHR_DF_MODEL_UASTC = 166

_ETC1S_CHANNELS = {
    (0,): "rgb",
    (3,): "r",
    (3, 4): "rg",
    (0, 15): "rgba",
}
_UASTC_CHANNELS = {0: "rgb", 3: "rgba", 4: "r", 5: "rg", 6: "rg"}


class Ktx2Error(ValueError):
    """Raised when a KTX2 container is malformed or unsupported."""
    pass


class SupercompressionScheme(IntEnum):
    NONE = 0
    BASIS_LZ = 1
    ZSTANDARD = 2
    ZLIB = 3


class Ktx2TranscodeTargets(BaseModel):
    """Target pixel format per Basis Universal codec and channel layout."""
    etc1s_r: GpuCompressedPixelFormat = GpuCompressedPixelFormat.NONE
    etc1s_rg: GpuCompressedPixelFormat = GpuCompressedPixelFormat.NONE
    etc1s_rgb: GpuCompressedPixelFormat = GpuCompressedPixelFormat.NONE
    etc1s_rgba: GpuCompressedPixelFormat = GpuCompressedPixelFormat.NONE
    uastc_r: GpuCompressedPixelFormat = GpuCompressedPixelFormat.NONE
    uastc_rg: GpuCompressedPixelFormat = GpuCompressedPixelFormat.NONE
    uastc_rgb: GpuCompressedPixelFormat = GpuCompressedPixelFormat.NONE
    uastc_rgba: GpuCompressedPixelFormat = GpuCompressedPixelFormat.NONE

    def target_for(self, codec: str, channels: str) -> GpuCompressedPixelFormat:
        return getattr(self, f"{codec}_{channels}")


@dataclass(frozen=True)
class Ktx2Level:
    byte_offset: int
    byte_length: int
    uncompressed_byte_length: int


@dataclass(frozen=True)
class Ktx2Header:
    vk_format: int
    type_size: int
    pixel_width: int
    pixel_height: int
    pixel_depth: int
    layer_count: int
    face_count: int
    level_count: int
    supercompression_scheme: int
    dfd_byte_offset: int
    dfd_byte_length: int
    kvd_byte_offset: int
    kvd_byte_length: int
    sgd_byte_offset: int
    sgd_byte_length: int
    levels: Tuple[Ktx2Level, ...]

    @property
    def is_basis(self) -> bool:
        return self.vk_format == VK_FORMAT_UNDEFINED

    @property
    def stored_level_count(self) -> int:
        """Levels present in the file: ``levelCount == 0`` still stores the base level."""
        return max(1, self.level_count)


@dataclass(frozen=True)
class Ktx2Layout:
    """Where every stored level lands in the decoded pixel buffer."""
    header: Ktx2Header
    target_format: GpuCompressedPixelFormat
    channels: int
    level_positions: Tuple[MipPosition, ...]  # every stored level, base level first
    mip_positions: Tuple[MipPosition, ...]  # empty when mips are left to the runtime
    codec: str = ""  # "etc1s" / "uastc" for Basis payloads

    @property
    def total_size(self) -> int:
        return sum(p.byte_size for p in self.level_positions)


def is_ktx2(data: Union[bytes, bytearray, memoryview]) -> bool:
    return bytes(data[:len(KTX2_IDENTIFIER)]) == KTX2_IDENTIFIER


def read_ktx2_header(data: Union[bytes, bytearray, memoryview]) -> Ktx2Header:
    """Parse the fixed header, section index and level index of a KTX2 file.

    Raises:
        Ktx2Error: On a bad identifier, truncated data or inconsistent header
    """
    data = memoryview(data)
    if len(data) < _HEADER.size + _INDEX.size:
        raise Ktx2Error("KTX2 data is too short to hold a header.")

    fields = _HEADER.unpack_from(data, 0)
    if fields[0] != KTX2_IDENTIFIER:
        raise Ktx2Error("KTX2 data does not start with the KTX 20 identifier.")
    (vk_format, type_size, width, height, depth,
     layer_count, face_count, level_count, scheme) = fields[1:]
    dfd_offset, dfd_length, kvd_offset, kvd_length, sgd_offset, sgd_length = _INDEX.unpack_from(
        data, _HEADER.size
    )

    if width == 0:
        raise Ktx2Error("KTX2 pixelWidth must not be zero.")
    if face_count not in (1, 6):
        raise Ktx2Error(f"KTX2 faceCount must be 1 or 6, found {face_count}.")
    if scheme not in SupercompressionScheme._value2member_map_:
        raise Ktx2Error(f"Unsupported KTX2 supercompression scheme {scheme}.")
    max_levels = max(width, height, depth).bit_length()
    if level_count > max_levels:
        raise Ktx2Error(
            f"KTX2 levelCount {level_count} exceeds the {max_levels} levels possible for a "
            f"{width}x{height} image."
        )

    stored = max(1, level_count)
    index_start = _HEADER.size + _INDEX.size
    if len(data) < index_start + stored * _LEVEL.size:
        raise Ktx2Error("KTX2 level index extends past the end of the data.")

    levels = []
    for i in range(stored):
        level = Ktx2Level(*_LEVEL.unpack_from(data, index_start + i * _LEVEL.size))
        if level.byte_offset + level.byte_length > len(data):
            raise Ktx2Error(f"KTX2 level {i} extends past the end of the data.")
        levels.append(level)

    return Ktx2Header(
        vk_format=vk_format,
        type_size=type_size,
        pixel_width=width,
        pixel_height=height,
        pixel_depth=depth,
        layer_count=layer_count,
        face_count=face_count,
        level_count=level_count,
        supercompression_scheme=scheme,
        dfd_byte_offset=dfd_offset,
        dfd_byte_length=dfd_length,
        kvd_byte_offset=kvd_offset,
        kvd_byte_length=kvd_length,
        sgd_byte_offset=sgd_offset,
        sgd_byte_length=sgd_length,
        levels=tuple(levels),
    )


def read_basis_channels(data: Union[bytes, bytearray, memoryview], header: Ktx2Header) -> Tuple[str, str]:
    """Codec ("etc1s"/"uastc") and channel layout ("r"/"rg"/"rgb"/"rgba") from the DFD."""
    data = memoryview(data)
    block = header.dfd_byte_offset + 4
    default_codec = "etc1s" if header.supercompression_scheme == SupercompressionScheme.BASIS_LZ else "uastc"

    if header.dfd_byte_length < 28 or block + 24 > len(data):
        logger.debug("KTX2 data format descriptor missing or truncated, assuming RGBA")
        return default_codec, "rgba"

    (word1,) = struct.unpack_from("<I", data, block + 4)
    block_size = word1 >> 16
    color_model = data[block + 8]
    sample_count = max(0, (block_size - 24) // 16)
    channel_ids = tuple(
        data[block + 24 + 16 * i + 3] & 0x0F
        for i in range(sample_count)
        if block + 24 + 16 * i + 4 <= len(data)
    )

    if color_model == KHR_DF_MODEL_ETC1S:
        return "etc1s", _ETC1S_CHANNELS.get(channel_ids, "rgba")
    if color_model == KHR_DF_MODEL_UASTC:
        return "uastc", _UASTC_CHANNELS.get(channel_ids[0] if channel_ids else 3, "rgba")
    return default_codec, "rgba"


def _level_size_2d(width: int, height: int, block: Tuple[int, int, int, int]) -> int:
    block_width, block_height, block_bytes, _ = block
    blocks_x = -(-width // block_width)
    blocks_y = -(-height // block_height)
    return blocks_x * blocks_y * block_bytes


def compute_ktx2_layout(
    data: Union[bytes, bytearray, memoryview],
    targets: Ktx2TranscodeTargets,
) -> Ktx2Layout:
    """Compute the decoded-buffer layout of a KTX2 file for the given targets.

    Args:
        data: KTX2 container bytes
        targets: Target formats for Basis Universal payloads

    Returns:
        Ktx2Layout with per-level byte ranges

    Raises:
        Ktx2Error: If the container is malformed or its vkFormat is unsupported
    """
    header = read_ktx2_header(data)

    codec = ""
    if header.is_basis:
        codec, channel_layout = read_basis_channels(data, header)
        target = targets.target_for(codec, channel_layout)
        block = FORMAT_BLOCKS[target]
        channels = block[3]
    elif header.vk_format in RAW_VK_FORMATS:
        target = GpuCompressedPixelFormat.NONE
        channels = RAW_VK_FORMATS[header.vk_format]
        block = (1, 1, channels, channels)
    else:
        raise Ktx2Error(f"Unsupported KTX2 vkFormat {header.vk_format}.")

    layers = max(1, header.layer_count)
    positions: List[MipPosition] = []
    offset = 0
    for level in range(header.stored_level_count):
        width = max(1, header.pixel_width >> level)
        height = max(1, header.pixel_height >> level)
        depth = max(1, header.pixel_depth >> level)
        size = _level_size_2d(width, height, block) * depth * layers * header.face_count
        positions.append(MipPosition(byte_offset=offset, byte_size=size))
        offset += size

    if not header.is_basis and header.supercompression_scheme == SupercompressionScheme.NONE:
        for i, (level, position) in enumerate(zip(header.levels, positions)):
            if level.byte_length != position.byte_size:
                raise Ktx2Error(
                    f"KTX2 level {i} holds {level.byte_length} bytes, expected {position.byte_size}."
                )

    level_positions = tuple(positions)
    mip_positions = level_positions if header.level_count > 0 else ()
    logger.debug(
        "KTX2 %dx%d vkFormat=%d levels=%d -> %s, %d mip positions",
        header.pixel_width, header.pixel_height, header.vk_format,
        header.level_count, target.value, len(mip_positions),
    )
    return Ktx2Layout(
        header=header,
        target_format=target,
        channels=channels,
        level_positions=level_positions,
        mip_positions=mip_positions,
        codec=codec,
    )
