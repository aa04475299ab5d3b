"""Image payload decoding: PNG/JPEG through Pillow, KTX2 through a transcoder."""

import io
import logging
import zlib
from typing import Optional, Protocol, runtime_checkable

import zstandard
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from gltfread.kernel.ktx2 import (
    Ktx2Layout,
    Ktx2TranscodeTargets,
    SupercompressionScheme,
    compute_ktx2_layout,
    is_ktx2,
)
from gltfread.kernel.model import ImageData

logger = logging.getLogger(__name__)

MIME_PNG = "image/png"
MIME_JPEG = "image/jpeg"
MIME_KTX2 = "image/ktx2"
SUPPORTED_MIME_TYPES = frozenset({MIME_PNG, MIME_JPEG, MIME_KTX2})

_PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
_JPEG_MAGIC = b"\xff\xd8\xff"


class ImageDecodeError(ValueError):
    """Raised when an image payload is unsupported or cannot be decoded."""
    pass


class TranscodeError(RuntimeError):
    """Raised by an image transcoder that cannot produce pixels for a container."""
    pass


@runtime_checkable
class ImageTranscoder(Protocol):
    """Turns KTX2 container bytes into the pixel buffer described by ``layout``.

    The returned buffer holds every stored level back to back, in the order
    and sizes of ``layout.level_positions``.
    """

    def __call__(self, data: bytes, layout: Ktx2Layout) -> bytes:
        ...


class DefaultKtx2Transcoder:
    """Transcoder for uncompressed 8-bit vkFormats.

    Handles supercompression schemes none, Zstandard and zlib. Basis
    Universal payloads (ETC1S/UASTC) need a real transcoder to be injected.
    """

    def __call__(self, data: bytes, layout: Ktx2Layout) -> bytes:
        header = layout.header
        if header.is_basis:
            raise TranscodeError(
                f"Basis Universal ({layout.codec.upper() or 'unknown'}) KTX2 payloads need an image transcoder"
            )

        scheme = header.supercompression_scheme
        pixels = bytearray()
        for index, (level, position) in enumerate(zip(header.levels, layout.level_positions)):
            chunk = bytes(data[level.byte_offset:level.byte_offset + level.byte_length])
            if scheme == SupercompressionScheme.ZSTANDARD:
                try:
                    chunk = zstandard.ZstdDecompressor().decompress(
                        chunk, max_output_size=level.uncompressed_byte_length
                    )
                except zstandard.ZstdError as e:
                    raise TranscodeError(f"KTX2 level {index}: Zstandard decompression failed: {e}") from e
            elif scheme == SupercompressionScheme.ZLIB:
                try:
                    chunk = zlib.decompress(chunk)
                except zlib.error as e:
                    raise TranscodeError(f"KTX2 level {index}: zlib decompression failed: {e}") from e
            elif scheme != SupercompressionScheme.NONE:
                raise TranscodeError(f"Unsupported KTX2 supercompression scheme {scheme}")

            if len(chunk) != position.byte_size:
                raise TranscodeError(
                    f"KTX2 level {index} decoded to {len(chunk)} bytes, expected {position.byte_size}"
                )
            pixels += chunk
        return bytes(pixels)


def sniff_mime_type(data: bytes) -> Optional[str]:
    """Guess an image MIME type from the leading bytes."""
    if data.startswith(_PNG_MAGIC):
        return MIME_PNG
    if data.startswith(_JPEG_MAGIC):
        return MIME_JPEG
    if is_ktx2(data):
        return MIME_KTX2
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def decode_pillow_image(data: bytes) -> ImageData:
    """Decode a PNG or JPEG to 8-bit RGBA."""
    try:
        with PILImage.open(io.BytesIO(data)) as img:
            rgba = img.convert("RGBA")
    except PILImage.DecompressionBombError as e:
        raise ImageDecodeError(f"Image is too large to decode: {e}") from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e
    return ImageData(
        width=rgba.width,
        height=rgba.height,
        channels=4,
        bytes_per_channel=1,
        pixel_data=rgba.tobytes(),
    )


def decode_ktx2_image(
    data: bytes,
    targets: Ktx2TranscodeTargets,
    transcoder: ImageTranscoder,
) -> ImageData:
    layout = compute_ktx2_layout(data, targets)
    try:
        pixels = transcoder(data, layout)
    except TranscodeError:
        raise
    except Exception as e:
        raise TranscodeError(f"Image transcoder failed: {e}") from e
    if len(pixels) != layout.total_size:
        raise TranscodeError(
            f"Transcoder returned {len(pixels)} bytes, expected {layout.total_size}"
        )
    header = layout.header
    return ImageData(
        width=header.pixel_width,
        height=max(1, header.pixel_height),
        channels=layout.channels,
        bytes_per_channel=1,
        compressed_pixel_format=layout.target_format,
        mip_positions=list(layout.mip_positions),
        pixel_data=pixels,
    )


def decode_image(
    data: bytes,
    mime_type: Optional[str] = None,
    targets: Optional[Ktx2TranscodeTargets] = None,
    transcoder: Optional[ImageTranscoder] = None,
) -> ImageData:
    """Decode an image payload.

    Args:
        data: Encoded image bytes
        mime_type: Declared MIME type, if any; must be PNG, JPEG or KTX2
        targets: Target formats for Basis Universal KTX2 payloads
        transcoder: KTX2 transcoder; DefaultKtx2Transcoder when None

    Returns:
        Decoded ImageData

    Raises:
        ImageDecodeError: Unsupported MIME type or undecodable payload
        Ktx2Error: Malformed KTX2 container
        TranscodeError: The transcoder failed
    """
    if mime_type and mime_type.lower() not in SUPPORTED_MIME_TYPES:
        raise ImageDecodeError(f"Unsupported image MIME type '{mime_type}'")

    detected = sniff_mime_type(data)
    if detected == MIME_KTX2:
        return decode_ktx2_image(
            data,
            targets if targets is not None else Ktx2TranscodeTargets(),
            transcoder if transcoder is not None else DefaultKtx2Transcoder(),
        )
    if detected in (MIME_PNG, MIME_JPEG):
        return decode_pillow_image(data)
    if detected is not None:
        raise ImageDecodeError(f"Unsupported image format '{detected}'")
    raise ImageDecodeError("Unrecognized image format")
