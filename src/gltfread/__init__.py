"""gltfread: typed glTF 2.0 / GLB reader with pluggable extension handling."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("gltfread")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from gltfread.reader import (
    GltfReader,
    GltfReaderOptions,
    GltfReaderResult,
    ImageReaderResult,
)
from gltfread.kernel.extension_dispatch import ExtensionRegistry, ExtensionState, JsonReaderOptions
from gltfread.kernel.glb import GlbError, read_glb, write_glb
from gltfread.kernel.ktx2 import Ktx2Error, Ktx2TranscodeTargets
from gltfread.kernel.model import GpuCompressedPixelFormat, Gltf, ImageData, MipPosition
from gltfread.kernel.accessor_view import AccessorView, AccessorViewStatus
from gltfread._internal.loaders import ByteLoaderError, FileSystemByteLoader
from gltfread._internal.images import TranscodeError

__all__ = [
    "__version__",
    "GltfReader",
    "GltfReaderOptions",
    "GltfReaderResult",
    "ImageReaderResult",
    "JsonReaderOptions",
    "ExtensionRegistry",
    "ExtensionState",
    "GlbError",
    "read_glb",
    "write_glb",
    "Ktx2Error",
    "Ktx2TranscodeTargets",
    "GpuCompressedPixelFormat",
    "Gltf",
    "ImageData",
    "MipPosition",
    "AccessorView",
    "AccessorViewStatus",
    "ByteLoaderError",
    "FileSystemByteLoader",
    "TranscodeError",
]
