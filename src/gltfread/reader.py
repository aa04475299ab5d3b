"""Public API for reading glTF documents.

GltfReader turns glTF JSON or GLB bytes into a typed Gltf model and returns
it together with every error and warning found on the way. Reading never
raises for bad input; the caller decides what a non-empty ``errors`` list
means for its use case.
"""

import logging
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from gltfread.json_value import JsonParseError, parse_json, type_name
from gltfread.kernel.data_uri import DataUriError, decode_data_uri, is_data_uri
from gltfread.kernel.extension_dispatch import JsonReaderOptions
from gltfread.kernel.glb import GlbError, is_glb, read_glb
from gltfread.kernel.ktx2 import Ktx2Error, Ktx2TranscodeTargets
from gltfread.kernel.model import Gltf, ImageData
from gltfread.kernel.diagnostics import Diagnostics, ReadContext
from gltfread.kernel.property_reader import read_object
from gltfread._internal.decompression import (
    DracoDecoder,
    MeshoptDecoder,
    buffer_view_bytes,
    decode_draco,
    decode_meshopt,
)
from gltfread._internal.images import (
    SUPPORTED_MIME_TYPES,
    ImageDecodeError,
    ImageTranscoder,
    TranscodeError,
    decode_image,
)
from gltfread._internal.loaders import ByteLoader

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


class GltfReaderOptions(BaseModel):
    """Per-call options for GltfReader.read_gltf."""
    decode_data_urls: bool = True
    clear_decoded_data_urls: bool = True  # drop the data: URI string once decoded
    decode_embedded_images: bool = True
    decode_draco: bool = True
    decode_meshopt: bool = True
    ktx2_transcode_targets: Ktx2TranscodeTargets = Field(default_factory=Ktx2TranscodeTargets)


class GltfReaderResult(BaseModel):
    """Result of reading a glTF document."""
    model: Optional[Gltf] = None  # None only when the document could not be read at all
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.model is not None and not self.errors


class ImageReaderResult(BaseModel):
    """Result of decoding one image payload."""
    image: Optional[ImageData] = None
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class GltfReader:
    """Reads glTF and GLB documents.

    ``options`` is shared by every call on this reader; each call works on a
    snapshot taken when it starts, so changing it affects later calls only.

    Args:
        byte_loader: Resolves external (non data:) URIs; unresolved when None
        image_transcoder: KTX2 transcoder; uncompressed formats only when None
        draco_decoder: Decoder for KHR_draco_mesh_compression payloads
        meshopt_decoder: Decoder for EXT_meshopt_compression payloads
        options: Extension states and unknown-property capture
    """

    def __init__(
        self,
        byte_loader: Optional[ByteLoader] = None,
        image_transcoder: Optional[ImageTranscoder] = None,
        draco_decoder: Optional[DracoDecoder] = None,
        meshopt_decoder: Optional[MeshoptDecoder] = None,
        options: Optional[JsonReaderOptions] = None,
    ):
        self.byte_loader = byte_loader
        self.image_transcoder = image_transcoder
        self.draco_decoder = draco_decoder
        self.meshopt_decoder = meshopt_decoder
        self.options = options if options is not None else JsonReaderOptions()

    def read_gltf(self, data: BytesLike, options: Optional[GltfReaderOptions] = None) -> GltfReaderResult:
        """Read a glTF JSON or GLB document.

        Args:
            data: Document bytes; GLB is detected by its magic
            options: Per-call options; defaults when None

        Returns:
            GltfReaderResult. ``model`` is None only for an unreadable
            container, a JSON syntax error or a root that is not an object.
        """
        options = options if options is not None else GltfReaderOptions()
        context = ReadContext(self.options.copy())
        diagnostics = context.diagnostics

        binary_chunk = None
        json_bytes = data
        if is_glb(data):
            try:
                chunks = read_glb(data)
            except GlbError as e:
                return GltfReaderResult(errors=[str(e)])
            json_bytes, binary_chunk = chunks.json_chunk, chunks.binary_chunk
            diagnostics.warnings.extend(chunks.warnings)
            logger.debug("Unwrapped GLB: %d JSON bytes, BIN chunk %s",
                         len(json_bytes), "absent" if binary_chunk is None else f"{len(binary_chunk)} bytes")

        try:
            document = parse_json(json_bytes)
        except JsonParseError as e:
            return GltfReaderResult(errors=[f"glTF JSON could not be parsed: {e}"])
        if not isinstance(document, dict):
            return GltfReaderResult(errors=[f"glTF JSON root must be an object, got {type_name(document)}"])

        model = read_object(Gltf, document, context)

        if binary_chunk is not None:
            self._bind_binary_chunk(model, binary_chunk, diagnostics)
        self._resolve_buffers(model, options, diagnostics)
        if options.decode_meshopt:
            decode_meshopt(model, self.meshopt_decoder, diagnostics)
        if options.decode_draco:
            decode_draco(model, self.draco_decoder, diagnostics)
        if options.decode_embedded_images:
            self._decode_images(model, options, diagnostics)

        logger.debug("Read glTF: %d errors, %d warnings", len(diagnostics.errors), len(diagnostics.warnings))
        return GltfReaderResult(model=model, errors=diagnostics.errors, warnings=diagnostics.warnings)

    @staticmethod
    def read_image(
        data: BytesLike,
        targets: Optional[Ktx2TranscodeTargets] = None,
        transcoder: Optional[ImageTranscoder] = None,
        mime_type: Optional[str] = None,
    ) -> ImageReaderResult:
        """Decode a PNG, JPEG or KTX2 payload.

        Args:
            data: Encoded image bytes
            targets: Target formats for Basis Universal KTX2 payloads
            transcoder: KTX2 transcoder; uncompressed formats only when None
            mime_type: Declared MIME type, checked against the supported set

        Returns:
            ImageReaderResult with the decoded image or the reason it failed
        """
        try:
            image = decode_image(bytes(data), mime_type, targets, transcoder)
        except (ImageDecodeError, Ktx2Error, TranscodeError) as e:
            return ImageReaderResult(errors=[str(e)])
        return ImageReaderResult(image=image)

    def _bind_binary_chunk(self, model: Gltf, chunk: bytes, diagnostics: Diagnostics) -> None:
        if not model.buffers:
            diagnostics.error("GLB has a BIN chunk but the document declares no buffers")
            return
        buffer = model.buffers[0]
        if buffer.uri is not None:
            diagnostics.error("GLB has a BIN chunk but buffers[0] has a uri")
            return
        if buffer.byte_length > len(chunk):
            diagnostics.error(
                f"buffers[0].byteLength {buffer.byte_length} is larger than the {len(chunk)}-byte BIN chunk"
            )
            return
        if len(chunk) - buffer.byte_length > 3:
            diagnostics.error(
                f"buffers[0].byteLength {buffer.byte_length} is more than 3 bytes smaller than the "
                f"{len(chunk)}-byte BIN chunk"
            )
            return
        buffer.data = chunk[:buffer.byte_length]

    def _load_uri(self, uri: str, options: GltfReaderOptions, path: str, diagnostics: Diagnostics):
        """Bytes and MIME type of ``uri``; (None, None) when unresolved."""
        if is_data_uri(uri):
            if not options.decode_data_urls:
                return None, None
            try:
                decoded = decode_data_uri(uri)
            except DataUriError as e:
                diagnostics.error(f"{path}.uri: {e}")
                return None, None
            return decoded.data, decoded.mime_type

        if self.byte_loader is None:
            return None, None
        try:
            return bytes(self.byte_loader(uri)), None
        except Exception as e:
            diagnostics.error(f"{path}.uri: could not load '{uri}': {e}")
            return None, None

    def _resolve_buffers(self, model: Gltf, options: GltfReaderOptions, diagnostics: Diagnostics) -> None:
        for index, buffer in enumerate(model.buffers):
            if buffer.data is not None or buffer.uri is None:
                continue
            path = f"buffers[{index}]"
            data, _ = self._load_uri(buffer.uri, options, path, diagnostics)
            if data is None:
                continue
            if len(data) < buffer.byte_length:
                diagnostics.error(
                    f"{path}: resolved {len(data)} bytes but byteLength is {buffer.byte_length}"
                )
                continue
            self._clear_data_uri(buffer, options)
            buffer.data = data

    def _decode_images(self, model: Gltf, options: GltfReaderOptions, diagnostics: Diagnostics) -> None:
        decoded_count = 0
        for index, image in enumerate(model.images):
            path = f"images[{index}]"
            mime_type = image.mime_type
            if mime_type and mime_type.lower() not in SUPPORTED_MIME_TYPES:
                diagnostics.error(f"{path}: unsupported image MIME type '{mime_type}'")
                continue

            if image.buffer_view is not None:
                try:
                    data = buffer_view_bytes(model, image.buffer_view)
                except ValueError as e:
                    diagnostics.error(f"{path}.bufferView: {e}")
                    continue
            elif image.uri is not None:
                data, uri_mime_type = self._load_uri(image.uri, options, path, diagnostics)
                if data is None:
                    continue
                if not mime_type and uri_mime_type and uri_mime_type.startswith("image/"):
                    mime_type = uri_mime_type
            else:
                logger.debug("%s has neither uri nor bufferView, skipping", path)
                continue

            result = self.read_image(data, options.ktx2_transcode_targets, self.image_transcoder, mime_type)
            diagnostics.errors.extend(f"{path}: {m}" for m in result.errors)
            diagnostics.warnings.extend(f"{path}: {m}" for m in result.warnings)
            if result.image is None:
                continue
            image.image_data = result.image
            self._clear_data_uri(image, options)
            decoded_count += 1
        logger.debug("Decoded %d of %d images", decoded_count, len(model.images))

    @staticmethod
    def _clear_data_uri(resource, options: GltfReaderOptions) -> None:
        if options.clear_decoded_data_urls and resource.uri is not None and is_data_uri(resource.uri):
            resource.uri = None
