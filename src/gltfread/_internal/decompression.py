"""Routing of compressed mesh payloads to injected decoders.

The decoding algorithms live outside gltfread. This module finds the
compressed bytes through the typed extensions, hands them to the decoder and
splices the result back into the model as ordinary buffers.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, runtime_checkable

from gltfread.kernel.extensions import (
    ExtMeshoptCompression,
    KhrDracoMeshCompression,
    MeshoptFilter,
    MeshoptMode,
)
from gltfread.kernel.model import Buffer, BufferView, Gltf
from gltfread.kernel.diagnostics import Diagnostics

logger = logging.getLogger(__name__)


@dataclass
class DecodedMesh:
    """Output of a Draco decoder: tightly packed bytes per accessor."""
    indices: Optional[bytes] = None
    attributes: Dict[str, bytes] = field(default_factory=dict)  # semantic -> bytes


@runtime_checkable
class DracoDecoder(Protocol):
    def __call__(self, data: bytes, attributes: Dict[str, int]) -> DecodedMesh:
        ...


@runtime_checkable
class MeshoptDecoder(Protocol):
    def __call__(
        self,
        data: bytes,
        count: int,
        byte_stride: int,
        mode: MeshoptMode,
        filter: MeshoptFilter,
    ) -> bytes:
        ...


def buffer_view_bytes(model: Gltf, index: int) -> bytes:
    """Bytes of a buffer view, from its buffer's resolved data.

    Raises:
        ValueError: If the view or its buffer is missing or unresolved
    """
    if not 0 <= index < len(model.buffer_views):
        raise ValueError(f"bufferView {index} does not exist")
    view = model.buffer_views[index]
    if not 0 <= view.buffer < len(model.buffers):
        raise ValueError(f"bufferView {index} references missing buffer {view.buffer}")
    data = model.buffers[view.buffer].data
    if data is None:
        raise ValueError(f"buffer {view.buffer} has no data")
    end = view.byte_offset + view.byte_length
    if end > len(data):
        raise ValueError(f"bufferView {index} extends past the end of buffer {view.buffer}")
    return data[view.byte_offset:end]


def _append_buffer(model: Gltf, payload: bytes) -> int:
    model.buffers.append(Buffer(byte_length=len(payload), data=payload))
    model.buffer_views.append(
        BufferView(buffer=len(model.buffers) - 1, byte_offset=0, byte_length=len(payload))
    )
    return len(model.buffer_views) - 1


def decode_draco(model: Gltf, decoder: Optional[DracoDecoder], diagnostics: Diagnostics) -> int:
    """Decode every Draco-compressed primitive; returns how many were decoded."""
    decoded_count = 0
    for mesh_index, mesh in enumerate(model.meshes):
        for primitive_index, primitive in enumerate(mesh.primitives):
            draco = primitive.get_extension(KhrDracoMeshCompression)
            if draco is None:
                continue
            path = f"meshes[{mesh_index}].primitives[{primitive_index}]"
            if decoder is None:
                diagnostics.warning(f"{path}: {draco.EXTENSION_NAME} present but no Draco decoder is configured")
                continue

            try:
                payload = buffer_view_bytes(model, draco.buffer_view)
                mesh_data = decoder(payload, dict(draco.attributes))
            except Exception as e:
                diagnostics.error(f"{path}: Draco decoding failed: {e}")
                continue

            targets = []
            if primitive.indices is not None:
                targets.append(("indices", primitive.indices, mesh_data.indices))
            for semantic, accessor_index in primitive.attributes.items():
                if semantic in draco.attributes:
                    targets.append((semantic, accessor_index, mesh_data.attributes.get(semantic)))

            for semantic, accessor_index, data in targets:
                if data is None:
                    diagnostics.error(f"{path}: Draco decoder produced no data for {semantic}")
                    continue
                if not 0 <= accessor_index < len(model.accessors):
                    diagnostics.error(f"{path}: {semantic} references missing accessor {accessor_index}")
                    continue
                accessor = model.accessors[accessor_index]
                accessor.buffer_view = _append_buffer(model, data)
                accessor.byte_offset = 0
            decoded_count += 1
    logger.debug("Decoded %d Draco primitives", decoded_count)
    return decoded_count


def decode_meshopt(model: Gltf, decoder: Optional[MeshoptDecoder], diagnostics: Diagnostics) -> int:
    """Decode every meshopt-compressed buffer view into its own buffer."""
    decoded_count = 0
    for view_index, view in enumerate(model.buffer_views):
        meshopt = view.get_extension(ExtMeshoptCompression)
        if meshopt is None:
            continue
        path = f"bufferViews[{view_index}]"
        if decoder is None:
            diagnostics.warning(f"{path}: {meshopt.EXTENSION_NAME} present but no meshopt decoder is configured")
            continue

        if not 0 <= meshopt.buffer < len(model.buffers) or model.buffers[meshopt.buffer].data is None:
            diagnostics.error(f"{path}: meshopt source buffer {meshopt.buffer} has no data")
            continue
        if not 0 <= view.buffer < len(model.buffers):
            diagnostics.error(f"{path}: references missing buffer {view.buffer}")
            continue

        source = model.buffers[meshopt.buffer].data[meshopt.byte_offset:meshopt.byte_offset + meshopt.byte_length]
        try:
            decoded = decoder(source, meshopt.count, meshopt.byte_stride, meshopt.mode, meshopt.filter)
        except Exception as e:
            diagnostics.error(f"{path}: meshopt decoding failed: {e}")
            continue

        expected = meshopt.count * meshopt.byte_stride
        if len(decoded) != expected:
            diagnostics.error(f"{path}: meshopt decoder returned {len(decoded)} bytes, expected {expected}")
            continue

        target = model.buffers[view.buffer]
        data = bytearray(target.data if target.data is not None else bytes(target.byte_length))
        end = view.byte_offset + len(decoded)
        if end > len(data):
            data.extend(bytes(end - len(data)))
        data[view.byte_offset:end] = decoded
        target.data = bytes(data)
        decoded_count += 1
    logger.debug("Decoded %d meshopt buffer views", decoded_count)
    return decoded_count
