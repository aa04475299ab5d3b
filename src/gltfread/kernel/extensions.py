"""Typed models for the glTF extensions the reader understands out of the box."""

from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple

from pydantic import Field

from gltfread.kernel.model import ExtensibleObject, Int32, Int64


class CesiumRtc(ExtensibleObject):
    """CESIUM_RTC: positions are relative to ``center`` (ECEF)."""
    EXTENSION_NAME: ClassVar[str] = "CESIUM_RTC"
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("center",)

    center: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])


class KhrDracoMeshCompression(ExtensibleObject):
    """KHR_draco_mesh_compression on a mesh primitive."""
    EXTENSION_NAME: ClassVar[str] = "KHR_draco_mesh_compression"
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("buffer_view", "attributes")

    buffer_view: Int32 = -1
    attributes: Dict[str, Int32] = Field(default_factory=dict)  # attribute semantic -> Draco attribute id


class MeshoptMode(str, Enum):
    ATTRIBUTES = "ATTRIBUTES"
    TRIANGLES = "TRIANGLES"
    INDICES = "INDICES"


class MeshoptFilter(str, Enum):
    NONE = "NONE"
    OCTAHEDRAL = "OCTAHEDRAL"
    QUATERNION = "QUATERNION"
    EXPONENTIAL = "EXPONENTIAL"


class ExtMeshoptCompression(ExtensibleObject):
    """EXT_meshopt_compression on a buffer view: where the compressed bytes live."""
    EXTENSION_NAME: ClassVar[str] = "EXT_meshopt_compression"
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = (
        "buffer", "byte_length", "byte_stride", "count", "mode",
    )

    buffer: Int32 = -1
    byte_offset: Int64 = 0
    byte_length: Int64 = 0
    byte_stride: Int64 = 0
    count: Int64 = 0
    mode: MeshoptMode = MeshoptMode.ATTRIBUTES
    filter: MeshoptFilter = MeshoptFilter.NONE


class ExtMeshoptCompressionBuffer(ExtensibleObject):
    """EXT_meshopt_compression on a buffer: marks a fallback buffer."""
    EXTENSION_NAME: ClassVar[str] = "EXT_meshopt_compression"

    fallback: bool = False


class KhrTextureBasisu(ExtensibleObject):
    EXTENSION_NAME: ClassVar[str] = "KHR_texture_basisu"
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("source",)

    source: Int32 = -1


class KhrTextureTransform(ExtensibleObject):
    EXTENSION_NAME: ClassVar[str] = "KHR_texture_transform"

    offset: List[float] = Field(default_factory=lambda: [0.0, 0.0])
    rotation: float = 0.0
    scale: List[float] = Field(default_factory=lambda: [1.0, 1.0])
    tex_coord: Optional[Int64] = None


class KhrMaterialsUnlit(ExtensibleObject):
    EXTENSION_NAME: ClassVar[str] = "KHR_materials_unlit"


class ExtMeshGpuInstancing(ExtensibleObject):
    EXTENSION_NAME: ClassVar[str] = "EXT_mesh_gpu_instancing"
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("attributes",)

    attributes: Dict[str, Int32] = Field(default_factory=dict)
