"""Pydantic models for the typed glTF 2.0 object graph.

Python attribute names are snake_case; the JSON property name is the field
alias (camelCase). Every object keeps what the typed surface does not cover:
``extensions`` (typed extension models or raw JSON), ``extras`` (verbatim)
and ``unknown_properties`` (leftover keys, when capture is enabled).
"""

from enum import Enum, IntEnum
from typing import Annotated, Any, ClassVar, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gltfread.json_value import JsonValue, NumberKind

Int32 = Annotated[int, NumberKind.INT32]
Int64 = Annotated[int, NumberKind.INT64]
UInt8 = Annotated[int, NumberKind.UINT8]

ExtensionT = TypeVar("ExtensionT", bound="ExtensibleObject")


def runtime_field(**kwargs: Any) -> Any:
    """A field that is filled in after parsing and never read from JSON."""
    if "default_factory" not in kwargs:
        kwargs.setdefault("default", None)
    return Field(exclude=True, json_schema_extra={"runtime": True}, **kwargs)


class ExtensibleObject(BaseModel):
    """Base for every typed glTF object and typed extension."""

    # Snake-case field names that must be present in the source JSON
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ()
    # Set on typed extension models
    EXTENSION_NAME: ClassVar[str] = ""

    extensions: Dict[str, Any] = Field(default_factory=dict)
    extras: Optional[JsonValue] = None
    unknown_properties: Dict[str, Any] = runtime_field(default_factory=dict)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    def get_extension(self, extension_type: Type[ExtensionT]) -> Optional[ExtensionT]:
        """Return the typed extension of this class, if it was read as typed."""
        value = self.extensions.get(extension_type.EXTENSION_NAME)
        return value if isinstance(value, extension_type) else None

    def get_generic_extension(self, name: str) -> Optional[JsonValue]:
        """Return an extension that was captured as raw JSON."""
        value = self.extensions.get(name)
        if value is None or isinstance(value, ExtensibleObject):
            return None
        return value

    def add_extension(self, extension: "ExtensibleObject") -> None:
        self.extensions[extension.EXTENSION_NAME] = extension


class ComponentType(IntEnum):
    BYTE = 5120
    UNSIGNED_BYTE = 5121
    SHORT = 5122
    UNSIGNED_SHORT = 5123
    UNSIGNED_INT = 5125
    FLOAT = 5126


class AccessorType(str, Enum):
    SCALAR = "SCALAR"
    VEC2 = "VEC2"
    VEC3 = "VEC3"
    VEC4 = "VEC4"
    MAT2 = "MAT2"
    MAT3 = "MAT3"
    MAT4 = "MAT4"


class PrimitiveMode(IntEnum):
    POINTS = 0
    LINES = 1
    LINE_LOOP = 2
    LINE_STRIP = 3
    TRIANGLES = 4
    TRIANGLE_STRIP = 5
    TRIANGLE_FAN = 6


class BufferViewTarget(IntEnum):
    ARRAY_BUFFER = 34962
    ELEMENT_ARRAY_BUFFER = 34963


class MagFilter(IntEnum):
    NEAREST = 9728
    LINEAR = 9729


class MinFilter(IntEnum):
    NEAREST = 9728
    LINEAR = 9729
    NEAREST_MIPMAP_NEAREST = 9984
    LINEAR_MIPMAP_NEAREST = 9985
    NEAREST_MIPMAP_LINEAR = 9986
    LINEAR_MIPMAP_LINEAR = 9987


class WrapMode(IntEnum):
    CLAMP_TO_EDGE = 33071
    MIRRORED_REPEAT = 33648
    REPEAT = 10497


class AlphaMode(str, Enum):
    OPAQUE = "OPAQUE"
    MASK = "MASK"
    BLEND = "BLEND"


class CameraType(str, Enum):
    PERSPECTIVE = "perspective"
    ORTHOGRAPHIC = "orthographic"


class Interpolation(str, Enum):
    LINEAR = "LINEAR"
    STEP = "STEP"
    CUBICSPLINE = "CUBICSPLINE"


class GpuCompressedPixelFormat(str, Enum):
    """Pixel formats an image can be transcoded to. NONE means uncompressed pixels."""

    NONE = "NONE"
    ETC1_RGB = "ETC1_RGB"
    ETC2_RGBA = "ETC2_RGBA"
    BC1_RGB = "BC1_RGB"
    BC3_RGBA = "BC3_RGBA"
    BC4_R = "BC4_R"
    BC5_RG = "BC5_RG"
    BC7_RGBA = "BC7_RGBA"
    PVRTC1_4_RGB = "PVRTC1_4_RGB"
    PVRTC1_4_RGBA = "PVRTC1_4_RGBA"
    ASTC_4x4_RGBA = "ASTC_4x4_RGBA"
    ETC2_EAC_R11 = "ETC2_EAC_R11"
    ETC2_EAC_RG11 = "ETC2_EAC_RG11"


class MipPosition(BaseModel):
    """Byte range of one mip level within ImageData.pixel_data."""
    byte_offset: int
    byte_size: int


class ImageData(BaseModel):
    """Decoded pixels of an image.

    An empty ``mip_positions`` means the buffer holds only the base image
    (mips may be generated at runtime); otherwise there is one entry per
    level, largest first.
    """
    width: int = 0
    height: int = 0
    channels: int = 4
    bytes_per_channel: int = 1
    compressed_pixel_format: GpuCompressedPixelFormat = GpuCompressedPixelFormat.NONE
    mip_positions: List[MipPosition] = Field(default_factory=list)
    pixel_data: bytes = b""


class Asset(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("version",)

    copyright: Optional[str] = None
    generator: Optional[str] = None
    version: str = ""
    min_version: Optional[str] = None


class AccessorSparseIndices(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("buffer_view", "component_type")

    buffer_view: Int32 = -1
    byte_offset: Int64 = 0
    component_type: ComponentType = ComponentType.UNSIGNED_BYTE


class AccessorSparseValues(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("buffer_view",)

    buffer_view: Int32 = -1
    byte_offset: Int64 = 0


class AccessorSparse(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("count", "indices", "values")

    count: Int64 = 0
    indices: AccessorSparseIndices = Field(default_factory=AccessorSparseIndices)
    values: AccessorSparseValues = Field(default_factory=AccessorSparseValues)


class Accessor(ExtensibleObject):
    """A typed view into a buffer view."""
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("component_type", "count", "type")

    buffer_view: Optional[Int32] = None
    byte_offset: Int64 = 0
    component_type: ComponentType = ComponentType.BYTE
    normalized: bool = False
    count: Int64 = 0
    type: AccessorType = AccessorType.SCALAR
    max: List[float] = Field(default_factory=list)
    min: List[float] = Field(default_factory=list)
    sparse: Optional[AccessorSparse] = None
    name: Optional[str] = None


class AnimationChannelTarget(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("path",)

    node: Optional[Int32] = None
    path: str = ""  # translation | rotation | scale | weights, or extension-defined


class AnimationChannel(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("sampler", "target")

    sampler: Int32 = -1
    target: AnimationChannelTarget = Field(default_factory=AnimationChannelTarget)


class AnimationSampler(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("input", "output")

    input: Int32 = -1
    interpolation: Interpolation = Interpolation.LINEAR
    output: Int32 = -1


class Animation(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("channels", "samplers")

    channels: List[AnimationChannel] = Field(default_factory=list)
    samplers: List[AnimationSampler] = Field(default_factory=list)
    name: Optional[str] = None


class Buffer(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("byte_length",)

    uri: Optional[str] = None
    byte_length: Int64 = 0
    name: Optional[str] = None

    data: Optional[bytes] = runtime_field()  # Resolved bytes (data URI, GLB chunk or loader)


class BufferView(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("buffer", "byte_length")

    buffer: Int32 = -1
    byte_offset: Int64 = 0
    byte_length: Int64 = 0
    byte_stride: Optional[Int64] = None
    target: Optional[BufferViewTarget] = None
    name: Optional[str] = None


class CameraOrthographic(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("xmag", "ymag", "zfar", "znear")

    xmag: float = 0.0
    ymag: float = 0.0
    zfar: float = 0.0
    znear: float = 0.0


class CameraPerspective(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("yfov", "znear")

    aspect_ratio: Optional[float] = None
    yfov: float = 0.0
    zfar: Optional[float] = None
    znear: float = 0.0


class Camera(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("type",)

    orthographic: Optional[CameraOrthographic] = None
    perspective: Optional[CameraPerspective] = None
    type: CameraType = CameraType.PERSPECTIVE
    name: Optional[str] = None


class Image(ExtensibleObject):
    uri: Optional[str] = None
    mime_type: Optional[str] = None
    buffer_view: Optional[Int32] = None
    name: Optional[str] = None

    image_data: Optional[ImageData] = runtime_field()


class TextureInfo(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("index",)

    index: Int32 = -1
    tex_coord: Int64 = 0


class MaterialNormalTextureInfo(TextureInfo):
    scale: float = 1.0


class MaterialOcclusionTextureInfo(TextureInfo):
    strength: float = 1.0


class MaterialPbrMetallicRoughness(ExtensibleObject):
    base_color_factor: List[float] = Field(default_factory=lambda: [1.0, 1.0, 1.0, 1.0])
    base_color_texture: Optional[TextureInfo] = None
    metallic_factor: float = 1.0
    roughness_factor: float = 1.0
    metallic_roughness_texture: Optional[TextureInfo] = None


class Material(ExtensibleObject):
    name: Optional[str] = None
    pbr_metallic_roughness: Optional[MaterialPbrMetallicRoughness] = None
    normal_texture: Optional[MaterialNormalTextureInfo] = None
    occlusion_texture: Optional[MaterialOcclusionTextureInfo] = None
    emissive_texture: Optional[TextureInfo] = None
    emissive_factor: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    alpha_mode: AlphaMode = AlphaMode.OPAQUE
    alpha_cutoff: float = 0.5
    double_sided: bool = False


class MeshPrimitive(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("attributes",)

    attributes: Dict[str, Int32] = Field(default_factory=dict)
    indices: Optional[Int32] = None
    material: Optional[Int32] = None
    mode: PrimitiveMode = PrimitiveMode.TRIANGLES
    targets: List[Dict[str, Int32]] = Field(default_factory=list)


class Mesh(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("primitives",)

    primitives: List[MeshPrimitive] = Field(default_factory=list)
    weights: List[float] = Field(default_factory=list)
    name: Optional[str] = None


class Node(ExtensibleObject):
    camera: Optional[Int32] = None
    children: List[Int32] = Field(default_factory=list)
    skin: Optional[Int32] = None
    matrix: List[float] = Field(
        default_factory=lambda: [
            1.0, 0.0, 0.0, 0.0,
            0.0, 1.0, 0.0, 0.0,
            0.0, 0.0, 1.0, 0.0,
            0.0, 0.0, 0.0, 1.0,
        ]
    )
    mesh: Optional[Int32] = None
    rotation: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0, 1.0])
    scale: List[float] = Field(default_factory=lambda: [1.0, 1.0, 1.0])
    translation: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    weights: List[float] = Field(default_factory=list)
    name: Optional[str] = None


class Sampler(ExtensibleObject):
    mag_filter: Optional[MagFilter] = None
    min_filter: Optional[MinFilter] = None
    wrap_s: WrapMode = WrapMode.REPEAT
    wrap_t: WrapMode = WrapMode.REPEAT
    name: Optional[str] = None


class Scene(ExtensibleObject):
    nodes: List[Int32] = Field(default_factory=list)
    name: Optional[str] = None


class Skin(ExtensibleObject):
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("joints",)

    inverse_bind_matrices: Optional[Int32] = None
    skeleton: Optional[Int32] = None
    joints: List[Int32] = Field(default_factory=list)
    name: Optional[str] = None


class Texture(ExtensibleObject):
    sampler: Optional[Int32] = None
    source: Optional[Int32] = None
    name: Optional[str] = None


class Gltf(ExtensibleObject):
    """Root of the typed object graph."""
    REQUIRED_PROPERTIES: ClassVar[Tuple[str, ...]] = ("asset",)

    extensions_used: List[str] = Field(default_factory=list)
    extensions_required: List[str] = Field(default_factory=list)
    accessors: List[Accessor] = Field(default_factory=list)
    animations: List[Animation] = Field(default_factory=list)
    asset: Asset = Field(default_factory=Asset)
    buffers: List[Buffer] = Field(default_factory=list)
    buffer_views: List[BufferView] = Field(default_factory=list)
    cameras: List[Camera] = Field(default_factory=list)
    images: List[Image] = Field(default_factory=list)
    materials: List[Material] = Field(default_factory=list)
    meshes: List[Mesh] = Field(default_factory=list)
    nodes: List[Node] = Field(default_factory=list)
    samplers: List[Sampler] = Field(default_factory=list)
    scene: Optional[Int32] = None
    scenes: List[Scene] = Field(default_factory=list)
    skins: List[Skin] = Field(default_factory=list)
    textures: List[Texture] = Field(default_factory=list)
