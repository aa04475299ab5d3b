"""Tests for extension dispatch: typed, generic capture and disabled states."""

import json
from typing import ClassVar, Tuple, Union

import pytest

from gltfread import GltfReader, GltfReaderOptions
from gltfread.kernel.extension_dispatch import (
    ExtensionRegistry,
    ExtensionState,
    JsonReaderOptions,
    default_registry,
)
from gltfread.kernel.extensions import (
    CesiumRtc,
    KhrDracoMeshCompression,
    KhrTextureTransform,
)
from gltfread.kernel.model import (
    ExtensibleObject,
    Gltf,
    MaterialNormalTextureInfo,
    MeshPrimitive,
    Node,
    TextureInfo,
)

DRACO_DOCUMENT = json.dumps({
    "asset": {"version": "2.0"},
    "meshes": [{
        "primitives": [{
            "attributes": {},
            "extensions": {
                "KHR_draco_mesh_compression": {
                    "bufferView": 1,
                    "attributes": {"POSITION": 0},
                },
            },
        }],
    }],
}).encode("utf-8")

CUSTOM_DOCUMENT = json.dumps({
    "asset": {"version": "2.0"},
    "extensions": {
        "A": {"test": "Hello World"},
        "B": {"another": "Goodbye World"},
    },
}).encode("utf-8")

NO_DECOMPRESSION = GltfReaderOptions(decode_draco=False)


def _primitive(result):
    return result.model.meshes[0].primitives[0]


class TestExtensionStates:
    """The same document read three ways for one extension name."""

    def test_typed_by_default_when_registered(self):
        """A registered extension is read into its typed model."""
        reader = GltfReader()
        result = reader.read_gltf(DRACO_DOCUMENT, NO_DECOMPRESSION)
        assert result.errors == []

        draco = _primitive(result).get_extension(KhrDracoMeshCompression)
        assert draco is not None
        assert draco.buffer_view == 1
        assert draco.attributes == {"POSITION": 0}
        assert _primitive(result).get_generic_extension("KHR_draco_mesh_compression") is None

    def test_generic_capture(self):
        """GenericCapture stores the raw JSON with the same nested keys."""
        reader = GltfReader()
        reader.options.set_extension_state("KHR_draco_mesh_compression", ExtensionState.GENERIC_CAPTURE)
        result = reader.read_gltf(DRACO_DOCUMENT, NO_DECOMPRESSION)

        primitive = _primitive(result)
        assert primitive.get_extension(KhrDracoMeshCompression) is None
        generic = primitive.get_generic_extension("KHR_draco_mesh_compression")
        assert generic == {"bufferView": 1, "attributes": {"POSITION": 0}}

    def test_disabled(self):
        """Disabled drops the extension from both extensions and unknown properties."""
        reader = GltfReader()
        reader.options.set_extension_state("KHR_draco_mesh_compression", ExtensionState.DISABLED)
        result = reader.read_gltf(DRACO_DOCUMENT, NO_DECOMPRESSION)

        primitive = _primitive(result)
        assert "KHR_draco_mesh_compression" not in primitive.extensions
        assert "KHR_draco_mesh_compression" not in primitive.unknown_properties
        assert primitive.extensions == {}

    def test_state_changes_apply_to_later_calls_only(self):
        """The same reader reads typed, then generic, then disabled."""
        reader = GltfReader()
        first = reader.read_gltf(DRACO_DOCUMENT, NO_DECOMPRESSION)
        reader.options.set_extension_state("KHR_draco_mesh_compression", ExtensionState.GENERIC_CAPTURE)
        second = reader.read_gltf(DRACO_DOCUMENT, NO_DECOMPRESSION)
        reader.options.set_extension_state("KHR_draco_mesh_compression", ExtensionState.DISABLED)
        third = reader.read_gltf(DRACO_DOCUMENT, NO_DECOMPRESSION)

        assert isinstance(_primitive(first).extensions["KHR_draco_mesh_compression"], KhrDracoMeshCompression)
        assert isinstance(_primitive(second).extensions["KHR_draco_mesh_compression"], dict)
        assert _primitive(third).extensions == {}

    def test_unregistered_extensions_are_captured(self):
        """Unknown extension names default to GenericCapture."""
        reader = GltfReader()
        result = reader.read_gltf(CUSTOM_DOCUMENT)
        assert result.errors == []
        assert result.model.get_generic_extension("A") == {"test": "Hello World"}
        assert result.model.get_generic_extension("B")["another"] == "Goodbye World"

    def test_unregistered_extensions_can_be_disabled(self):
        """Disabling custom extensions leaves the extensions map empty."""
        reader = GltfReader()
        reader.options.set_extension_state("A", ExtensionState.DISABLED)
        reader.options.set_extension_state("B", ExtensionState.DISABLED)
        result = reader.read_gltf(CUSTOM_DOCUMENT)
        assert result.model.extensions == {}
        assert result.model.unknown_properties == {}

    def test_typed_without_registered_model_falls_back_to_capture(self):
        """Forcing TYPED on an extension with no model keeps the raw JSON."""
        reader = GltfReader()
        reader.options.set_extension_state("A", ExtensionState.TYPED)
        result = reader.read_gltf(CUSTOM_DOCUMENT)
        assert result.model.get_generic_extension("A") == {"test": "Hello World"}

    def test_missing_draco_decoder_warns(self):
        """Typed Draco with decompression on and no decoder is a warning."""
        result = GltfReader().read_gltf(DRACO_DOCUMENT)
        assert result.errors == []
        assert len(result.warnings) == 1
        assert "KHR_draco_mesh_compression" in result.warnings[0]


def test_cesium_rtc():
    """CESIUM_RTC on the root is read as a typed extension."""
    document = b'{"asset": {"version": "2.0"}, "extensions": {"CESIUM_RTC": {"center": [6378137.0, 0.0, 0.0]}}}'
    result = GltfReader().read_gltf(document)
    rtc = result.model.get_extension(CesiumRtc)
    assert rtc is not None
    assert rtc.center == [6378137.0, 0.0, 0.0]


def test_typed_extension_diagnostics_are_tagged():
    """Typed extension problems are merged with the extension name as prefix."""
    document = b'{"asset": {"version": "2.0"}, "extensions": {"CESIUM_RTC": {"center": "origin"}}}'
    result = GltfReader().read_gltf(document)
    assert result.errors == ["[CESIUM_RTC] extensions.CESIUM_RTC.center: expected an array, got string"]
    assert result.model.get_extension(CesiumRtc).center == [0.0, 0.0, 0.0]


def test_extensions_must_be_an_object():
    """A non-object extensions value is an error and yields no extensions."""
    result = GltfReader().read_gltf(b'{"asset": {"version": "2.0"}, "extensions": [1]}')
    assert result.errors == ["extensions: expected an object, got array"]
    assert result.model.extensions == {}


class TestResolution:
    """Tests for JsonReaderOptions state resolution."""

    def test_default_states(self):
        """TYPED with a registered model, GENERIC_CAPTURE without."""
        options = JsonReaderOptions()
        assert options.resolve_extension_state(MeshPrimitive, "KHR_draco_mesh_compression") is ExtensionState.TYPED
        assert options.resolve_extension_state(Node, "KHR_draco_mesh_compression") is ExtensionState.GENERIC_CAPTURE
        assert options.resolve_extension_state(Gltf, "VENDOR_custom") is ExtensionState.GENERIC_CAPTURE

    def test_scoped_state_beats_global(self):
        """A state set for a parent type wins over the global state for that name."""
        options = JsonReaderOptions()
        options.set_extension_state("EXT_x", ExtensionState.DISABLED)
        options.set_extension_state("EXT_x", ExtensionState.GENERIC_CAPTURE, parent_type=Node)
        assert options.resolve_extension_state(Node, "EXT_x") is ExtensionState.GENERIC_CAPTURE
        assert options.resolve_extension_state(Gltf, "EXT_x") is ExtensionState.DISABLED

    def test_scoped_state_follows_subclasses(self):
        """A state scoped to TextureInfo also applies to its subclasses."""
        options = JsonReaderOptions()
        options.set_extension_state("KHR_texture_transform", ExtensionState.DISABLED, parent_type=TextureInfo)
        assert options.resolve_extension_state(
            MaterialNormalTextureInfo, "KHR_texture_transform"
        ) is ExtensionState.DISABLED

    def test_clear_state(self):
        """Clearing a state restores the default."""
        options = JsonReaderOptions()
        options.set_extension_state("CESIUM_RTC", ExtensionState.DISABLED)
        assert options.get_extension_state("CESIUM_RTC") is ExtensionState.DISABLED
        options.clear_extension_state("CESIUM_RTC")
        assert options.get_extension_state("CESIUM_RTC") is None
        assert options.resolve_extension_state(Gltf, "CESIUM_RTC") is ExtensionState.TYPED

    def test_copy_is_isolated(self):
        """Changes to a copy do not leak back into the original."""
        options = JsonReaderOptions()
        snapshot = options.copy()
        snapshot.set_extension_state("CESIUM_RTC", ExtensionState.DISABLED)
        snapshot.set_capture_unknown_properties(False)
        snapshot.registry.unregister(MeshPrimitive, "KHR_draco_mesh_compression")
        assert options.resolve_extension_state(Gltf, "CESIUM_RTC") is ExtensionState.TYPED
        assert options.capture_unknown_properties is True
        assert options.registry.lookup(MeshPrimitive, "KHR_draco_mesh_compression") is KhrDracoMeshCompression


class TestRegistry:
    """Tests for ExtensionRegistry."""

    def test_lookup_follows_mro(self):
        """A model registered on TextureInfo serves MaterialNormalTextureInfo."""
        registry = default_registry()
        assert registry.lookup(MaterialNormalTextureInfo, "KHR_texture_transform") is KhrTextureTransform

    def test_texture_transform_read_on_subclass(self):
        """KHR_texture_transform on a normalTexture is read as typed."""
        document = json.dumps({
            "asset": {"version": "2.0"},
            "materials": [{
                "normalTexture": {
                    "index": 0,
                    "extensions": {"KHR_texture_transform": {"offset": [0.5, 0], "rotation": 1.5}},
                },
            }],
        }).encode("utf-8")
        result = GltfReader().read_gltf(document)
        transform = result.model.materials[0].normal_texture.get_extension(KhrTextureTransform)
        assert transform.offset == [0.5, 0.0]
        assert transform.rotation == 1.5
        assert transform.scale == [1.0, 1.0]

    def test_custom_extension_model(self):
        """Callers can register their own typed extension models."""

        class VendorTag(ExtensibleObject):
            EXTENSION_NAME: ClassVar[str] = "VENDOR_tag"
            label: str = ""

        reader = GltfReader()
        reader.options.registry.register(Node, VendorTag)
        document = b'{"asset": {"version": "2.0"}, "nodes": [{"extensions": {"VENDOR_tag": {"label": "x"}}}]}'
        result = reader.read_gltf(document)
        assert result.model.nodes[0].get_extension(VendorTag).label == "x"

    def test_register_requires_a_name(self):
        """Models without EXTENSION_NAME need an explicit name."""
        registry = ExtensionRegistry()
        with pytest.raises(ValueError):
            registry.register(Node, ExtensibleObject)
        registry.register(Node, ExtensibleObject, name="VENDOR_empty")
        assert len(registry) == 1


def test_typed_extension_that_is_not_an_object_keeps_raw_value():
    """A typed extension with a non-object value is an error and stays available as raw JSON."""
    result = GltfReader().read_gltf(b'{"asset": {"version": "2.0"}, "extensions": {"CESIUM_RTC": 5}}')
    assert result.errors == [
        "[CESIUM_RTC] extensions.CESIUM_RTC: expected an object for CesiumRtc, got integer"
    ]
    assert result.model.get_extension(CesiumRtc) is None
    assert result.model.get_generic_extension("CESIUM_RTC") == 5


class VendorPair(ExtensibleObject):
    EXTENSION_NAME: ClassVar[str] = "VENDOR_pair"
    pair: Tuple[float, float] = (0.0, 0.0)
    label: str = ""


class VendorLabel(ExtensibleObject):
    EXTENSION_NAME: ClassVar[str] = "VENDOR_label"
    text: str = ""


PAIR_DOCUMENT = json.dumps({
    "asset": {"version": "2.0"},
    "nodes": [{"extensions": {"VENDOR_pair": {"pair": [1, 2], "label": "p"}}}],
}).encode("utf-8")


class TestCustomReaders:
    """Caller-registered typed readers."""

    def test_unreadable_field_is_an_error(self):
        """A field type with no property reader is an error, not an exception."""
        reader = GltfReader()
        reader.options.registry.register(Node, VendorPair)
        result = reader.read_gltf(PAIR_DOCUMENT)
        assert result.model is not None
        assert len(result.errors) == 1
        assert result.errors[0].startswith(
            "[VENDOR_pair] nodes[0].extensions.VENDOR_pair.pair: no property reader for"
        )
        pair = result.model.nodes[0].get_extension(VendorPair)
        assert pair.pair == (0.0, 0.0)
        assert pair.label == "p"

    def test_union_fields_read_the_matching_member(self):
        """Union fields take the first member that reads cleanly."""

        class VendorId(ExtensibleObject):
            EXTENSION_NAME: ClassVar[str] = "VENDOR_id"
            id: Union[int, str, None] = None

        reader = GltfReader()
        reader.options.registry.register(Node, VendorId)
        document = json.dumps({
            "asset": {"version": "2.0"},
            "nodes": [
                {"extensions": {"VENDOR_id": {"id": 7.0}}},
                {"extensions": {"VENDOR_id": {"id": "seven"}}},
                {"extensions": {"VENDOR_id": {"id": [7]}}},
            ],
        }).encode("utf-8")
        result = reader.read_gltf(document)
        ids = [node.get_extension(VendorId).id for node in result.model.nodes]
        assert ids == [7, "seven", None]
        assert len(result.errors) == 1
        assert result.errors[0].startswith("[VENDOR_id] nodes[2].extensions.VENDOR_id.id: array matches none of")

    def test_reader_function(self):
        """A function can be registered as the typed reader of an extension."""
        def read_label(value):
            text = value.get("text")
            if not isinstance(text, str):
                return VendorLabel(), ["text: expected a string"], []
            return VendorLabel(text=text), [], ["label read by function"]

        reader = GltfReader()
        reader.options.registry.register(Node, read_label, name="VENDOR_label")
        assert reader.options.resolve_extension_state(Node, "VENDOR_label") is ExtensionState.TYPED
        document = json.dumps({
            "asset": {"version": "2.0"},
            "nodes": [
                {"extensions": {"VENDOR_label": {"text": "hello"}}},
                {"extensions": {"VENDOR_label": {"text": 3}}},
            ],
        }).encode("utf-8")
        result = reader.read_gltf(document)
        assert result.model.nodes[0].get_extension(VendorLabel).text == "hello"
        assert result.model.nodes[1].get_extension(VendorLabel).text == ""
        assert result.errors == ["[VENDOR_label] nodes[1].extensions.VENDOR_label: text: expected a string"]
        assert result.warnings == ["[VENDOR_label] nodes[0].extensions.VENDOR_label: label read by function"]

    def test_failing_reader_function(self):
        """An exception from a reader function is an error; the raw JSON is kept."""
        def broken(value):
            raise KeyError("text")

        reader = GltfReader()
        reader.options.registry.register(Node, broken, name="VENDOR_label")
        document = b'{"asset": {"version": "2.0"}, "nodes": [{"extensions": {"VENDOR_label": {"x": 1}}}]}'
        result = reader.read_gltf(document)
        assert result.model is not None
        assert len(result.errors) == 1
        assert "extension reader failed" in result.errors[0]
        assert result.model.nodes[0].get_generic_extension("VENDOR_label") == {"x": 1}

    def test_register_rejects_bad_handlers(self):
        """Handlers are checked when they are registered."""
        registry = ExtensionRegistry()
        with pytest.raises(TypeError):
            registry.register(Node, dict, name="VENDOR_dict")
        with pytest.raises(TypeError):
            registry.register(Node, "VENDOR_label", name="VENDOR_label")
        with pytest.raises(ValueError):
            registry.register(Node, lambda value: (None, [], []))
        assert len(registry) == 0
