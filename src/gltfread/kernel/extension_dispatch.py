"""Extension dispatch: per (parent type, extension name) typed readers and states.

Each extension found under an object's ``extensions`` key is resolved to one
of three states:

- TYPED: read with the registered reader, stored as its result
- GENERIC_CAPTURE: stored as the raw JSON value, unparsed
- DISABLED: dropped entirely

Explicitly set states win (a state scoped to the parent type beats a global
one); otherwise an extension is TYPED when a reader is registered for the
parent type and GENERIC_CAPTURE when not.

A typed reader is either an ExtensibleObject subclass, read field by field
like every other glTF object, or a function taking the extension's JSON
object and returning ``(extension value, errors, warnings)``.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

from gltfread.kernel.model import (
    Buffer,
    BufferView,
    ExtensibleObject,
    Gltf,
    Material,
    MeshPrimitive,
    Node,
    Texture,
    TextureInfo,
)
from gltfread.kernel.extensions import (
    CesiumRtc,
    ExtMeshGpuInstancing,
    ExtMeshoptCompression,
    ExtMeshoptCompressionBuffer,
    KhrDracoMeshCompression,
    KhrMaterialsUnlit,
    KhrTextureBasisu,
    KhrTextureTransform,
)

ExtensionReader = Callable[[Dict[str, Any]], Tuple[Any, List[str], List[str]]]
ExtensionHandler = Union[Type[ExtensibleObject], ExtensionReader]


class ExtensionState(str, Enum):
    """How an extension is read."""

    TYPED = "typed"
    GENERIC_CAPTURE = "generic_capture"
    DISABLED = "disabled"


def _parent_chain(parent_type: Type[ExtensibleObject]):
    """Parent type and its ExtensibleObject bases, most specific first."""
    for klass in parent_type.__mro__:
        if isinstance(klass, type) and issubclass(klass, ExtensibleObject):
            yield klass


class ExtensionRegistry:
    """Typed extension readers keyed by (parent object type, extension name)."""

    def __init__(self):
        self._entries: Dict[Tuple[Type[ExtensibleObject], str], ExtensionHandler] = {}

    def register(
        self,
        parent_type: Type[ExtensibleObject],
        handler: ExtensionHandler,
        name: Optional[str] = None,
    ) -> None:
        """Register ``handler`` as the typed reader for ``name`` on ``parent_type``.

        Args:
            parent_type: Object type the extension attaches to
            handler: ExtensibleObject subclass, or a reader function
            name: Extension name; defaults to the model's ``EXTENSION_NAME``

        Raises:
            TypeError: ``handler`` is neither a model class nor callable
            ValueError: No extension name was given or declared
        """
        if isinstance(handler, type):
            if not issubclass(handler, ExtensibleObject):
                raise TypeError(f"{handler.__name__} is not an ExtensibleObject subclass")
            name = name or handler.EXTENSION_NAME
        elif not callable(handler):
            raise TypeError(f"extension handler must be a model class or a callable, got {handler!r}")
        if not name:
            label = getattr(handler, "__name__", repr(handler))
            raise ValueError(f"{label} has no EXTENSION_NAME and no name was given")
        self._entries[(parent_type, name)] = handler

    def unregister(self, parent_type: Type[ExtensibleObject], name: str) -> None:
        self._entries.pop((parent_type, name), None)

    def lookup(
        self, parent_type: Type[ExtensibleObject], name: str
    ) -> Optional[ExtensionHandler]:
        """Find the typed reader for ``name`` on ``parent_type`` or one of its bases."""
        for klass in _parent_chain(parent_type):
            handler = self._entries.get((klass, name))
            if handler is not None:
                return handler
        return None

    def copy(self) -> "ExtensionRegistry":
        clone = ExtensionRegistry()
        clone._entries = dict(self._entries)
        return clone

    def __len__(self) -> int:
        return len(self._entries)


def default_registry() -> ExtensionRegistry:
    """Registry with every extension model shipped with gltfread."""
    registry = ExtensionRegistry()
    registry.register(Gltf, CesiumRtc)
    registry.register(MeshPrimitive, KhrDracoMeshCompression)
    registry.register(BufferView, ExtMeshoptCompression)
    registry.register(Buffer, ExtMeshoptCompressionBuffer)
    registry.register(Texture, KhrTextureBasisu)
    registry.register(TextureInfo, KhrTextureTransform)
    registry.register(Material, KhrMaterialsUnlit)
    registry.register(Node, ExtMeshGpuInstancing)
    return registry


class JsonReaderOptions:
    """Reader configuration shared by every call made through one reader.

    Not safe to mutate while a read is in flight; readers take a ``copy()``
    at the start of each call, so changes only affect later calls.
    """

    def __init__(
        self,
        capture_unknown_properties: bool = True,
        registry: Optional[ExtensionRegistry] = None,
    ):
        self.capture_unknown_properties = capture_unknown_properties
        self.registry = registry if registry is not None else default_registry()
        self._states: Dict[Tuple[Optional[Type[ExtensibleObject]], str], ExtensionState] = {}

    def set_capture_unknown_properties(self, capture: bool) -> None:
        self.capture_unknown_properties = capture

    def set_extension_state(
        self,
        name: str,
        state: ExtensionState,
        parent_type: Optional[Type[ExtensibleObject]] = None,
    ) -> None:
        """Set the state of an extension, globally or for one parent type."""
        self._states[(parent_type, name)] = ExtensionState(state)

    def clear_extension_state(
        self, name: str, parent_type: Optional[Type[ExtensibleObject]] = None
    ) -> None:
        self._states.pop((parent_type, name), None)

    def get_extension_state(
        self, name: str, parent_type: Optional[Type[ExtensibleObject]] = None
    ) -> Optional[ExtensionState]:
        """Explicitly set state for exactly this key, or None."""
        return self._states.get((parent_type, name))

    def resolve_extension_state(
        self, parent_type: Type[ExtensibleObject], name: str
    ) -> ExtensionState:
        """Effective state for ``name`` found on an object of ``parent_type``."""
        for klass in _parent_chain(parent_type):
            state = self._states.get((klass, name))
            if state is not None:
                return state
        state = self._states.get((None, name))
        if state is not None:
            return state
        if self.registry.lookup(parent_type, name) is not None:
            return ExtensionState.TYPED
        return ExtensionState.GENERIC_CAPTURE

    def copy(self) -> "JsonReaderOptions":
        clone = JsonReaderOptions(
            capture_unknown_properties=self.capture_unknown_properties,
            registry=self.registry.copy(),
        )
        clone._states = dict(self._states)
        return clone
