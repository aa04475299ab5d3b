"""Typed, strided read access to accessor elements over resolved buffer data."""

from enum import Enum
from typing import Dict, Iterator, Optional, Tuple, Union

import numpy as np

from gltfread.kernel.model import Accessor, AccessorType, ComponentType, Gltf

Element = Union[int, float, Tuple[Union[int, float], ...]]

# glTF componentType : numpy dtype
COMPONENT_DTYPES: Dict[ComponentType, str] = {
    ComponentType.BYTE: "<i1",
    ComponentType.UNSIGNED_BYTE: "<u1",
    ComponentType.SHORT: "<i2",
    ComponentType.UNSIGNED_SHORT: "<u2",
    ComponentType.UNSIGNED_INT: "<u4",
    ComponentType.FLOAT: "<f4",
}

COMPONENT_COUNTS: Dict[AccessorType, int] = {
    AccessorType.SCALAR: 1,
    AccessorType.VEC2: 2,
    AccessorType.VEC3: 3,
    AccessorType.VEC4: 4,
    AccessorType.MAT2: 4,
    AccessorType.MAT3: 9,
    AccessorType.MAT4: 16,
}

_MATRIX_ROWS: Dict[AccessorType, int] = {
    AccessorType.MAT2: 2,
    AccessorType.MAT3: 3,
    AccessorType.MAT4: 4,
}

_SPARSE_INDEX_DTYPES: Dict[ComponentType, str] = {
    ComponentType.UNSIGNED_BYTE: "<u1",
    ComponentType.UNSIGNED_SHORT: "<u2",
    ComponentType.UNSIGNED_INT: "<u4",
}

# Divisors used when an integer accessor is normalized to [0, 1] / [-1, 1]
_NORMALIZE_DIVISORS: Dict[ComponentType, int] = {
    ComponentType.BYTE: 127,
    ComponentType.UNSIGNED_BYTE: 255,
    ComponentType.SHORT: 32767,
    ComponentType.UNSIGNED_SHORT: 65535,
    ComponentType.UNSIGNED_INT: 4294967295,
}


class AccessorViewStatus(str, Enum):
    VALID = "valid"
    INVALID_ACCESSOR_INDEX = "invalid_accessor_index"
    INVALID_BUFFER_VIEW_INDEX = "invalid_buffer_view_index"
    INVALID_BUFFER_INDEX = "invalid_buffer_index"
    UNRESOLVED_BUFFER = "unresolved_buffer"
    BUFFER_TOO_SMALL = "buffer_too_small"
    BUFFER_VIEW_TOO_SMALL = "buffer_view_too_small"
    INVALID_BYTE_STRIDE = "invalid_byte_stride"
    INVALID_SPARSE = "invalid_sparse"


def component_offsets(accessor_type: AccessorType, component_size: int) -> Tuple[int, ...]:
    """Byte offset of each component inside one element.

    Matrix columns start on 4-byte boundaries, which pads MAT2/MAT3 of
    byte or short components.
    """
    rows = _MATRIX_ROWS.get(accessor_type)
    if rows is None:
        return tuple(i * component_size for i in range(COMPONENT_COUNTS[accessor_type]))
    column_size = rows * component_size
    column_stride = column_size + (-column_size % 4)
    return tuple(c * column_stride + r * component_size for c in range(rows) for r in range(rows))


def element_size(accessor_type: AccessorType, component_type: ComponentType) -> int:
    size = np.dtype(COMPONENT_DTYPES[component_type]).itemsize
    total = component_offsets(accessor_type, size)[-1] + size
    if accessor_type in (AccessorType.MAT2, AccessorType.MAT3):
        total += -total % 4
    return total


def gather_elements(
    data: bytes,
    offset: int,
    count: int,
    stride: int,
    offsets: Tuple[int, ...],
    dtype: np.dtype,
) -> np.ndarray:
    """Read ``count`` strided elements into a ``(count, len(offsets))`` array."""
    if count == 0:
        return np.zeros((0, len(offsets)), dtype=dtype)
    span = offsets[-1] + dtype.itemsize
    length = (count - 1) * stride + span
    # one row of raw bytes per element, then pick out each component's bytes
    rows = np.lib.stride_tricks.as_strided(
        np.frombuffer(data, dtype=np.uint8, offset=offset, count=length),
        shape=(count, span),
        strides=(stride, 1),
        writeable=False,
    )
    byte_index = np.add.outer(np.asarray(offsets), np.arange(dtype.itemsize))
    return np.ascontiguousarray(rows[:, byte_index]).view(dtype).reshape(count, len(offsets))


class AccessorView:
    """Read the elements of ``model.accessors[accessor_index]``.

    ``array`` holds the decoded elements: shape ``(count,)`` for scalars and
    ``(count, components)`` otherwise, matrices flattened in column-major
    order. Indexing and iteration yield plain numbers and tuples.
    Normalized integer accessors decode to float64. When the view cannot be
    read, ``status`` says why and the view is empty.
    """

    def __init__(self, model: Gltf, accessor_index: int):
        self.status = AccessorViewStatus.VALID
        self.accessor: Optional[Accessor] = None
        self.array = np.zeros(0)

        if not 0 <= accessor_index < len(model.accessors):
            self.status = AccessorViewStatus.INVALID_ACCESSOR_INDEX
            return
        accessor = self.accessor = model.accessors[accessor_index]

        dtype = np.dtype(COMPONENT_DTYPES[accessor.component_type])
        offsets = component_offsets(accessor.type, dtype.itemsize)
        size = element_size(accessor.type, accessor.component_type)

        if accessor.buffer_view is None:
            # sparse-only accessors start from zeros
            values = np.zeros((accessor.count, len(offsets)), dtype=dtype)
        else:
            resolved = self._resolve(model, accessor.buffer_view, accessor.byte_offset)
            if resolved is None:
                return
            data, start, available, view_stride = resolved
            stride = view_stride or size
            if stride < size:
                self.status = AccessorViewStatus.INVALID_BYTE_STRIDE
                return
            if accessor.count > 0 and stride * (accessor.count - 1) + size > available:
                self.status = AccessorViewStatus.BUFFER_VIEW_TOO_SMALL
                return
            values = gather_elements(data, start, accessor.count, stride, offsets, dtype)

        if accessor.sparse is not None:
            values = self._apply_sparse(model, values, offsets, size, dtype)
            if values is None:
                return

        divisor = _NORMALIZE_DIVISORS.get(accessor.component_type)
        if accessor.normalized and divisor is not None:
            values = np.maximum(values / float(divisor), -1.0)
        self.array = values.reshape(-1) if values.shape[1] == 1 else values

    def _resolve(
        self, model: Gltf, view_index: int, byte_offset: int
    ) -> Optional[Tuple[bytes, int, int, Optional[int]]]:
        """Buffer bytes, absolute start, bytes available and byteStride for a view."""
        if not 0 <= view_index < len(model.buffer_views):
            self.status = AccessorViewStatus.INVALID_BUFFER_VIEW_INDEX
            return None
        view = model.buffer_views[view_index]
        if not 0 <= view.buffer < len(model.buffers):
            self.status = AccessorViewStatus.INVALID_BUFFER_INDEX
            return None
        data = model.buffers[view.buffer].data
        if data is None:
            self.status = AccessorViewStatus.UNRESOLVED_BUFFER
            return None
        if view.byte_offset + view.byte_length > len(data):
            self.status = AccessorViewStatus.BUFFER_TOO_SMALL
            return None
        if byte_offset > view.byte_length:
            self.status = AccessorViewStatus.BUFFER_VIEW_TOO_SMALL
            return None
        return bytes(data), view.byte_offset + byte_offset, view.byte_length - byte_offset, view.byte_stride

    def _apply_sparse(
        self,
        model: Gltf,
        values: np.ndarray,
        offsets: Tuple[int, ...],
        size: int,
        dtype: np.dtype,
    ) -> Optional[np.ndarray]:
        sparse = self.accessor.sparse
        index_dtype = _SPARSE_INDEX_DTYPES.get(sparse.indices.component_type)
        if index_dtype is None:
            self.status = AccessorViewStatus.INVALID_SPARSE
            return None
        index_dtype = np.dtype(index_dtype)

        indices = self._resolve(model, sparse.indices.buffer_view, sparse.indices.byte_offset)
        if indices is None:
            return None
        replacements = self._resolve(model, sparse.values.buffer_view, sparse.values.byte_offset)
        if replacements is None:
            return None
        index_data, index_start, index_available, _ = indices
        value_data, value_start, value_available, _ = replacements
        if index_available < sparse.count * index_dtype.itemsize or value_available < sparse.count * size:
            self.status = AccessorViewStatus.INVALID_SPARSE
            return None

        targets = np.frombuffer(index_data, dtype=index_dtype, offset=index_start, count=sparse.count)
        if sparse.count and int(targets.max()) >= self.accessor.count:
            self.status = AccessorViewStatus.INVALID_SPARSE
            return None
        values = np.array(values)
        values[targets] = gather_elements(value_data, value_start, sparse.count, size, offsets, dtype)
        return values

    @property
    def valid(self) -> bool:
        return self.status == AccessorViewStatus.VALID

    def __len__(self) -> int:
        return len(self.array)

    def __getitem__(self, index: int) -> Element:
        count = len(self)
        if index < 0:
            index += count
        if not 0 <= index < count:
            raise IndexError(f"accessor element {index} out of range for {count} elements")
        item = self.array[index]
        return item.item() if np.ndim(item) == 0 else tuple(item.tolist())

    def __iter__(self) -> Iterator[Element]:
        for item in self.array.tolist():
            yield tuple(item) if isinstance(item, list) else item
