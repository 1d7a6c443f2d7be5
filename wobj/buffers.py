"""
Vertex / index buffer layout.

Every vertex is a run of little-endian float32 values:

    float3 position
    float3 normal
    float2 texcoord
    float4 boneIndices   (animated scenes only)
    float4 boneWeights   (animated scenes only)

Index width depends on the total vertex count: 1 byte below 255 vertices,
2 bytes below 65535, 4 bytes otherwise.
"""

from dataclasses import dataclass, field

import numpy as np

UINT8_MAX = 0xFF
UINT16_MAX = 0xFFFF


# ============================================================
# Formats
# ============================================================

@dataclass(frozen=True)
class VertexFormat:
    skinned: bool = False

    @property
    def attributes(self):
        attrs = [("position", 3), ("normal", 3), ("texcoord", 2)]
        if self.skinned:
            attrs += [("bone_indices", 4), ("bone_weights", 4)]
        return attrs

    @property
    def floats_per_vertex(self):
        return sum(n for _, n in self.attributes)

    @property
    def bytes_per_vertex(self):
        return self.floats_per_vertex * 4


def index_dtype(vertex_count):
    """Narrowest unsigned little-endian index type able to address vertex_count."""
    if vertex_count < UINT8_MAX:
        return np.dtype("u1")
    if vertex_count < UINT16_MAX:
        return np.dtype("<u2")
    return np.dtype("<u4")


def bytes_per_index(vertex_count):
    return index_dtype(vertex_count).itemsize


# ============================================================
# Buffers
# ============================================================

@dataclass
class VertexBuffer:
    """Per-attribute float32 columns, packed into interleaved bytes on demand."""
    format: VertexFormat
    position: np.ndarray
    normal: np.ndarray
    texcoord: np.ndarray
    bone_indices: np.ndarray = None
    bone_weights: np.ndarray = None

    def __len__(self):
        return len(self.position)

    def to_bytes(self):
        columns = [getattr(self, name).reshape(-1, n) for name, n in self.format.attributes]
        return np.hstack(columns).astype("<f4").tobytes()

    @classmethod
    def from_bytes(cls, fmt, data, count):
        if count:
            flat = np.frombuffer(data, dtype="<f4", count=count * fmt.floats_per_vertex)
        else:
            flat = np.zeros(0, dtype="<f4")
        flat = flat.reshape(count, fmt.floats_per_vertex)
        columns = {}
        start = 0
        for name, n in fmt.attributes:
            columns[name] = flat[:, start:start + n].astype(np.float32)
            start += n
        return cls(format=fmt, **columns)


def encode_indices(indices, vertex_count):
    return np.asarray(indices).astype(index_dtype(vertex_count)).tobytes()


def decode_indices(data, count, vertex_count):
    if not count:
        return np.zeros(0, dtype=np.uint32)
    return np.frombuffer(data, dtype=index_dtype(vertex_count), count=count).astype(np.uint32)


# ============================================================
# Bounds
# ============================================================

@dataclass
class BoundingBox:
    min: np.ndarray = field(default_factory=lambda: np.full(3, np.inf))
    max: np.ndarray = field(default_factory=lambda: np.full(3, -np.inf))

    @property
    def empty(self):
        return bool(np.any(self.min > self.max))

    def add(self, points):
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0:
            return
        self.min = np.minimum(self.min, points.min(axis=0))
        self.max = np.maximum(self.max, points.max(axis=0))
