"""
Model blob reader / writer.

Format (little-endian, no header):
    int32   vertexCount
    int32   indexCount
    int16   animationCount
    [vertexCount * bytesPerVertex]  vertex data (see wobj.buffers)
    [indexCount * bytesPerIndex]    index data
    float32[3] boundsMin
    float32[3] boundsMax
    if animationCount > 0:
        per animation:
            utf     name (int16 byte length + UTF-8)
            float32 duration
            int32   channelCount
            per channel:
                int16   targetNodeIndex
                int32   byteLen, (t, x, y, z) float32 per position key
                int32   byteLen, (t, w, x, y, z) float32 per rotation key
                int32   byteLen, (t, x, y, z) float32 per scale key
        int16 nodeCount
        per node:
            uint8       childCount
            int16       childStartIndex       (only if childCount > 0)
            float32[16] localTransform        (row-major)
            int16       boneId                (-1 if unbound)
            float32[16] inverseBindTransform  (only if boneId != -1)
    if subsets were requested:
        int16 subsetCount
        per subset: utf name, int32 start, int32 end

The key-array byteLen is a byte count (keys * 16 or keys * 20). This is
deliberately not wire-compatible with blobs from converters that wrote the
float count there (keys * 4 or keys * 5).
"""

import io
import struct
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from wobj.buffers import BoundingBox, VertexBuffer, VertexFormat, bytes_per_index, decode_indices, encode_indices
from wobj.geometry import MeshSubset
from wobj.hierarchy import NO_BONE, FlatNode
from wobj.keyframes import ReducedAnimation, ReducedChannel
from wobj.scene import QuatKey, VectorKey


@dataclass
class ModelBlob:
    vertices: VertexBuffer
    indices: np.ndarray
    bounds: BoundingBox
    animations: List[ReducedAnimation] = field(default_factory=list)
    nodes: List[FlatNode] = field(default_factory=list)
    subsets: Optional[List[MeshSubset]] = None

    @property
    def animated(self):
        return len(self.animations) > 0


# ============================================================
# Writing
# ============================================================

class BlobWriter:
    def __init__(self, f):
        self.f = f

    def byte(self, v):
        self.f.write(struct.pack('<B', v))

    def short(self, v):
        self.f.write(struct.pack('<h', v))

    def int(self, v):
        self.f.write(struct.pack('<i', v))

    def float(self, v):
        self.f.write(struct.pack('<f', v))

    def floats(self, values):
        values = np.asarray(values, dtype='<f4').reshape(-1)
        self.f.write(values.tobytes())

    def utf(self, s):
        data = s.encode('utf-8')
        self.short(len(data))
        self.f.write(data)

    def mat4(self, m):
        self.floats(np.asarray(m).reshape(16))

    def vector_keys(self, keys):
        self.int(len(keys) * 4 * 4)
        for k in keys:
            self.floats((k.time,) + tuple(k.value))

    def quat_keys(self, keys):
        self.int(len(keys) * 5 * 4)
        for k in keys:
            self.floats((k.time,) + tuple(k.value))


def write_blob(f, blob):
    w = BlobWriter(f)
    vertex_count = len(blob.vertices)

    w.int(vertex_count)
    w.int(len(blob.indices))
    w.short(len(blob.animations))
    f.write(blob.vertices.to_bytes())
    f.write(encode_indices(blob.indices, vertex_count))
    w.floats(blob.bounds.min)
    w.floats(blob.bounds.max)

    if blob.animated:
        for anim in blob.animations:
            w.utf(anim.name)
            w.float(anim.duration)
            w.int(len(anim.channels))
            for ch in anim.channels:
                w.short(ch.node_index)
                w.vector_keys(ch.position_keys)
                w.quat_keys(ch.rotation_keys)
                w.vector_keys(ch.scaling_keys)

        w.short(len(blob.nodes))
        for node in blob.nodes:
            w.byte(node.child_count)
            if node.child_count > 0:
                w.short(node.child_start)
            w.mat4(node.transform)
            w.short(node.bone_id)
            if node.bone_id != NO_BONE:
                w.mat4(node.inverse_bind)

    if blob.subsets is not None:
        w.short(len(blob.subsets))
        for subset in blob.subsets:
            w.utf(subset.name)
            w.int(subset.start)
            w.int(subset.end)


def encode_blob(blob):
    buf = io.BytesIO()
    write_blob(buf, blob)
    return buf.getvalue()


# ============================================================
# Reading
# ============================================================

class BlobReader:
    def __init__(self, data, offset=0):
        self.data = data
        self.offset = offset

    def unpack(self, fmt):
        values = struct.unpack_from(fmt, self.data, self.offset)
        self.offset += struct.calcsize(fmt)
        return values

    def byte(self):
        return self.unpack('<B')[0]

    def short(self):
        return self.unpack('<h')[0]

    def int(self):
        return self.unpack('<i')[0]

    def float(self):
        return self.unpack('<f')[0]

    def bytes(self, n):
        raw = self.data[self.offset:self.offset + n]
        if len(raw) != n:
            raise ValueError(f"Truncated blob: wanted {n} bytes at offset {self.offset}")
        self.offset += n
        return raw

    def floats(self, n):
        return np.frombuffer(self.bytes(n * 4), dtype='<f4').astype(np.float32)

    def utf(self):
        return self.bytes(self.short()).decode('utf-8')

    def mat4(self):
        return self.floats(16).reshape(4, 4)

    def keys(self, width, key_type):
        count = self.int() // (width * 4)
        out = []
        for _ in range(count):
            values = self.unpack(f'<{width}f')
            out.append(key_type(values[0], tuple(values[1:])))
        return out


def read_blob(data, with_subsets=False):
    """Parse a model blob produced by write_blob."""
    r = BlobReader(data)
    vertex_count = r.int()
    index_count = r.int()
    animation_count = r.short()

    fmt = VertexFormat(skinned=animation_count > 0)
    vertices = VertexBuffer.from_bytes(fmt, r.bytes(vertex_count * fmt.bytes_per_vertex), vertex_count)
    indices = decode_indices(r.bytes(index_count * bytes_per_index(vertex_count)), index_count, vertex_count)
    bounds = BoundingBox(r.floats(3), r.floats(3))
    blob = ModelBlob(vertices, indices, bounds)

    if animation_count > 0:
        for _ in range(animation_count):
            anim = ReducedAnimation(r.utf(), r.float())
            for _ in range(r.int()):
                node_index = r.short()
                positions = r.keys(4, VectorKey)
                rotations = r.keys(5, QuatKey)
                scales = r.keys(4, VectorKey)
                anim.channels.append(ReducedChannel(node_index, positions, rotations, scales))
            blob.animations.append(anim)

        for _ in range(r.short()):
            child_count = r.byte()
            child_start = r.short() if child_count > 0 else 0
            transform = r.mat4()
            node = FlatNode("", child_count, child_start, transform)
            node.bone_id = r.short()
            if node.bone_id != NO_BONE:
                node.inverse_bind = r.mat4()
            blob.nodes.append(node)

    if with_subsets:
        blob.subsets = []
        for _ in range(r.short()):
            blob.subsets.append(MeshSubset(r.utf(), r.int(), r.int()))
    return blob
