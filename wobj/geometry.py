"""
Geometry pass: scene graph -> one merged vertex buffer + one index buffer.

The node tree is walked depth-first, pre-order. Every triangle mesh found on
the way is baked into world space (handedness correction included) and
appended to the global buffers; in animated scenes each vertex also gets four
(bone id, weight) slots.
"""

import logging
from dataclasses import dataclass, field
from typing import List

import numpy as np

from wobj.bones import BoneIndexer
from wobj.buffers import BoundingBox, VertexBuffer, VertexFormat
from wobj.matrices import HANDEDNESS_CORRECTION, transform_normals, transform_points
from wobj.scene import PRIMITIVE_TRIANGLE

logger = logging.getLogger(__name__)

MAX_INFLUENCES = 4


@dataclass
class MeshSubset:
    name: str
    start: int  # first index in the global index buffer
    end: int    # one past the last index


@dataclass
class ConversionContext:
    """Everything a single conversion accumulates. Never shared between runs."""
    skinned: bool = False
    write_subsets: bool = False
    bones: BoneIndexer = field(default_factory=BoneIndexer)
    bounds: BoundingBox = field(default_factory=BoundingBox)
    subsets: List[MeshSubset] = field(default_factory=list)
    vertex_offset: int = 0
    index_offset: int = 0
    skipped_meshes: int = 0
    dropped_influences: int = 0
    _chunks: dict = field(init=False, repr=False, default_factory=lambda: {
        "position": [], "normal": [], "texcoord": [], "bone_indices": [], "bone_weights": [],
    })
    _indices: list = field(init=False, repr=False, default_factory=list)

    @property
    def vertex_format(self):
        return VertexFormat(skinned=self.skinned)

    def append(self, indices, **columns):
        for name, _ in self.vertex_format.attributes:
            self._chunks[name].append(columns[name])
        self._indices.append(indices)
        self.vertex_offset += len(columns["position"])
        self.index_offset += indices.size

    def vertex_buffer(self):
        fmt = self.vertex_format
        columns = {}
        for name, n in fmt.attributes:
            chunks = self._chunks[name]
            columns[name] = np.concatenate(chunks) if chunks else np.zeros((0, n), dtype=np.float32)
        return VertexBuffer(format=fmt, **columns)

    def index_buffer(self):
        if not self._indices:
            return np.zeros(0, dtype=np.uint32)
        return np.concatenate([i.reshape(-1) for i in self._indices]).astype(np.uint32)


# ============================================================
# Mesh merging
# ============================================================

def accepts_mesh(mesh):
    return mesh.primitive_type == PRIMITIVE_TRIANGLE and mesh.has_positions and mesh.has_faces


def merge_mesh(ctx, mesh, node_name, world):
    """Append one mesh to the global buffers. Returns False if the mesh was skipped."""
    if not accepts_mesh(mesh):
        logger.debug("  Skipping mesh '%s' on %s (primitive type %d)", mesh.name, node_name, mesh.primitive_type)
        ctx.skipped_meshes += 1
        return False

    n = mesh.num_vertices
    positions = transform_points(world, mesh.positions).astype(np.float32)
    ctx.bounds.add(positions)

    if mesh.has_normals:
        normals = transform_normals(world, mesh.normals).astype(np.float32)
    else:
        normals = np.zeros((n, 3), dtype=np.float32)

    if mesh.has_texcoords:
        texcoords = np.asarray(mesh.texcoords, dtype=np.float32).reshape(n, -1)[:, :2]
    else:
        texcoords = np.zeros((n, 2), dtype=np.float32)

    faces = np.asarray(mesh.faces, dtype=np.int64).reshape(-1, 3) + ctx.vertex_offset
    start = ctx.index_offset

    columns = {"position": positions, "normal": normals, "texcoord": texcoords}
    if ctx.skinned:
        columns["bone_indices"], columns["bone_weights"] = skin_mesh(ctx, mesh, node_name, world)

    ctx.append(faces, **columns)
    if ctx.write_subsets:
        ctx.subsets.append(MeshSubset(mesh.name, start, ctx.index_offset))
    logger.debug("  Added %s: %d verts, %d tris", mesh.name or "(unnamed)", n, len(faces))
    return True


# ============================================================
# Skinning
# ============================================================

def _free_slot(slot_ids, slot_weights, bone_id):
    """First slot that is empty or already holds bone_id, None when all four are taken."""
    for c in range(MAX_INFLUENCES):
        if slot_weights[c] == 0 or slot_ids[c] == bone_id:
            return c
    return None


def skin_mesh(ctx, mesh, node_name, world):
    """Build the (N, 4) bone id and weight slots for one mesh.

    Rigid meshes are bound entirely to the node's auto bone. For skinned
    meshes the first four distinct influences per vertex win, later ones are
    dropped; vertices no bone touches fall back to the auto bone.
    """
    n = mesh.num_vertices
    slot_ids = np.zeros((n, MAX_INFLUENCES), dtype=np.float32)
    slot_weights = np.zeros((n, MAX_INFLUENCES), dtype=np.float32)

    if not mesh.has_bones:
        slot_ids[:, 0] = ctx.bones.auto_bone(node_name, world)
        slot_weights[:, 0] = 1.0
        return slot_ids, slot_weights

    dropped = 0
    for bone in mesh.bones:
        bone_id = ctx.bones.skin_bone(bone.name, bone.offset_matrix, world)
        for vertex_id, weight in bone.weights:
            vertex_id = int(vertex_id)
            c = _free_slot(slot_ids[vertex_id], slot_weights[vertex_id], bone_id)
            if c is None:
                dropped += 1
                continue
            slot_ids[vertex_id, c] = bone_id
            slot_weights[vertex_id, c] += weight

    for i in range(n):
        if slot_weights[i, 0] == 0:
            slot_ids[i] = (ctx.bones.auto_bone(node_name, world), 0, 0, 0)
            slot_weights[i] = (1, 0, 0, 0)
        else:
            slot_weights[i] /= slot_weights[i].sum()

    if dropped:
        logger.debug("  %s: dropped %d influences beyond %d per vertex", mesh.name, dropped, MAX_INFLUENCES)
        ctx.dropped_influences += dropped
    return slot_ids, slot_weights


# ============================================================
# Scene traversal
# ============================================================

def _visit(scene, node, parent_world, ctx):
    world = parent_world @ node.transform
    logger.debug("Node: %s, Children: %d, Meshes: %d", node.name, len(node.children), len(node.meshes))
    for mesh_index in node.meshes:
        merge_mesh(ctx, scene.meshes[mesh_index], node.name, world)
    for child in node.children:
        _visit(scene, child, world, ctx)


def flatten_scene(scene, write_subsets=False, root_transform=HANDEDNESS_CORRECTION):
    """Run the geometry pass over a whole scene and return its ConversionContext."""
    ctx = ConversionContext(skinned=scene.has_animations, write_subsets=write_subsets)
    _visit(scene, scene.root, root_transform, ctx)
    return ctx
