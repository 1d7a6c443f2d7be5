"""
Imported scene model.

Plain containers for what the scene importer hands to the converter: a node
tree with local transforms, triangle meshes with optional normals / UVs /
skin bones, and keyframed animation channels. The pipeline only reads these
objects, it never mutates them.

Matrices are 4x4 numpy arrays that transform column vectors (p' = M @ p),
stored row-major like assimp's aiMatrix4x4.
"""

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

# assimp aiPrimitiveType flags
PRIMITIVE_POINT = 0x1
PRIMITIVE_LINE = 0x2
PRIMITIVE_TRIANGLE = 0x4
PRIMITIVE_POLYGON = 0x8


def identity():
    return np.identity(4, dtype=np.float64)


class VectorKey(NamedTuple):
    time: float
    value: Tuple[float, float, float]


class QuatKey(NamedTuple):
    time: float
    value: Tuple[float, float, float, float]  # (w, x, y, z)


@dataclass
class SceneBone:
    name: str
    offset_matrix: np.ndarray = field(default_factory=identity)
    weights: List[Tuple[int, float]] = field(default_factory=list)  # (vertex id, weight)


@dataclass
class SceneMesh:
    name: str = ""
    positions: Optional[np.ndarray] = None   # (N, 3)
    faces: Optional[np.ndarray] = None       # (F, 3)
    normals: Optional[np.ndarray] = None     # (N, 3)
    texcoords: Optional[np.ndarray] = None   # (N, 2) or (N, 3), UV channel 0
    bones: List[SceneBone] = field(default_factory=list)
    primitive_type: int = PRIMITIVE_TRIANGLE

    @property
    def num_vertices(self):
        return 0 if self.positions is None else len(self.positions)

    @property
    def num_faces(self):
        return 0 if self.faces is None else len(self.faces)

    @property
    def has_positions(self):
        return self.num_vertices > 0

    @property
    def has_faces(self):
        return self.num_faces > 0

    @property
    def has_normals(self):
        return self.normals is not None and len(self.normals) > 0

    @property
    def has_texcoords(self):
        return self.texcoords is not None and len(self.texcoords) > 0

    @property
    def has_bones(self):
        return len(self.bones) > 0


@dataclass
class SceneNode:
    name: str
    transform: np.ndarray = field(default_factory=identity)
    children: List["SceneNode"] = field(default_factory=list)
    meshes: List[int] = field(default_factory=list)  # indices into Scene.meshes

    def __repr__(self):
        return f"SceneNode({self.name}, children={len(self.children)}, meshes={len(self.meshes)})"


@dataclass
class NodeChannel:
    node_name: str
    position_keys: List[VectorKey] = field(default_factory=list)
    rotation_keys: List[QuatKey] = field(default_factory=list)
    scaling_keys: List[VectorKey] = field(default_factory=list)


@dataclass
class SceneAnimation:
    name: str
    duration: float
    channels: List[NodeChannel] = field(default_factory=list)
    ticks_per_second: float = 0.0


@dataclass
class Scene:
    root: SceneNode
    meshes: List[SceneMesh] = field(default_factory=list)
    animations: List[SceneAnimation] = field(default_factory=list)

    @property
    def has_animations(self):
        return len(self.animations) > 0
