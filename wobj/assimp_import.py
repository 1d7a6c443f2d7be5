"""
Scene import through pyassimp.

Reads any format assimp understands (FBX, OBJ, glTF, DAE, ...) and copies it
into the plain wobj.scene containers. Everything is copied out while the
assimp scene is still loaded, so the rest of the converter never touches
importer objects.
"""

import logging
import os

import numpy as np

from wobj.errors import SceneImportError
from wobj.matrices import mat4
from wobj.scene import (
    PRIMITIVE_TRIANGLE,
    NodeChannel,
    QuatKey,
    Scene,
    SceneAnimation,
    SceneBone,
    SceneMesh,
    SceneNode,
    VectorKey,
    identity,
)

logger = logging.getLogger(__name__)


def process_flags(postprocess, write_subsets=False):
    """Realtime-quality preset without SplitLargeMeshes, plus graph optimization
    and the left-handed / flipped-UV conventions the renderer expects."""
    flags = (postprocess.aiProcessPreset_TargetRealtime_Quality
             | postprocess.aiProcess_OptimizeGraph
             | postprocess.aiProcess_MakeLeftHanded
             | postprocess.aiProcess_FlipUVs)
    flags &= ~postprocess.aiProcess_SplitLargeMeshes
    if not write_subsets:
        # merging meshes would erase subset boundaries
        flags |= postprocess.aiProcess_OptimizeMeshes
    return flags


# ============================================================
# Conversion of importer objects
# ============================================================

def _name(value):
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')
    return value or ""


def _array(values, width):
    if values is None or len(values) == 0:
        return None
    return np.asarray(values, dtype=np.float64).reshape(-1, width)


def _convert_bone(bone):
    weights = [(int(w.vertexid), float(w.weight)) for w in (bone.weights if bone.weights is not None else [])]
    offset = mat4(bone.offsetmatrix) if bone.offsetmatrix is not None else identity()
    return SceneBone(_name(bone.name), offset, weights)


def _faces(mesh):
    faces = mesh.faces
    if faces is None or len(faces) == 0:
        return None
    # older pyassimp keeps Face objects, newer ones an (F, 3) array
    if hasattr(faces[0], "indices"):
        faces = [f.indices for f in faces]
    return np.asarray(faces, dtype=np.int64).reshape(-1, 3)


def _convert_mesh(mesh):
    positions = _array(mesh.vertices, 3)
    texcoords = None
    channels = getattr(mesh, "texturecoords", None)
    if positions is not None and channels is not None and len(channels) > 0:
        # UV channels come as 3 components per vertex
        texcoords = np.asarray(channels[0], dtype=np.float64).reshape(len(positions), -1)

    return SceneMesh(
        name=_name(mesh.name),
        positions=positions,
        faces=_faces(mesh),
        normals=_array(mesh.normals, 3),
        texcoords=texcoords,
        bones=[_convert_bone(b) for b in (mesh.bones if mesh.bones is not None else [])],
        primitive_type=int(getattr(mesh, "primitivetypes", PRIMITIVE_TRIANGLE)),
    )


def _convert_node(node, mesh_indices):
    transform = getattr(node, "transformation", None)
    meshes = []
    for m in node.meshes:
        # nodes reference the scene's mesh objects
        meshes.append(mesh_indices[id(m)] if id(m) in mesh_indices else int(m))
    return SceneNode(
        name=_name(node.name),
        transform=mat4(transform) if transform is not None else identity(),
        children=[_convert_node(c, mesh_indices) for c in node.children],
        meshes=meshes,
    )


def _vector_keys(keys):
    return [VectorKey(float(k.time), tuple(float(v) for v in k.value)) for k in (keys or [])]


def _quat_keys(keys):
    # aiQuaternion values are (w, x, y, z)
    return [QuatKey(float(k.time), tuple(float(v) for v in k.value)) for k in (keys or [])]


def _convert_animation(anim):
    channels = [
        NodeChannel(
            node_name=_name(ch.nodename),
            position_keys=_vector_keys(ch.positionkeys),
            rotation_keys=_quat_keys(ch.rotationkeys),
            scaling_keys=_vector_keys(ch.scalingkeys),
        )
        for ch in anim.channels
    ]
    return SceneAnimation(_name(anim.name), float(anim.duration), channels, float(anim.tickspersecond))


def convert_assimp_scene(ai_scene):
    mesh_indices = {id(m): i for i, m in enumerate(ai_scene.meshes)}
    return Scene(
        root=_convert_node(ai_scene.rootnode, mesh_indices),
        meshes=[_convert_mesh(m) for m in ai_scene.meshes],
        animations=[_convert_animation(a) for a in (ai_scene.animations or [])],
    )


# ============================================================
# Entry point
# ============================================================

def _import_pyassimp():
    try:
        import pyassimp
        from pyassimp import postprocess
        from pyassimp.errors import AssimpError
    except ImportError as e:
        raise SceneImportError(f"pyassimp is not installed: {e}") from e
    except BaseException as e:
        # pyassimp raises AssimpError at import time when the native library is missing
        if type(e).__name__ != "AssimpError":
            raise
        raise SceneImportError(f"assimp library not found: {e}") from e
    return pyassimp, postprocess, AssimpError


def load_scene(path, write_subsets=False):
    """Import a model file. Raises SceneImportError if assimp cannot read it."""
    if not os.path.isfile(path):
        raise SceneImportError(f"Input file not found: {path}")

    pyassimp, postprocess, AssimpError = _import_pyassimp()
    try:
        with pyassimp.load(path, processing=process_flags(postprocess, write_subsets)) as ai_scene:
            if ai_scene is None or ai_scene.rootnode is None:
                raise SceneImportError(f"Could not import {path}")
            scene = convert_assimp_scene(ai_scene)
    except AssimpError as e:
        raise SceneImportError(f"Could not import {path}: {e}") from e

    logger.info("  Imported %d meshes, %d animations", len(scene.meshes), len(scene.animations))
    return scene
