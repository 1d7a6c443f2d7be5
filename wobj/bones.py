"""
Bone registry.

Bones get sequential ids in first-registration order, keyed by name. The
first registration of a name wins: later references reuse its id and never
replace its inverse bind transform. Because ids follow traversal order, the
same input always yields the same ids.
"""

import logging
from dataclasses import dataclass

import numpy as np

from wobj.matrices import mat4_inverse

logger = logging.getLogger(__name__)

AUTO_SUFFIX = "_auto"


def auto_bone_name(node_name):
    return node_name + AUTO_SUFFIX


@dataclass
class Bone:
    id: int
    inverse_bind: np.ndarray


class BoneIndexer:
    def __init__(self):
        self.bones = {}  # name -> Bone

    def __len__(self):
        return len(self.bones)

    def __contains__(self, name):
        return name in self.bones

    def __getitem__(self, name):
        return self.bones[name]

    def get(self, name):
        return self.bones.get(name)

    def _register(self, name, inverse_bind):
        bone = self.bones.get(name)
        if bone is not None:
            return bone.id
        bone = Bone(len(self.bones), inverse_bind)
        self.bones[name] = bone
        logger.debug("Bone: %s = %d", name, bone.id)
        return bone.id

    def skin_bone(self, name, offset_matrix, node_world):
        """Id of an explicit skin bone; inverse bind = offset x inverse(node world)."""
        if name in self.bones:
            return self.bones[name].id
        return self._register(name, np.asarray(offset_matrix, dtype=np.float64) @ mat4_inverse(node_world))

    def auto_bone(self, node_name, node_world):
        """Id of the synthetic bone a rigid node's vertices are bound to."""
        name = auto_bone_name(node_name)
        if name in self.bones:
            return self.bones[name].id
        return self._register(name, mat4_inverse(node_world))

    def ids(self):
        """name -> id mapping in registration order."""
        return {name: bone.id for name, bone in self.bones.items()}
